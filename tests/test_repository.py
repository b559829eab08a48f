"""Tests for the user repository."""

from datetime import datetime, timedelta

import pytest

from app.errors import ConflictError
from app.repositories.user import UserRepository


def _user_data(n: int, **overrides) -> dict:
    data = {
        "nombre": f"User {n}",
        "email": f"user{n}@example.com",
        "password": "not-a-real-hash",
        "fecha_registro": datetime(2024, 1, 1) + timedelta(days=n),
    }
    data.update(overrides)
    return data


class TestWrites:
    """Tests for create/update/delete."""

    def test_create_applies_defaults(self, repository: UserRepository):
        user = repository.create(_user_data(1))
        assert user.id is not None
        assert user.activo is True
        assert user.rol == "usuario"
        assert user.ultima_actividad is None

    def test_create_duplicate_email_conflicts(self, repository: UserRepository):
        """The unique index rejects a second row with the same email."""
        repository.create(_user_data(1))
        with pytest.raises(ConflictError, match="Ya existe un usuario con este email"):
            repository.create(_user_data(2, email="user1@example.com"))

    def test_update_returns_fresh_row(self, repository: UserRepository):
        user = repository.create(_user_data(1))
        updated = repository.update(user.id, {"nombre": "Renamed", "rol": "moderador"})
        assert updated.nombre == "Renamed"
        assert updated.rol == "moderador"

    def test_update_missing_row_returns_none(self, repository: UserRepository):
        assert repository.update(999, {"nombre": "Ghost"}) is None

    def test_update_to_taken_email_conflicts(self, repository: UserRepository):
        repository.create(_user_data(1))
        second = repository.create(_user_data(2))
        with pytest.raises(ConflictError):
            repository.update(second.id, {"email": "user1@example.com"})

    def test_soft_delete_keeps_row(self, repository: UserRepository):
        user = repository.create(_user_data(1))
        assert repository.delete(user.id) is True
        kept = repository.find_by_id(user.id)
        assert kept is not None
        assert kept.activo is False

    def test_soft_delete_missing_row(self, repository: UserRepository):
        assert repository.delete(999) is False

    def test_destroy_removes_row(self, repository: UserRepository):
        user = repository.create(_user_data(1))
        assert repository.destroy(user.id) is True
        assert repository.find_by_id(user.id) is None
        assert repository.destroy(user.id) is False

    def test_update_last_activity(self, repository: UserRepository):
        user = repository.create(_user_data(1))
        assert repository.update_last_activity(user.id) is True
        assert repository.find_by_id(user.id).ultima_actividad is not None


class TestReads:
    """Tests for lookups, listing and stats."""

    def test_find_by_email(self, repository: UserRepository):
        user = repository.create(_user_data(1))
        assert repository.find_by_email("user1@example.com").id == user.id
        assert repository.find_by_email("nobody@example.com") is None

    def test_email_exists_with_exclusion(self, repository: UserRepository):
        user = repository.create(_user_data(1))
        assert repository.email_exists("user1@example.com") is True
        assert repository.email_exists("user1@example.com", exclude_id=user.id) is False
        assert repository.email_exists("other@example.com") is False

    def test_email_exists_counts_inactive_users(self, repository: UserRepository):
        user = repository.create(_user_data(1))
        repository.delete(user.id)
        assert repository.email_exists("user1@example.com") is True

    def test_find_all_orders_newest_first(self, repository: UserRepository):
        for n in range(3):
            repository.create(_user_data(n))
        rows, total = repository.find_all()
        assert total == 3
        assert [row.nombre for row in rows] == ["User 2", "User 1", "User 0"]

    def test_find_all_paginates(self, repository: UserRepository):
        for n in range(15):
            repository.create(_user_data(n))
        rows, total = repository.find_all(limit=10, offset=10)
        assert total == 15
        assert len(rows) == 5

    def test_find_all_filters(self, repository: UserRepository):
        repository.create(_user_data(1, rol="admin"))
        inactive = repository.create(_user_data(2))
        repository.create(_user_data(3))
        repository.delete(inactive.id)

        admins, admin_total = repository.find_by_role("admin")
        assert admin_total == 1
        assert admins[0].email == "user1@example.com"

        active, active_total = repository.find_active()
        assert active_total == 2
        assert all(row.activo for row in active)

    def test_stats_empty_table(self, repository: UserRepository):
        assert repository.get_stats() == {"total": 0, "activos": 0, "inactivos": 0, "porRol": {}}

    def test_stats_counts(self, repository: UserRepository):
        repository.create(_user_data(1, rol="admin"))
        repository.create(_user_data(2))
        third = repository.create(_user_data(3))
        repository.delete(third.id)

        assert repository.get_stats() == {
            "total": 3,
            "activos": 2,
            "inactivos": 1,
            "porRol": {"admin": 1, "usuario": 2},
        }
