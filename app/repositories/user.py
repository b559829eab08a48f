"""Data access for users."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from app.database import DatabaseManager
from app.errors import EMAIL_TAKEN_MESSAGE, ConflictError, StorageUnavailableError
from app.models.user import User

logger = logging.getLogger("usuarios_api")


class UserRepository:
    """Translates user operations into queries against the managed database.

    The first call waits for the database manager to become ready: up to
    ``ready_attempts`` waits of ``ready_interval`` seconds each.
    """

    def __init__(self, database: DatabaseManager, ready_attempts: int = 10, ready_interval: float = 0.5) -> None:
        self._database = database
        self._ready_attempts = ready_attempts
        self._ready_interval = ready_interval
        self._model: type[User] | None = None

    def _ensure_initialized(self) -> type[User]:
        if self._model is not None:
            return self._model

        for attempt in range(1, self._ready_attempts + 1):
            if self._database.wait_until_ready(self._ready_interval):
                self._model = self._database.get_models()["User"]  # type: ignore[assignment]
                return self._model  # type: ignore[return-value]
            logger.info("Waiting for database initialization... attempt %d/%d", attempt, self._ready_attempts)

        logger.error("Database not ready after %d attempts", self._ready_attempts)
        raise StorageUnavailableError("Timeout esperando inicialización de base de datos")

    @contextmanager
    def _session(self) -> Iterator[Session]:
        self._ensure_initialized()
        try:
            with self._database.session() as db:
                yield db
        except PoolTimeoutError as exc:
            logger.error("Connection pool exhausted: %s", exc)
            raise StorageUnavailableError("La base de datos no está disponible") from exc
        except OperationalError as exc:
            if not exc.connection_invalidated and not _is_connection_error(exc):
                raise
            logger.error("Database connection lost: %s", exc)
            raise StorageUnavailableError("La base de datos no está disponible") from exc

    # --- Writes ---

    def create(self, data: dict[str, Any]) -> User:
        """Insert a user. A unique-index violation on email becomes a ConflictError."""
        with self._session() as db:
            user = User(**data)
            db.add(user)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                if self._email_taken(db, data.get("email")):
                    raise ConflictError(EMAIL_TAKEN_MESSAGE) from exc
                raise
            db.refresh(user)
            return user

    def update(self, user_id: int, data: dict[str, Any]) -> User | None:
        """Apply a partial update. Returns None when no row matched."""
        with self._session() as db:
            if data:
                try:
                    matched = db.query(User).filter(User.id == user_id).update(data, synchronize_session=False)
                    db.commit()
                except IntegrityError as exc:
                    db.rollback()
                    if self._email_taken(db, data.get("email"), exclude_id=user_id):
                        raise ConflictError(EMAIL_TAKEN_MESSAGE) from exc
                    raise
                if matched == 0:
                    return None
            return db.get(User, user_id)

    def delete(self, user_id: int) -> bool:
        """Soft delete: flip ``activo`` off, keep the row."""
        with self._session() as db:
            matched = db.query(User).filter(User.id == user_id).update({"activo": False}, synchronize_session=False)
            db.commit()
            return matched > 0

    def destroy(self, user_id: int) -> bool:
        """Hard delete: remove the row."""
        with self._session() as db:
            removed = db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
            db.commit()
            return removed > 0

    def update_last_activity(self, user_id: int) -> bool:
        with self._session() as db:
            matched = (
                db.query(User)
                .filter(User.id == user_id)
                .update({"ultima_actividad": datetime.utcnow()}, synchronize_session=False)
            )
            db.commit()
            return matched > 0

    # --- Reads ---

    def find_all(self, where: dict[str, Any] | None = None, limit: int = 10, offset: int = 0) -> tuple[list[User], int]:
        """Filtered page of users, newest registration first. Returns (rows, total)."""
        with self._session() as db:
            query = db.query(User)
            if where:
                query = query.filter_by(**where)
            total = query.count()
            rows = query.order_by(User.fecha_registro.desc(), User.id.desc()).offset(offset).limit(limit).all()
            return rows, total

    def find_active(self, limit: int = 10, offset: int = 0) -> tuple[list[User], int]:
        return self.find_all({"activo": True}, limit=limit, offset=offset)

    def find_by_role(self, rol: str, limit: int = 10, offset: int = 0) -> tuple[list[User], int]:
        return self.find_all({"rol": rol}, limit=limit, offset=offset)

    def find_by_id(self, user_id: int) -> User | None:
        with self._session() as db:
            return db.get(User, user_id)

    def find_by_email(self, email: str) -> User | None:
        with self._session() as db:
            return db.query(User).filter(User.email == email).first()

    def email_exists(self, email: str, exclude_id: int | None = None) -> bool:
        with self._session() as db:
            return self._email_taken(db, email, exclude_id=exclude_id)

    def get_stats(self) -> dict[str, Any]:
        with self._session() as db:
            total = db.query(func.count(User.id)).scalar() or 0
            activos = db.query(func.count(User.id)).filter(User.activo.is_(True)).scalar() or 0
            inactivos = db.query(func.count(User.id)).filter(User.activo.is_(False)).scalar() or 0
            por_rol = db.query(User.rol, func.count(User.id)).group_by(User.rol).all()

        return {
            "total": total,
            "activos": activos,
            "inactivos": inactivos,
            "porRol": {rol: int(count) for rol, count in por_rol},
        }

    @staticmethod
    def _email_taken(db: Session, email: str | None, exclude_id: int | None = None) -> bool:
        if not email:
            return False
        query = db.query(func.count(User.id)).filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return (query.scalar() or 0) > 0


def _is_connection_error(exc: DBAPIError) -> bool:
    # MySQL client error codes for refused/lost connections
    code = exc.orig.args[0] if exc.orig is not None and exc.orig.args else None
    return code in (2002, 2003, 2006, 2013)
