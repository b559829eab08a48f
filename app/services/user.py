"""User management service: validation, uniqueness and persistence orchestration."""

import logging
import re
from datetime import datetime
from typing import Any

from app.errors import EMAIL_TAKEN_MESSAGE, ConflictError, InvalidInputError, NotFoundError, ValidationError
from app.models.user import User
from app.repositories.user import UserRepository
from app.services.auth import hash_password
from app.services.validation import parse_date, validate_user_data

logger = logging.getLogger("usuarios_api")

INVALID_ID = "ID de usuario inválido"
USER_NOT_FOUND = "Usuario no encontrado"

_ID_PATTERN = re.compile(r"^-?\d+$")

# signed 64-bit range of the id column
MIN_ID, MAX_ID = -(2**63), 2**63 - 1

MAX_PAGE = 1_000_000
MAX_PAGE_SIZE = 100

# columns that reject NULL; an explicit null in an update leaves them untouched
_NOT_NULL_OPTIONAL = ("rol", "activo")


def parse_user_id(raw: Any) -> int:
    """Turn a path id into an int or raise InvalidInputError."""
    if isinstance(raw, bool):
        raise InvalidInputError(INVALID_ID)
    if isinstance(raw, int):
        user_id = raw
    elif raw is None or not _ID_PATTERN.match(str(raw).strip()):
        raise InvalidInputError(INVALID_ID)
    else:
        user_id = int(str(raw).strip())
    if not MIN_ID <= user_id <= MAX_ID:
        raise InvalidInputError(INVALID_ID)
    return user_id


class UserService:
    """Orchestrates user operations on top of the repository."""

    def __init__(self, repository: UserRepository, rounds: int = 10) -> None:
        self.repository = repository
        self.rounds = rounds

    def _normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        values = dict(data)
        if values.get("email"):
            values["email"] = values["email"].strip().lower()
        if values.get("nombre"):
            values["nombre"] = values["nombre"].strip()
        if "fecha_nacimiento" in values:
            values["fecha_nacimiento"] = parse_date(values["fecha_nacimiento"]) if values["fecha_nacimiento"] else None
        if values.get("password"):
            values["password"] = hash_password(values["password"], rounds=self.rounds)
        for field in _NOT_NULL_OPTIONAL:
            if field in values and values[field] is None:
                del values[field]
        return values

    def _require_user(self, user_id: int) -> User:
        user = self.repository.find_by_id(user_id)
        if user is None:
            raise NotFoundError(USER_NOT_FOUND)
        return user

    def create_user(self, data: dict[str, Any]) -> User:
        """Validate, check the email is free and persist a new active user."""
        errors = validate_user_data(data)
        if errors:
            raise ValidationError(errors)

        values = self._normalize(data)
        if self.repository.email_exists(values["email"]):
            raise ConflictError(EMAIL_TAKEN_MESSAGE)

        values.update(activo=True, fecha_registro=datetime.utcnow())
        user = self.repository.create(values)
        logger.info("Created user %s", user.id)
        return user

    def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        rol: str = "",
        activo: str = "",
    ) -> tuple[list[User], int]:
        """Page through users. ``search`` is accepted but not applied."""
        where: dict[str, Any] = {}
        if rol:
            where["rol"] = rol
        if activo != "":
            where["activo"] = activo == "true"

        offset = (page - 1) * limit
        return self.repository.find_all(where, limit=limit, offset=offset)

    def get_user(self, user_id: Any) -> User:
        return self._require_user(parse_user_id(user_id))

    def update_user(self, user_id: Any, data: dict[str, Any]) -> User:
        """Apply a partial update; only the fields present are validated."""
        user_id = parse_user_id(user_id)
        self._require_user(user_id)

        errors = validate_user_data(data, is_update=True)
        if errors:
            raise ValidationError(errors)

        values = self._normalize(data)
        if values.get("email") and self.repository.email_exists(values["email"], exclude_id=user_id):
            raise ConflictError(EMAIL_TAKEN_MESSAGE)

        user = self.repository.update(user_id, values)
        if user is None:
            raise NotFoundError(USER_NOT_FOUND)
        logger.info("Updated user %s (%s)", user_id, ", ".join(sorted(values)) or "no changes")
        return user

    def delete_user(self, user_id: Any) -> str:
        user_id = parse_user_id(user_id)
        self._require_user(user_id)

        if not self.repository.delete(user_id):
            raise NotFoundError(USER_NOT_FOUND)
        logger.info("Deactivated user %s", user_id)
        return "Usuario eliminado correctamente"

    def destroy_user(self, user_id: Any) -> str:
        user_id = parse_user_id(user_id)

        if not self.repository.destroy(user_id):
            raise NotFoundError("No se pudo eliminar el usuario permanentemente")
        logger.info("Permanently deleted user %s", user_id)
        return "Usuario eliminado permanentemente"

    def toggle_status(self, user_id: Any) -> tuple[User, str]:
        user_id = parse_user_id(user_id)
        user = self._require_user(user_id)

        new_status = not user.activo
        updated = self.repository.update(user_id, {"activo": new_status})
        if updated is None:
            raise NotFoundError(USER_NOT_FOUND)
        message = f"Usuario {'activado' if new_status else 'desactivado'} correctamente"
        logger.info("User %s %s", user_id, "activated" if new_status else "deactivated")
        return updated, message

    def get_stats(self) -> dict[str, Any]:
        return self.repository.get_stats()
