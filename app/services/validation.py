"""Field validation rules for user data."""

import re
from datetime import date, datetime
from typing import Any

from app.models.user import ROLES

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

NOMBRE_MIN, NOMBRE_MAX = 2, 100
EMAIL_MAX = 150
PASSWORD_MIN, PASSWORD_MAX = 6, 255
TELEFONO_MAX = 20


def is_valid_email(email: str | None) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None  # type: ignore[arg-type]


def parse_date(value: Any) -> date | None:
    """Parse an ISO date (or ISO datetime, keeping the date part). Returns None if invalid."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def validate_user_data(data: dict[str, Any], is_update: bool = False) -> list[str]:
    """Check user fields and return every violated rule.

    On create all required fields are checked. On update only the fields
    present in ``data`` are.
    """
    errors = []

    if not is_update or "nombre" in data:
        nombre = (data.get("nombre") or "").strip()
        if len(nombre) < NOMBRE_MIN:
            errors.append("El nombre debe tener al menos 2 caracteres")
        elif len(nombre) > NOMBRE_MAX:
            errors.append("El nombre no puede tener más de 100 caracteres")

    if not is_update or "email" in data:
        email = (data.get("email") or "").strip()
        if not is_valid_email(email):
            errors.append("El email debe ser válido")
        elif len(email) > EMAIL_MAX:
            errors.append("El email no puede tener más de 150 caracteres")

    if not is_update or "password" in data:
        password = data.get("password") or ""
        if len(password) < PASSWORD_MIN:
            errors.append("La contraseña debe tener al menos 6 caracteres")
        elif len(password) > PASSWORD_MAX:
            errors.append("La contraseña no puede tener más de 255 caracteres")

    telefono = data.get("telefono")
    if telefono and len(telefono) > TELEFONO_MAX:
        errors.append("El teléfono no puede tener más de 20 caracteres")

    rol = data.get("rol")
    if rol is not None and rol not in ROLES:
        errors.append("El rol debe ser: admin, usuario o moderador")

    fecha_nacimiento = data.get("fecha_nacimiento")
    if fecha_nacimiento and parse_date(fecha_nacimiento) is None:
        errors.append("La fecha de nacimiento debe ser válida")

    return errors
