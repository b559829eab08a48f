"""User model."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Enum, Integer, String, true

from app.database import Base

ROLES = ("admin", "usuario", "moderador")
DEFAULT_ROLE = "usuario"


class User(Base):
    """Registered user account. Soft-deleted rows keep ``activo=False``."""

    __tablename__ = "usuarios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(100), nullable=False)
    email = Column(String(150), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)  # bcrypt hash, never serialized
    telefono = Column(String(20), nullable=True)
    fecha_nacimiento = Column(Date, nullable=True)
    activo = Column(Boolean, nullable=False, default=True, server_default=true(), index=True)
    rol = Column(
        Enum(*ROLES, name="usuario_rol"),
        nullable=False,
        default=DEFAULT_ROLE,
        server_default=DEFAULT_ROLE,
        index=True,
    )
    fecha_registro = Column(DateTime, nullable=False, default=datetime.utcnow)
    ultima_actividad = Column(DateTime, nullable=True)

    def is_active(self) -> bool:
        return self.activo is True

    def touch_last_activity(self) -> None:
        self.ultima_actividad = datetime.utcnow()
