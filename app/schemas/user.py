"""Pydantic schemas for user endpoints."""

from datetime import date, datetime

from pydantic import BaseModel


class UserCreate(BaseModel):
    # field rules are checked together by UserService
    nombre: str | None = None
    email: str | None = None
    password: str | None = None
    telefono: str | None = None
    fecha_nacimiento: str | None = None
    rol: str | None = None


class UserUpdate(UserCreate):
    activo: bool | None = None


class AuthenticateRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class UserResponse(BaseModel):
    id: int
    nombre: str
    email: str
    telefono: str | None
    fecha_nacimiento: date | None
    activo: bool
    rol: str
    fecha_registro: datetime
    ultima_actividad: datetime | None

    model_config = {"from_attributes": True}


class UserStats(BaseModel):
    total: int
    activos: int
    inactivos: int
    porRol: dict[str, int]


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


class MessageEnvelope(BaseModel):
    status: str = "success"
    message: str


class UserEnvelope(MessageEnvelope):
    data: UserResponse


class UserListEnvelope(MessageEnvelope):
    data: list[UserResponse]
    pagination: Pagination


class StatsEnvelope(MessageEnvelope):
    data: UserStats
