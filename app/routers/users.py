"""User API endpoints."""

import math

from fastapi import APIRouter, Depends, Query, Request

from app.dependencies import get_auth_service, get_user_service
from app.rate_limit import auth_rate_limit, limiter
from app.schemas.user import (
    AuthenticateRequest,
    MessageEnvelope,
    Pagination,
    StatsEnvelope,
    UserCreate,
    UserEnvelope,
    UserListEnvelope,
    UserResponse,
    UserStats,
    UserUpdate,
)
from app.services.auth import AuthService
from app.services.user import MAX_PAGE, MAX_PAGE_SIZE, UserService

router = APIRouter(tags=["Usuarios"])


@router.post("", response_model=UserEnvelope, status_code=201)
def create_user(body: UserCreate, service: UserService = Depends(get_user_service)) -> UserEnvelope:
    """Create a user account."""
    user = service.create_user(body.model_dump())
    return UserEnvelope(message="Usuario creado correctamente", data=UserResponse.model_validate(user))


@router.get("", response_model=UserListEnvelope)
def list_users(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    search: str = "",
    rol: str = "",
    activo: str = "",
    service: UserService = Depends(get_user_service),
) -> UserListEnvelope:
    """List users, newest first, filtered by role and status."""
    users, total = service.list_users(page=page, limit=limit, search=search, rol=rol, activo=activo)
    return UserListEnvelope(
        message="Usuarios obtenidos correctamente",
        data=[UserResponse.model_validate(u) for u in users],
        pagination=Pagination(total=total, page=page, limit=limit, totalPages=math.ceil(total / limit)),
    )


@router.get("/stats", response_model=StatsEnvelope)
def get_stats(service: UserService = Depends(get_user_service)) -> StatsEnvelope:
    """Counts of users by status and role."""
    return StatsEnvelope(message="Estadísticas obtenidas correctamente", data=UserStats(**service.get_stats()))


@router.post("/authenticate", response_model=UserEnvelope)
@limiter.limit(auth_rate_limit)
def authenticate(
    request: Request,
    body: AuthenticateRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> UserEnvelope:
    """Check email and password. The password hash is never returned."""
    user = auth_service.authenticate(body.email, body.password)
    return UserEnvelope(message="Autenticación exitosa", data=UserResponse.model_validate(user))


@router.get("/{user_id}", response_model=UserEnvelope)
def get_user(user_id: str, service: UserService = Depends(get_user_service)) -> UserEnvelope:
    user = service.get_user(user_id)
    return UserEnvelope(message="Usuario obtenido correctamente", data=UserResponse.model_validate(user))


@router.put("/{user_id}", response_model=UserEnvelope)
def update_user(user_id: str, body: UserUpdate, service: UserService = Depends(get_user_service)) -> UserEnvelope:
    """Partially update a user. Omitted fields are left untouched."""
    user = service.update_user(user_id, body.model_dump(exclude_unset=True))
    return UserEnvelope(message="Usuario actualizado correctamente", data=UserResponse.model_validate(user))


@router.delete("/{user_id}", response_model=MessageEnvelope)
def delete_user(user_id: str, service: UserService = Depends(get_user_service)) -> MessageEnvelope:
    """Deactivate a user. The row is kept."""
    return MessageEnvelope(message=service.delete_user(user_id))


@router.delete("/{user_id}/permanent", response_model=MessageEnvelope)
def destroy_user(user_id: str, service: UserService = Depends(get_user_service)) -> MessageEnvelope:
    """Remove a user row for good."""
    return MessageEnvelope(message=service.destroy_user(user_id))


@router.patch("/{user_id}/toggle-status", response_model=UserEnvelope)
def toggle_user_status(user_id: str, service: UserService = Depends(get_user_service)) -> UserEnvelope:
    user, message = service.toggle_status(user_id)
    return UserEnvelope(message=message, data=UserResponse.model_validate(user))
