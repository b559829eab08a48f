"""FastAPI dependencies resolving the components built by ``create_app``."""

from fastapi import Request

from app.database import DatabaseManager
from app.services.auth import AuthService
from app.services.user import UserService


def get_database(request: Request) -> DatabaseManager:
    """Database manager attached to the running application."""
    return request.app.state.database


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service
