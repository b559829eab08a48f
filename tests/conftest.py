"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.database import DatabaseManager
from app.repositories.user import UserRepository
from app.services.auth import AuthService
from app.services.user import UserService

# lowest cost factor bcrypt accepts
TEST_ROUNDS = 4


@pytest.fixture(name="database")
def database_fixture(tmp_path):
    """Database manager on an in-memory SQLite primary."""
    database = DatabaseManager("sqlite://", str(tmp_path / "fallback.db"))
    database.init()
    try:
        yield database
    finally:
        database.close()


@pytest.fixture(name="repository")
def repository_fixture(database: DatabaseManager) -> UserRepository:
    return UserRepository(database, ready_attempts=1, ready_interval=0.01)


@pytest.fixture(name="user_service")
def user_service_fixture(repository: UserRepository) -> UserService:
    return UserService(repository, rounds=TEST_ROUNDS)


@pytest.fixture(name="auth_service")
def auth_service_fixture(repository: UserRepository) -> AuthService:
    return AuthService(repository, rounds=TEST_ROUNDS)


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    settings = Settings()
    settings.BCRYPT_ROUNDS = TEST_ROUNDS
    settings.APP_ENV = "test"
    return settings


@pytest.fixture(name="client")
def client_fixture(database: DatabaseManager, settings: Settings):
    """Test client wired to the test database, with rate limiting disabled."""
    from app.rate_limit import limiter
    from main import create_app

    app = create_app(settings=settings, database=database)
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True


@pytest.fixture(name="test_user")
def test_user_fixture(user_service: UserService) -> dict:
    """Create a test user and return its data plus the plain password."""
    user = user_service.create_user(
        {"nombre": "Test User", "email": "test@example.com", "password": "password123"}
    )
    return {"id": user.id, "email": user.email, "nombre": user.nombre, "password": "password123"}
