"""Authentication service and password hashing."""

import logging

import bcrypt

from app.errors import AuthError
from app.models.user import User
from app.repositories.user import UserRepository

logger = logging.getLogger("usuarios_api")

# bcrypt only looks at the first 72 bytes of input
BCRYPT_MAX_BYTES = 72

MISSING_CREDENTIALS = "Email y contraseña son requeridos"
INVALID_CREDENTIALS = "Credenciales inválidas"
INACTIVE_USER = "Usuario inactivo"


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = 10) -> str:
    """Salted bcrypt hash with the given cost factor."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


class AuthService:
    """Checks user credentials."""

    def __init__(self, repository: UserRepository, rounds: int = 10) -> None:
        self.repository = repository
        # compared against when the email is unknown so both failures cost the same
        self._dummy_hash = hash_password("usuarios-api-dummy", rounds=rounds)

    def authenticate(self, email: str | None, password: str | None) -> User:
        """Return the user for valid credentials and record the activity.

        An unknown email and a wrong password fail with the same message.
        """
        if not email or not password:
            raise AuthError(MISSING_CREDENTIALS)

        user = self.repository.find_by_email(email.strip().lower())
        if user is None:
            verify_password(password, self._dummy_hash)
            logger.info("Authentication failed: unknown email")
            raise AuthError(INVALID_CREDENTIALS)

        if not verify_password(password, user.password):
            logger.info("Authentication failed: wrong password for user %s", user.id)
            raise AuthError(INVALID_CREDENTIALS)

        if not user.is_active():
            logger.info("Authentication rejected: user %s is inactive", user.id)
            raise AuthError(INACTIVE_USER)

        self.repository.update_last_activity(user.id)
        return self.repository.find_by_id(user.id) or user
