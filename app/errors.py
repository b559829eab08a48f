"""Domain errors raised by the service and data access layers.

Each error class carries the HTTP status the API layer answers with.
"""


class UsuariosAPIError(Exception):
    """Base class for all expected API errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(UsuariosAPIError):
    """One or more fields failed validation. All messages are reported together."""

    status_code = 400

    def __init__(self, errors: list[str]) -> None:
        super().__init__(f"Datos inválidos: {', '.join(errors)}")
        self.errors = errors


class InvalidInputError(UsuariosAPIError):
    status_code = 400


class ConflictError(UsuariosAPIError):
    status_code = 409


class NotFoundError(UsuariosAPIError):
    status_code = 404


class AuthError(UsuariosAPIError):
    status_code = 401


class StorageUnavailableError(UsuariosAPIError):
    """Storage could not be reached: bootstrap timeout, pool exhaustion or lost connection."""

    status_code = 503


class DatabaseNotReadyError(StorageUnavailableError):
    """Raised by the database manager when asked for a connection or models too early."""


EMAIL_TAKEN_MESSAGE = "Ya existe un usuario con este email"
