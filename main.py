"""Usuarios API - user account management service."""

import logging
import time
import traceback
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.config import Settings, get_settings
from app.database import DatabaseManager
from app.dependencies import get_database
from app.errors import UsuariosAPIError
from app.rate_limit import configure_auth_limit, limiter
from app.repositories.user import UserRepository
from app.routers import users_router
from app.services.auth import AuthService
from app.services.user import UserService

# Logging
logger = logging.getLogger("usuarios_api")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

VERSION = "1.0.0"


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message, **extra})


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


# --- Request size limit middleware ---
class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, max_body_size: int) -> None:
        super().__init__(app)
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_body_size:
            return _error(413, "El cuerpo de la petición es demasiado grande")
        return await call_next(request)


# --- Request logging middleware ---
class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000
        logger.info(
            "%s %s -> %d (%.0fms) from %s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request.client.host if request.client else "unknown",
        )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Bring the database up before serving and release it on shutdown."""
    database: DatabaseManager = app.state.database
    settings: Settings = app.state.settings

    for warning in settings.validate():
        logger.warning("Config: %s", warning)

    if not database.is_ready:
        await run_in_threadpool(database.init)
    logger.info("Database in use: %s", database.engine_kind)
    logger.info("Environment: %s", settings.APP_ENV)

    yield

    logger.info("Shutting down, closing database")
    database.close()


def create_app(settings: Settings | None = None, database: DatabaseManager | None = None) -> FastAPI:
    """Build the application with its storage handle and services wired in."""
    settings = settings or get_settings()
    database = database or DatabaseManager.from_settings(settings)

    repository = UserRepository(
        database,
        ready_attempts=settings.DB_READY_ATTEMPTS,
        ready_interval=settings.DB_READY_INTERVAL,
    )

    app = FastAPI(title="Usuarios API", version=VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.user_service = UserService(repository, rounds=settings.BCRYPT_ROUNDS)
    app.state.auth_service = AuthService(repository, rounds=settings.BCRYPT_ROUNDS)
    app.state.limiter = limiter
    configure_auth_limit(settings.AUTH_RATE_LIMIT)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware, max_body_size=settings.MAX_BODY_SIZE_MB * 1024 * 1024)
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    # API routers
    app.include_router(users_router, prefix="/users")
    app.include_router(users_router, prefix="/api/usuarios", include_in_schema=False)

    _register_exception_handlers(app, settings)
    _register_routes(app)
    return app


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(UsuariosAPIError)
    async def api_error_handler(request: Request, exc: UsuariosAPIError) -> JSONResponse:
        """Map domain errors to their HTTP status."""
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed bodies and query strings are reported like field validation errors."""
        details = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path"))
            details.append(f"{location}: {error['msg']}" if location else error["msg"])
        return _error(400, f"Datos inválidos: {', '.join(details)}")

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return _error(429, "Demasiadas peticiones. Inténtalo más tarde.")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Unknown routes and framework HTTP errors use the same envelope."""
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _error(404, f"Ruta no encontrada: {request.url.path}")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        if settings.is_development:
            return _error(
                500,
                "Error interno del servidor",
                error=str(exc),
                stack=traceback.format_exception(type(exc), exc, exc.__traceback__),
            )
        return _error(500, "Error interno del servidor")


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    def health_check(database: DatabaseManager = Depends(get_database)) -> JSONResponse:
        """Report whether the database answers."""
        health = database.health_check()
        if health["status"] != "healthy":
            return JSONResponse(
                status_code=503,
                content={"status": "error", "message": "Problemas con la base de datos", "database": health},
            )
        return JSONResponse(
            content={"status": "success", "message": "API funcionando correctamente", "database": health}
        )

    @app.get("/")
    def root() -> dict:
        return {
            "message": "Bienvenido a la API de Gestión de Usuarios",
            "version": VERSION,
            "endpoints": {"usuarios": "/users", "health": "/health"},
        }


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
