import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from storefront.core.config import Settings, get_settings
from storefront.core.database import Database
from storefront.core.errors import (
    Conflict, Forbidden, InfrastructureError, NotFound, StorefrontError,
    Unauthorized, ValidationError,
)
from storefront.core.security import CredentialStore, TokenService
from storefront.api.routes import auth, favorites, products, users

logger = logging.getLogger(__name__)

# The only place error kinds are turned into HTTP status codes
ERROR_STATUS_CODES = {
    ValidationError: 400,
    Unauthorized: 401,
    Forbidden: 403,
    NotFound: 404,
    Conflict: 409,
    InfrastructureError: 500,
}


def status_code_for(exc: StorefrontError) -> int:
    for error_cls in type(exc).__mro__:
        if error_cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_cls]
    return 500


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    status_code = status_code_for(exc)
    headers = None
    if status_code == 500:
        # Internal detail goes to the log, never to the client
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        message = InfrastructureError.default_message
    else:
        message = exc.message
        if isinstance(exc, Unauthorized):
            headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=status_code, content={"detail": message}, headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies and path parameters are caller errors: 400, not 422
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Invalid request", "errors": errors})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": InfrastructureError.default_message})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application and its process-wide state.

    The database (connection pool), the token service and the credential
    store are created once here and handed to request handlers through
    app.state. Missing DATABASE_URL or SECRET_KEY fails here, before any
    request is served.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)

    database = Database(settings.DATABASE_URL)
    token_service = TokenService(
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )
    credential_store = CredentialStore(rounds=settings.BCRYPT_ROUNDS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create tables that don't exist yet; use migrations for schema changes
        database.create_all()
        logger.info("Storefront API started")
        yield
        database.dispose()
        logger.info("Storefront API stopped")

    app = FastAPI(
        title="Storefront API",
        description="Users, products and favorites for the storefront",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.token_service = token_service
    app.state.credential_store = credential_store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(favorites.router)
    app.include_router(products.router)

    @app.get("/health")
    def health():
        """Health check endpoint - used by monitoring/deployment tools"""
        return {"status": "healthy"}

    return app
