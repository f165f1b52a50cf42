"""
FastAPI application entry point.

Configures logging, middleware, routes, and exception handlers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userhub.core.config import settings
from userhub.core.database import get_db, ping
from userhub.core.errors import StorageFailure, UserhubError
from userhub.core.logging_config import configure_logging

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging()
    logger.info("Starting userhub API in %s mode", settings.ENVIRONMENT)
    yield
    logger.info("Shutting down userhub API")


app = FastAPI(
    title="userhub API",
    description="Users, organizations and roles on top of an external identity provider",
    version=VERSION,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    openapi_url="/api/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

def error_response(exc: UserhubError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail()},
        headers=headers,
    )


@app.exception_handler(UserhubError)
async def userhub_exception_handler(request: Request, exc: UserhubError) -> JSONResponse:
    if exc.is_server_error:
        logger.error(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
            exc_info=exc,
        )
    return error_response(exc)


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Storage error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return error_response(StorageFailure(str(exc)))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    if settings.DEBUG:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": {
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": str(exc),
                    "type": type(exc).__name__,
                }
            },
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)) -> JSONResponse:
    try:
        await ping(db)
        database = "ok"
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Health check: database unreachable: %s", exc)
        await db.rollback()
        database = "unavailable"

    healthy = database == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ok" if healthy else "degraded",
            "database": database,
            "environment": settings.ENVIRONMENT,
            "version": VERSION,
        },
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {
        "message": "userhub API",
        "version": VERSION,
        "docs": "/api/docs" if settings.DEBUG else "disabled",
    }


from userhub.routers import auth, hooks, oauth2, organizations, users  # noqa: E402

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(hooks.router, prefix="/hooks", tags=["Hooks"])
app.include_router(users.router, prefix="/api", tags=["Users"])
app.include_router(organizations.router, prefix="/api/organizations", tags=["Organizations"])
app.include_router(oauth2.router, prefix="/api/oauth2", tags=["OAuth2"])
