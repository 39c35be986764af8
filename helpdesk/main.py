"""
Main FastAPI application.

WHY: This is the entry point for the application. It configures logging,
middleware, routes, exception handlers and the blob storage client.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from helpdesk.core.config import settings
from helpdesk.core.exceptions import AppException
from helpdesk.core.exception_handlers import (
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    integrity_error_handler,
    generic_exception_handler,
)
from helpdesk.core.logging_config import configure_logging
from helpdesk.db.session import engine
from helpdesk.middleware import RequestContextMiddleware
from helpdesk.api import priorities, tags, tickets
from helpdesk.services.storage import S3BlobStorage


logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    WHY: Factory pattern allows easier testing with different configurations.

    Returns:
        Configured FastAPI application instance
    """
    configure_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Helpdesk ticket lifecycle API",
        version=settings.VERSION,
        docs_url=f"{settings.API_PREFIX}/docs",
        redoc_url=f"{settings.API_PREFIX}/redoc",
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
    )
    app.state.blob_storage = None

    # Register exception handlers
    # Every failure leaves the API in the same envelope as AppException.to_dict()
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Request IDs and per-request log lines
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        """
        Health check endpoint.

        Does not touch the database or storage; load balancers only need
        to know the process is serving.
        """
        return {
            "status": "healthy",
            "version": settings.VERSION,
        }

    @app.on_event("startup")
    async def startup_event():
        """Build the blob storage client once per process."""
        app.state.blob_storage = S3BlobStorage.from_settings(settings)
        logger.info("Blob storage ready (bucket=%s)", settings.S3_BUCKET)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close the storage client and release pooled DB connections."""
        storage = app.state.blob_storage
        if storage is not None:
            storage.close()
            app.state.blob_storage = None
        await engine.dispose()

    # Register API routers
    # priorities before tickets so /tickets/priorities is not read as /tickets/{ticket_id}
    app.include_router(priorities.router, prefix=settings.API_PREFIX)
    app.include_router(tickets.router, prefix=settings.API_PREFIX)
    app.include_router(tickets.admin_router, prefix=settings.API_PREFIX)
    app.include_router(tags.router, prefix=settings.API_PREFIX)

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    # `python -m helpdesk.main` for development; use `uvicorn helpdesk.main:app` in production
    uvicorn.run(
        "helpdesk.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning",
    )
