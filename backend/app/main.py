"""
Main FastAPI Application
Entry point for the Recce Workflow API.

This module creates and configures the FastAPI application instance,
sets up middleware and exception handlers, mounts uploaded files and
defines the root and health endpoints.
"""

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.api.docs import router as docs_router
from app.api.v1.router import api_router
from app.core.config import settings
from app.core.exceptions import AppError
from app.db.session import SessionLocal, engine
from app.middleware.cors import setup_cors
from app.middleware.error_handler import ErrorHandlerMiddleware
from app.models import Base
from app.services import user_service
from app.services.error_logging import configure_error_logging, configure_logging


logger = logging.getLogger("app")


# Create FastAPI application instance
# FastAPI's own /docs and /redoc are disabled; documentation is served at
# /api-docs behind HTTP Basic (see app.api.docs)
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    description="""
    Recce Workflow API - store branding back office.

    Features:
    - Cookie and Bearer JWT authentication with role-based permissions
    - Bulk store import from Excel
    - Recce and installation assignment, submission and review
    - Local or FTPS photo storage
    - Excel exports, PowerPoint and PDF reports
    """,
)


# Setup CORS middleware
setup_cors(app)

# Catches unhandled exceptions and logs them
app.add_middleware(ErrorHandlerMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Domain errors raised by services become {"detail": message}."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} | path={request.url.path} | detail={exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.on_event("startup")
async def startup_event():
    """
    Application startup handler.

    Tasks performed:
    - Configure console and file logging
    - Create all database tables if they don't exist
    - Seed the built-in roles and the bootstrap super admin
    - Enable database persistence of error logs
    """
    configure_logging(settings.LOGS_DIR, debug=settings.DEBUG)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    db = SessionLocal()
    try:
        added = user_service.ensure_default_roles(db)
        if added:
            logger.info(f"ROLES_SEEDED | count={added}")
        user_service.ensure_super_admin(
            db, settings.SUPERADMIN_EMAIL, settings.SUPERADMIN_PASSWORD, settings.SUPERADMIN_NAME
        )
    finally:
        db.close()

    Path(settings.UPLOADS_DIR).mkdir(parents=True, exist_ok=True)

    configure_error_logging(SessionLocal)
    logger.info(f"Storage backend: {settings.STORAGE_TYPE}")
    logger.info("API documentation available at /api-docs")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown complete")


@app.get("/health", tags=["Health"], summary="Health Check")
async def health_check():
    """Liveness probe used by container orchestrators."""
    return {"status": "OK", "version": "1.0.0", "api": settings.PROJECT_NAME}


@app.get("/", tags=["Root"], summary="API Root")
async def root():
    return {
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "version": "1.0.0",
        "docs": "/api-docs",
        "health": "/health",
    }


# Uploaded photos, referenced as uploads/<folderType>/<clientCode><storeId>/<file>
app.mount("/uploads", StaticFiles(directory=settings.UPLOADS_DIR, check_dir=False), name="uploads")

app.include_router(docs_router)

# All v1 endpoints are prefixed with /api/v1
app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")
