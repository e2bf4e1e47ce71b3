"""
Health & Configuration Endpoints

- GET /health - Liveness probe, no authentication
- GET /config/status - Effective storage configuration (admins)
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.api.v1.deps import get_storage, require_admin
from app.core.config import settings
from app.core.permissions import AuthenticatedUser
from app.services.storage import StorageService


router = APIRouter()


@router.get("/health", summary="Health Check")
def health_check():
    return {
        "status": "OK",
        "api": settings.PROJECT_NAME,
        "version": settings.API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/config/status", summary="Storage configuration")
def config_status(
    _: AuthenticatedUser = Depends(require_admin),
    storage: StorageService = Depends(get_storage),
):
    """Storage settings in effect, password masked, plus any FTPS settings still missing."""
    config = storage.config
    return {
        "storage": config.describe(),
        "activeBackend": "ftps" if storage.ftps is not None else "local",
        "maxUploadSize": settings.MAX_UPLOAD_SIZE,
    }
