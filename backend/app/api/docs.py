"""
API Documentation
Swagger UI at /api-docs and the OpenAPI schema at /api-docs/openapi.json,
both behind HTTP Basic (SWAGGER_USERNAME / SWAGGER_PASSWORD).
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.core.config import settings
from app.core.security import credentials_match


basic_auth = HTTPBasic()

router = APIRouter(prefix="/api-docs", include_in_schema=False)


def require_docs_credentials(credentials: HTTPBasicCredentials = Depends(basic_auth)) -> str:
    valid = credentials_match(
        credentials.username, credentials.password, settings.SWAGGER_USERNAME, settings.SWAGGER_PASSWORD
    )
    if not valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid documentation credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


@router.get("/openapi.json")
def openapi_schema(request: Request, _: str = Depends(require_docs_credentials)):
    return JSONResponse(request.app.openapi())


@router.get("")
def swagger_ui(_: str = Depends(require_docs_credentials)):
    return get_swagger_ui_html(openapi_url="/api-docs/openapi.json", title=f"{settings.PROJECT_NAME} - Docs")
