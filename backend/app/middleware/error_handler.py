"""
Error Handler Middleware

Catches exceptions that escaped every route and exception handler, records
them through the error logging service and answers with a 500 carrying the
error log id so administrators can find the entry.
"""

from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.services.error_logging import error_logger, format_stack


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware that catches all unhandled exceptions and logs them.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            error_id = error_logger.log_error(
                exc,
                request=request,
                user=getattr(request.state, "user", None),
                severity="critical",
                context={"unhandled": True},
            )

            content = {
                "detail": "Internal server error",
                "errorId": str(error_id) if error_id else None,
            }
            if settings.DEBUG:
                content["error"] = str(exc)
                content["stack"] = format_stack(exc)
            return JSONResponse(status_code=500, content=content)
