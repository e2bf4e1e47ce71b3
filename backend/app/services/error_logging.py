"""
Error Logging Service

Two halves:
- configure_logging() wires the stdlib logging tree: console output always,
  rotating files under LOGS_DIR when the directory is writable.
- ErrorLogger records unexpected exceptions with request and user context,
  both to errors_detailed.log and to the error_logs table.

Usage:
    from app.services.error_logging import error_logger

    try:
        ...
    except Exception as e:
        error_id = error_logger.log_error(e, request=request, user=principal)
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.models.error_log import ErrorLog


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DETAILED_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("error_logging")

# Directory for file logs, None while file logging is disabled
_logs_dir: Optional[Path] = None


def _writable(directory: Path) -> bool:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        marker = directory / ".write_test"
        marker.touch()
        marker.unlink()
        return True
    except OSError:
        return False


def configure_logging(logs_dir: str, debug: bool = False) -> Optional[Path]:
    """
    Install handlers on the root logger. Safe to call more than once.

    Returns the logs directory when file logging is enabled, None otherwise.
    """
    global _logs_dir

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    if not any(getattr(h, "_recce_handler", False) for h in root.handlers):
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        console._recce_handler = True
        root.addHandler(console)

        directory = Path(logs_dir)
        if _writable(directory):
            errors = RotatingFileHandler(
                directory / "errors.log",
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=10,
                encoding="utf-8",
            )
            errors.setLevel(logging.ERROR)
            errors.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            errors._recce_handler = True

            detailed = RotatingFileHandler(
                directory / "app_detailed.log",
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
            detailed.setLevel(logging.DEBUG)
            detailed.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT))
            detailed._recce_handler = True

            root.addHandler(errors)
            root.addHandler(detailed)
            _logs_dir = directory
        else:
            logger.warning(f"LOGS_DIR_NOT_WRITABLE | dir={directory} | file logging disabled")

    return _logs_dir


# Sensitive fields to sanitize
SENSITIVE_FIELDS = {"password", "password_hash", "token", "access_token", "refresh_token",
                    "authorization", "api_key", "secret", "credential", "cookie"}


def sanitize_data(data: Any, depth: int = 0) -> Any:
    """
    Replace values of sensitive keys with '[REDACTED]', recursively.
    Strings that look like JWTs are redacted wherever they appear.
    """
    if depth > 10:
        return "[MAX_DEPTH]"

    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            key_lower = str(key).lower()
            if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = sanitize_data(value, depth + 1)
        return sanitized
    if isinstance(data, (list, tuple)):
        return [sanitize_data(item, depth + 1) for item in data]
    if isinstance(data, str) and len(data) > 20 and data.startswith("eyJ"):
        return "[REDACTED_TOKEN]"
    return data


def truncate_string(s: str, max_length: int = 10000) -> str:
    if len(s) > max_length:
        return s[:max_length] + f"... [TRUNCATED, total {len(s)} chars]"
    return s


def format_stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def _origin(exc: BaseException):
    """(module, function, line) of the innermost frame, or Nones."""
    frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    if not frames:
        return None, None, None
    last = frames[-1]
    return last.filename, last.name, str(last.lineno)


class ErrorLogger:
    """
    Error logging service that writes to both file and database.
    """

    def __init__(self):
        self.db_session_factory = None

    def set_db_session_factory(self, factory):
        self.db_session_factory = factory

    def log_error(
        self,
        error: BaseException,
        request: Optional[Any] = None,
        user: Optional[Any] = None,
        severity: str = "error",
        context: Optional[Dict] = None,
        save_to_db: bool = True,
    ) -> Optional[UUID]:
        """
        Log an error with full context.

        Args:
            error: The exception that occurred
            request: Starlette Request (optional)
            user: AuthenticatedUser or User (optional), anything with id/email
            severity: warning, error, critical
            context: Additional context data, sanitized before storage
            save_to_db: Whether to persist an ErrorLog row

        Returns:
            UUID of the stored ErrorLog, or None when not persisted
        """
        occurred_at = datetime.now(timezone.utc)
        error_type = type(error).__name__
        error_message = str(error) or error_type
        stack_trace = format_stack(error)
        module, function, line_number = _origin(error)

        parts = [
            "=== ERROR LOG ===",
            f"Timestamp: {occurred_at.isoformat()}",
            f"Type: {error_type}",
            f"Message: {error_message}",
            f"Severity: {severity}",
        ]

        request_method = request_path = request_query = client_ip = user_agent = None
        if request is not None:
            request_method = request.method
            request_path = str(request.url.path)
            request_query = str(request.url.query) or None
            client_ip = request.client.host if request.client else None
            user_agent = request.headers.get("user-agent")
            parts.extend([
                "\n=== REQUEST ===",
                f"Method: {request_method}",
                f"Path: {request_path}",
                f"Query: {request_query}",
                f"Client IP: {client_ip}",
                f"User Agent: {user_agent}",
            ])

        user_id = getattr(user, "id", None)
        user_email = getattr(user, "email", None)
        if user is not None:
            parts.extend(["\n=== USER ===", f"ID: {user_id}", f"Email: {user_email}"])

        sanitized_context = sanitize_data(context) if context else None
        if sanitized_context:
            parts.extend(["\n=== CONTEXT ===", json.dumps(sanitized_context, indent=2, default=str)])

        parts.extend(["\n=== STACK TRACE ===", stack_trace])
        buffer = truncate_string("\n".join(parts), 50000)

        log_message = (
            f"{error_type}: {error_message} | user={user_email or 'anonymous'} | path={request_path or 'N/A'}"
        )
        if severity == "critical":
            logger.critical(log_message)
        elif severity == "warning":
            logger.warning(log_message)
        else:
            logger.error(log_message)

        if _logs_dir is not None:
            try:
                with open(_logs_dir / "errors_detailed.log", "a", encoding="utf-8") as f:
                    f.write(f"\n{'=' * 80}\n{buffer}\n{'=' * 80}\n")
            except OSError as file_err:
                logger.error(f"Failed to write to error file: {file_err}")

        if not (save_to_db and self.db_session_factory):
            return None

        db = self.db_session_factory()
        try:
            entry = ErrorLog(
                occurred_at=occurred_at,
                error_type=error_type,
                status_code=str(getattr(error, "status_code", "500")),
                severity=severity,
                module=module,
                function=function,
                line_number=line_number,
                user_id=user_id,
                user_email=user_email,
                request_method=request_method,
                request_path=request_path,
                request_query=request_query,
                client_ip=client_ip,
                user_agent=truncate_string(user_agent, 500) if user_agent else None,
                message=truncate_string(error_message, 1000),
                stack_trace=truncate_string(stack_trace, 20000),
                context_data=sanitized_context,
            )
            db.add(entry)
            db.commit()
            logger.debug(f"Error logged to DB with ID: {entry.id}")
            return entry.id
        except SQLAlchemyError as db_err:
            db.rollback()
            logger.error(f"Failed to save error to database: {db_err}")
            return None
        finally:
            db.close()


# Singleton instance
error_logger = ErrorLogger()


def configure_error_logging(db_session_factory):
    """Enable database persistence. Call during app startup."""
    error_logger.set_db_session_factory(db_session_factory)
    logger.info("Error logging system configured")
