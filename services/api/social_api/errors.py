"""
API exceptions and their JSON rendering.

Exception hierarchy:
- AppError: base; carries the HTTP status, a stable machine-readable code and
  a human-readable message.
  - ValidationError (400) — missing or malformed input
    - InvalidIdentity (400) — a user id that is not a canonical UUID
  - Unauthorized (401) — missing, expired or invalid credentials
  - Forbidden (403) — authenticated but not the owner
  - NotFound (404) — referenced user / post / comment does not exist
  - Conflict (409) — unique field already taken
  - InternalError (500) — storage or media backend failure

Every error leaves the service as:
    {"success": false, "error": "<code>", "message": "<text>"}
"""
import logging
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    default_message = "Invalid request"


class InvalidIdentity(ValidationError):
    code = "invalid_identity"
    default_message = "Invalid user id"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    default_message = "Access denied."


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "You are not allowed to do that"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Already exists"


class InternalError(AppError):
    pass


def parse_identity(value: str) -> str:
    """Return the canonical form of a user id or raise InvalidIdentity."""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise InvalidIdentity(f"Invalid user id '{value}'") from None


def error_body(exc: AppError) -> dict:
    return {"success": False, "error": exc.code, "message": exc.message}


def _render(exc: AppError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content=error_body(exc), headers=headers)


def _describe_validation(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        # loc[0] is the source ("body", "query", "path"); the rest names the field
        field = ".".join(str(p) for p in err.get("loc", ())[1:])
        parts.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _render(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return _render(ValidationError(_describe_validation(exc)))

    @app.exception_handler(SQLAlchemyError)
    async def handle_storage_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Storage failure on %s %s", request.method, request.url.path)
        return _render(InternalError("Storage error, please retry"))
