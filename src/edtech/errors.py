"""Error taxonomy and the exception handlers that render it.

Learn: Two layers of exceptions.

1. Store/crypto errors (SessionNotFound, DuplicateToken, TokenError, ...)
   are raised by services and the token issuer. They say what went wrong
   in domain terms and know nothing about HTTP.
2. ApiError subclasses carry an HTTP status and a short client-safe
   message. Endpoints and the auth gateway translate (1) into (2).

setup_exception_handlers() renders every failure as {"error": "<message>"}.
Internal details (SQL, tracebacks) go to the log, never to the client.
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

logger = structlog.get_logger()


# ─── Store-level errors ────────────────────────────────────


class StoreError(Exception):
    """Base class for data-access failures with a domain meaning."""


class NotFoundError(StoreError):
    """No row matched."""


class SessionNotFound(NotFoundError):
    """No live session for the refresh token (absent or expired)."""


class UserNotFound(NotFoundError):
    """No user with that id or email."""


class RoleNotFound(NotFoundError):
    """No role with that id or name."""


class ConstraintViolation(StoreError):
    """A uniqueness or integrity constraint rejected the write."""


class DuplicateToken(ConstraintViolation):
    """The refresh token already exists. Regenerate and retry."""


class EmailAlreadyRegistered(ConstraintViolation):
    """Another account already uses this email."""


# ─── HTTP-facing errors ────────────────────────────────────


class ApiError(Exception):
    """An error with an HTTP status and a client-safe message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "internal server error"

    def __init__(self, message: str | None = None, headers: dict | None = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "invalid request payload"


class AuthenticationFailure(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "authentication required"

    def __init__(self, message: str | None = None, headers: dict | None = None):
        super().__init__(message, headers or {"WWW-Authenticate": "Bearer"})


class PermissionDenied(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "forbidden"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "not found"


class NotFoundInternal(ApiError):
    """A record that must exist after authentication is missing."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "internal server error"


class PersistenceFailure(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "database error"


def error_response(
    status_code: int, message: str, headers: dict | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message},
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register handlers so no exception escapes past the HTTP layer."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "api.error",
            method=request.method,
            path=request.url.path,
            status=exc.status_code,
            error=exc.message,
        )
        return error_response(exc.status_code, exc.message, exc.headers)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        return error_response(
            exc.status_code, str(exc.detail), getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info(
            "api.invalid_payload",
            method=request.method,
            path=request.url.path,
            errors=len(exc.errors()),
        )
        return error_response(
            status.HTTP_400_BAD_REQUEST, ValidationError.default_message
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(
        request: Request, exc: SQLAlchemyError
    ) -> JSONResponse:
        logger.error(
            "api.database_error",
            method=request.method,
            path=request.url.path,
            exc_info=exc,
        )
        return error_response(
            PersistenceFailure.status_code, PersistenceFailure.default_message
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "api.unhandled_error",
            method=request.method,
            path=request.url.path,
            exc_info=exc,
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, ApiError.default_message
        )
