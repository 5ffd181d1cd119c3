"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from api.base import error_json, ErrorCodes
from auth.exceptions import (
    AuthError,
    ConflictError,
    ForbiddenError,
    InvalidTokenError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# AuthError subclasses raised via AuthResult.unwrap() in downstream routes
_AUTH_ERROR_STATUS: dict[type[AuthError], tuple[int, str]] = {
    ConflictError: (409, ErrorCodes.ALREADY_EXISTS),
    UnauthorizedError: (401, ErrorCodes.INVALID_CREDENTIALS),
    ForbiddenError: (403, ErrorCodes.ACCESS_DENIED),
    InvalidTokenError: (401, ErrorCodes.INVALID_TOKEN),
}


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        status_code, code = _AUTH_ERROR_STATUS.get(
            type(exc), (401, ErrorCodes.NOT_AUTHENTICATED)
        )
        return error_json(status_code, code, str(exc) or "Authentication required")

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = [".".join(str(part) for part in err["loc"]) for err in exc.errors()]
        return error_json(
            422,
            ErrorCodes.VALIDATION_ERROR,
            f"Invalid fields: {', '.join(fields)}",
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return error_json(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
