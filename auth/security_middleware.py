"""Security middleware for FastAPI - access token validation and user context."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from api.base import error_json, ErrorCodes
from auth.service import AuthService
from auth.transport import CookieTransport
from utils.user_context import set_current_claims, clear_current_claims


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the access token and sets user context.

    For protected routes:
    1. Extracts access token (ACCESS_TOKEN cookie or Bearer header)
    2. Verifies it via AuthService
    3. Sets claims/user_id/role in request.state and user context
    4. Clears context after request completes

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/auth/signup",
        "/auth/login",
        "/auth/refresh",
        "/auth/logout",
        "/auth/oauth/",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, auth_service: AuthService, transport: CookieTransport):
        super().__init__(app)
        self._auth_service = auth_service
        self._transport = transport

    def _is_public_path(self, path: str) -> bool:
        """Exact match, or prefix match for entries ending in '/'."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path:
                return True
            if public_path.endswith("/") and path.startswith(public_path):
                return True
        return False

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        if self._is_public_path(request.url.path):
            return await call_next(request)

        access_token = self._transport.extract_access_token(request)
        if not access_token:
            return error_json(401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        result = self._auth_service.validate_access_token(access_token)
        if not result.ok:
            return error_json(401, ErrorCodes.INVALID_TOKEN, result.message)

        claims = result.value
        set_current_claims(claims)
        request.state.claims = claims
        request.state.user_id = claims.subject
        request.state.role = claims.role

        try:
            return await call_next(request)
        finally:
            clear_current_claims()
