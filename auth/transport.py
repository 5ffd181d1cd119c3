"""Deliver tokens to the caller and read them back from requests.

The service decides which tokens exist; this module is the only place that
touches cookies and headers.
"""

from starlette.requests import Request
from starlette.responses import Response

from auth.config import AuthConfig
from auth.types import TokenPair

ACCESS_TOKEN_COOKIE = "ACCESS_TOKEN"
REFRESH_TOKEN_COOKIE = "REFRESH_TOKEN"


class CookieTransport:
    """Token transport over HTTP cookies (with Bearer header fallback for access tokens)."""

    def __init__(self, config: AuthConfig):
        self._config = config

    def deliver_token_pair(self, response: Response, tokens: TokenPair) -> None:
        """Set both token cookies; max-age matches each token's lifetime."""
        self._set(response, ACCESS_TOKEN_COOKIE, tokens.access_token,
                  self._config.access_token_max_age_seconds)
        self._set(response, REFRESH_TOKEN_COOKIE, tokens.refresh_token,
                  self._config.refresh_token_max_age_seconds)

    def clear_token_pair(self, response: Response) -> None:
        """Expire both token cookies immediately."""
        self._set(response, ACCESS_TOKEN_COOKIE, "", 0)
        self._set(response, REFRESH_TOKEN_COOKIE, "", 0)

    def extract_refresh_token(self, request: Request) -> str | None:
        return request.cookies.get(REFRESH_TOKEN_COOKIE) or None

    def extract_access_token(self, request: Request) -> str | None:
        """ACCESS_TOKEN cookie, else 'Authorization: Bearer <token>'."""
        token = request.cookies.get(ACCESS_TOKEN_COOKIE)
        if token:
            return token

        scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        return None

    def _set(self, response: Response, key: str, value: str, max_age: int) -> None:
        response.set_cookie(
            key=key,
            value=value,
            max_age=max_age,
            httponly=True,
            secure=self._config.cookie_secure,
            samesite="lax",
        )
