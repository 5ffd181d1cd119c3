"""Signed, expiring bearer tokens (JWT via PyJWT)."""

import uuid
from datetime import timedelta
from typing import Any

import jwt as pyjwt

from auth.exceptions import InvalidTokenError
from utils.timezone import now_utc


class TokenSigner:
    """Produce and verify HMAC-signed JWTs.

    Every token gets 'iat', 'exp' and a random 'jti', so two tokens minted
    for the same claims in the same second still differ.
    """

    REQUIRED_CLAIMS = ["exp", "iat", "sub", "jti"]

    def __init__(self, algorithm: str = "HS256"):
        self._algorithm = algorithm

    def sign(self, claims: dict[str, Any], secret: str, ttl: timedelta) -> str:
        """Sign claims with secret, expiring ttl from now."""
        now = now_utc()
        payload = {
            **claims,
            "iat": now,
            "exp": now + ttl,
            "jti": uuid.uuid4().hex,
        }
        return pyjwt.encode(payload, secret, algorithm=self._algorithm)

    def verify(self, token: str, secret: str) -> dict[str, Any]:
        """Decode and validate a token.

        Raises:
            InvalidTokenError: Signature mismatch, malformed token, missing
                claims or expired. The reason is deliberately not exposed.
        """
        try:
            return pyjwt.decode(
                token,
                secret,
                algorithms=[self._algorithm],
                options={"require": self.REQUIRED_CLAIMS},
            )
        except pyjwt.InvalidTokenError:
            raise InvalidTokenError("Invalid or expired token") from None
