"""Token pair issuance and verification.

Access and refresh tokens are signed with separate secrets. Issuing a pair
has no side effects: committing the refresh token fingerprint as the session
of record is the caller's job (see AuthService).
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from uuid import UUID

from auth.config import AuthConfig
from auth.exceptions import InvalidTokenError
from auth.tokens import TokenSigner
from auth.types import Role, SessionClaims, TokenPair
from utils.timezone import from_timestamp


class SessionManager:
    """Token pair lifecycle: mint and verify.

    Both tokens of a pair carry the same claims ({sub, email, role}) and are
    signed concurrently. If either signing fails, the pair is not issued.
    """

    def __init__(
        self,
        signer: TokenSigner,
        config: AuthConfig,
        access_secret: str,
        refresh_secret: str,
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("Both access and refresh secrets are required")
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh secrets must differ")

        self._signer = signer
        self._config = config
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self._access_ttl = timedelta(minutes=config.access_token_expiry_minutes)
        self._refresh_ttl = timedelta(days=config.refresh_token_expiry_days)

    def issue_tokens(self, user_id: UUID, email: str, role: Role) -> TokenPair:
        """Sign a new access/refresh token pair for the given identity."""
        claims = {
            "sub": str(user_id),
            "email": email,
            "role": Role(role).value,
        }

        with ThreadPoolExecutor(max_workers=2) as pool:
            access = pool.submit(
                self._signer.sign, claims, self._access_secret, self._access_ttl
            )
            refresh = pool.submit(
                self._signer.sign, claims, self._refresh_secret, self._refresh_ttl
            )
            # .result() re-raises a signing failure; partial pairs never escape
            return TokenPair(
                access_token=access.result(),
                refresh_token=refresh.result(),
            )

    def verify_access_token(self, token: str) -> SessionClaims:
        """Verify an access token.

        Raises:
            InvalidTokenError: If token invalid or expired.
        """
        return self._claims(self._signer.verify(token, self._access_secret))

    def verify_refresh_token(self, token: str) -> SessionClaims:
        """Verify a refresh token's signature and expiry.

        This does not check the stored fingerprint; only AuthService can
        decide whether the token is still the session of record.

        Raises:
            InvalidTokenError: If token invalid or expired.
        """
        return self._claims(self._signer.verify(token, self._refresh_secret))

    def _claims(self, payload: dict) -> SessionClaims:
        try:
            return SessionClaims(
                subject=UUID(payload["sub"]),
                email=payload["email"],
                role=Role(payload["role"]),
                expires_at=from_timestamp(payload["exp"]),
                token_id=payload["jti"],
            )
        except (KeyError, ValueError):
            raise InvalidTokenError("Invalid or expired token") from None
