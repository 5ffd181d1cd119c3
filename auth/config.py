"""Authentication configuration."""

from typing import Literal

from pydantic import BaseModel, Field


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Token lifetimes are in their natural units (minutes for access tokens,
    days for refresh tokens). Signing secrets are not part of this model;
    they come from Vault and are handed to SessionManager directly.
    """

    # Token settings
    access_token_expiry_minutes: int = Field(
        default=15,
        description="Access token lifetime",
        ge=1,
        le=60,
    )
    refresh_token_expiry_days: int = Field(
        default=7,
        description="Refresh token lifetime",
        ge=1,
        le=90,
    )
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = Field(
        default="HS256",
        description="HMAC algorithm used to sign both tokens",
    )

    # Argon2id cost parameters (passwords and refresh token fingerprints)
    argon2_time_cost: int = Field(default=3, ge=1)
    argon2_memory_cost_kib: int = Field(default=65536, ge=8)
    argon2_parallelism: int = Field(default=4, ge=1)

    # Federated login redirects
    client_origin: str = Field(
        default="http://localhost:3000",
        description="Where the browser lands after a federated login",
    )
    federated_failure_redirect: str = Field(
        default="http://localhost:3000/login?error=federated",
        description="Fallback location when token issuance fails on federated login",
    )

    # Cookies
    cookie_secure: bool = Field(
        default=False,
        description="Set the Secure flag on token cookies (enable behind TLS)",
    )

    @property
    def access_token_max_age_seconds(self) -> int:
        return self.access_token_expiry_minutes * 60

    @property
    def refresh_token_max_age_seconds(self) -> int:
        return self.refresh_token_expiry_days * 86400
