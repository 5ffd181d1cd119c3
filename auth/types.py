"""Pydantic models and result types for the auth domain."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar
from uuid import UUID

from email_validator import validate_email
from pydantic import BaseModel, Field, field_validator

from auth.exceptions import (
    AuthError,
    ConflictError,
    ForbiddenError,
    InvalidTokenError,
    UnauthorizedError,
)

T = TypeVar("T")


def _validate_email(value: str) -> str:
    """Reject malformed addresses; the accepted address is returned exactly as given.

    Email is a case-sensitive key, so no part of it is normalized.
    """
    validate_email(value, check_deliverability=False)
    return value


class Role(str, Enum):
    """Authorization role carried in token claims."""

    STANDARD = "standard"
    ADMIN = "admin"


class User(BaseModel):
    """Full user record as held by the user store.

    Contains secrets (password hash, refresh token fingerprint).
    Never return this to a caller; project it with PublicUser.from_user.
    """

    id: UUID
    email: str
    name: str
    role: Role = Role.STANDARD
    password_hash: str | None = None
    refresh_token_hash: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PublicUser(BaseModel):
    """User fields safe to expose to callers."""

    id: UUID
    email: str
    name: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(id=user.id, email=user.email, name=user.name, role=user.role)


class TokenPair(BaseModel):
    """Access + refresh token issued together. Never persisted."""

    access_token: str
    refresh_token: str


class SessionClaims(BaseModel):
    """Decoded payload of a verified token."""

    subject: UUID
    email: str
    role: Role
    expires_at: datetime
    token_id: str = Field(..., description="Unique per token (jti)")


class SignupRequest(BaseModel):
    """Request payload for signup."""

    email: str
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _validate_email(value)


class LoginRequest(BaseModel):
    """Request payload for password login."""

    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _validate_email(value)


class FederatedIdentity(BaseModel):
    """Identity already authenticated by an external provider."""

    id: UUID
    email: str
    role: Role = Role.STANDARD

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _validate_email(value)


class AuthenticatedUser(BaseModel):
    """User info and fresh tokens returned after login or refresh."""

    user: PublicUser
    tokens: TokenPair


class AuthFailure(str, Enum):
    """Expected, non-internal failure outcomes."""

    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    INVALID_TOKEN = "invalid_token"


_FAILURE_ERRORS: dict[AuthFailure, type[AuthError]] = {
    AuthFailure.CONFLICT: ConflictError,
    AuthFailure.UNAUTHORIZED: UnauthorizedError,
    AuthFailure.FORBIDDEN: ForbiddenError,
    AuthFailure.INVALID_TOKEN: InvalidTokenError,
}


@dataclass(frozen=True)
class AuthResult(Generic[T]):
    """Outcome of an auth operation: a value or a known failure.

    Internal failures are not represented here; they propagate as exceptions.
    """

    value: T | None = None
    failure: AuthFailure | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> "AuthResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, failure: AuthFailure, message: str) -> "AuthResult[T]":
        return cls(failure=failure, message=message)

    def unwrap(self) -> T:
        """Return the value or raise the AuthError matching the failure."""
        if self.failure is not None:
            raise _FAILURE_ERRORS[self.failure](self.message)
        return self.value


@dataclass
class FederatedLoginResult:
    """Result of a federated login callback.

    tokens is None when issuance failed; the caller is redirected either way.
    """

    tokens: TokenPair | None
    redirect_url: str
