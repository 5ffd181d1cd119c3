"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class ConflictError(AuthError):
    """Identity already exists (duplicate email on signup)."""


class UnauthorizedError(AuthError):
    """
    Credentials rejected at login.

    Message is intentionally generic: never reveal whether the email
    or the password was wrong.
    """


class ForbiddenError(AuthError):
    """Refresh token fingerprint missing, mismatched or rotated away."""


class InvalidTokenError(AuthError):
    """
    Token signature, structure or expiry check failed.

    Raised by the token signer. Callers must not tell the user which
    check failed.
    """


class UniqueConstraintViolation(Exception):
    """Raised by a user store when a unique column (email) is violated."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Unique constraint violated on '{field}'")
