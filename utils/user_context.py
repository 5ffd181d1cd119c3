"""Propagate the authenticated caller's claims through the call stack using contextvars."""

from contextvars import ContextVar
from contextlib import contextmanager
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from auth.types import SessionClaims

_current_claims: ContextVar["SessionClaims | None"] = ContextVar("current_claims", default=None)


def get_current_claims() -> "SessionClaims":
    """
    Get claims of the current caller.

    Raises RuntimeError if no user context is set.
    If you're in a code path that requires an authenticated caller
    and it's not set, that's a bug.
    """
    claims = _current_claims.get()
    if claims is None:
        raise RuntimeError(
            "No user context set. This usually means you're calling "
            "user-scoped code outside of an authenticated request."
        )
    return claims


def get_current_user_id() -> UUID:
    """Shortcut for the subject of the current claims."""
    return get_current_claims().subject


def set_current_claims(claims: "SessionClaims") -> None:
    """
    Set current caller claims in context.

    Called by auth middleware after verifying the access token.
    """
    _current_claims.set(claims)


def clear_current_claims() -> None:
    """
    Clear user context.

    Must be called in finally block to prevent context leakage.
    """
    _current_claims.set(None)


@contextmanager
def user_context(claims: "SessionClaims"):
    """
    Context manager for temporarily setting the caller.

    Useful for tests and for services acting on behalf of a user
    (e.g. the payment service reading user id and role).
    """
    previous = _current_claims.get()
    set_current_claims(claims)
    try:
        yield
    finally:
        if previous is None:
            clear_current_claims()
        else:
            set_current_claims(previous)
