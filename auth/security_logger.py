"""Security event logging for the auth audit trail.

Append-only log to the security_events table. Never record passwords,
tokens or fingerprints; details carry reasons only.
"""

from enum import Enum
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc


class SecurityEvent(Enum):
    """Auth security event types."""

    USER_CREATED = "user_created"
    SIGNUP_CONFLICT = "signup_conflict"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    TOKENS_REFRESHED = "tokens_refreshed"
    REFRESH_REJECTED = "refresh_rejected"
    SESSION_REVOKED = "session_revoked"
    FEDERATED_LOGIN = "federated_login"
    FEDERATED_LOGIN_FAILED = "federated_login_failed"


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Log security event to database."""
        self._db.execute_returning(
            """INSERT INTO security_events
               (event_type, email, user_id, details, created_at)
               VALUES (%s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                email,
                str(user_id) if user_id else None,
                Json(details) if details else None,
                now_utc(),
            ),
        )
