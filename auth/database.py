"""User store: protocol and PostgreSQL implementation.

The refresh token fingerprint column is the only shared mutable state in
the auth flow. Every write to it is a single UPDATE so Postgres row locking
serialises concurrent logins, refreshes and logouts for the same user.
"""

from typing import Any, Protocol
from uuid import UUID

from psycopg2 import errors as pg_errors

from clients.postgres_client import PostgresClient
from auth.exceptions import UniqueConstraintViolation
from auth.types import Role, User
from utils.timezone import now_utc

_USER_COLUMNS = """id, email, name, role, password_hash, refresh_token_hash,
                  created_at, updated_at"""


class UserStore(Protocol):
    """Narrow interface the auth service needs from user persistence."""

    def get_user_by_email(self, email: str) -> User | None: ...

    def get_user_by_id(self, user_id: UUID) -> User | None: ...

    def create_user(
        self,
        email: str,
        password_hash: str | None,
        name: str,
        role: Role = Role.STANDARD,
    ) -> User: ...

    def set_refresh_token_hash(self, user_id: UUID, value: str | None) -> bool: ...

    def replace_refresh_token_hash(
        self, user_id: UUID, expected: str, new: str
    ) -> bool: ...

    def clear_refresh_token_hash(self, user_id: UUID) -> bool: ...


class AuthDatabase:
    """UserStore backed by the users table."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    @staticmethod
    def _to_user(row: dict[str, Any]) -> User:
        return User(
            id=UUID(row["id"]) if isinstance(row["id"], str) else row["id"],
            email=row["email"],
            name=row["name"],
            role=Role(row["role"]),
            password_hash=row["password_hash"],
            refresh_token_hash=row["refresh_token_hash"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (exact match)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s",
            (email,),
        )
        return self._to_user(row) if row else None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        """Find user by ID."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
        )
        return self._to_user(row) if row else None

    def create_user(
        self,
        email: str,
        password_hash: str | None,
        name: str,
        role: Role = Role.STANDARD,
    ) -> User:
        """Insert a new user.

        Raises:
            UniqueConstraintViolation: Email already taken. Detected by the
                unique index, not by a prior SELECT.
        """
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO users (email, password_hash, name, role)
                    VALUES (%s, %s, %s, %s)
                    RETURNING {_USER_COLUMNS}""",
                (email, password_hash, name, Role(role).value),
            )
        except pg_errors.UniqueViolation:
            raise UniqueConstraintViolation("email") from None
        return self._to_user(rows[0])

    def set_refresh_token_hash(self, user_id: UUID, value: str | None) -> bool:
        """Overwrite the stored fingerprint unconditionally (login rotation).

        Returns:
            True if the user row exists, False if no row matched.
        """
        rows = self._db.execute_returning(
            """UPDATE users
               SET refresh_token_hash = %s, updated_at = %s
               WHERE id = %s
               RETURNING id""",
            (value, now_utc(), user_id),
        )
        return len(rows) > 0

    def replace_refresh_token_hash(self, user_id: UUID, expected: str, new: str) -> bool:
        """Swap fingerprint only if it is still `expected`.

        Returns:
            True if swapped, False if another writer got there first.
        """
        rows = self._db.execute_returning(
            """UPDATE users
               SET refresh_token_hash = %s, updated_at = %s
               WHERE id = %s AND refresh_token_hash = %s
               RETURNING id""",
            (new, now_utc(), user_id, expected),
        )
        return len(rows) > 0

    def clear_refresh_token_hash(self, user_id: UUID) -> bool:
        """Null the fingerprint if one is set.

        Returns:
            True if a fingerprint was cleared, False if already null.
        """
        rows = self._db.execute_returning(
            """UPDATE users
               SET refresh_token_hash = NULL, updated_at = %s
               WHERE id = %s AND refresh_token_hash IS NOT NULL
               RETURNING id""",
            (now_utc(), user_id),
        )
        return len(rows) > 0
