"""In-process UserStore for tests and local development."""

import threading
import uuid
from uuid import UUID

from auth.exceptions import UniqueConstraintViolation
from auth.types import Role, User
from utils.timezone import now_utc


class MemoryUserStore:
    """Dict-backed UserStore.

    A single RLock makes each method atomic, which gives the same
    compare-and-set guarantees as the guarded UPDATEs in AuthDatabase.
    """

    def __init__(self):
        self._users: dict[UUID, User] = {}
        self._lock = threading.RLock()

    def get_user_by_email(self, email: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return user.model_copy()
            return None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    def create_user(
        self,
        email: str,
        password_hash: str | None,
        name: str,
        role: Role = Role.STANDARD,
    ) -> User:
        with self._lock:
            if any(existing.email == email for existing in self._users.values()):
                raise UniqueConstraintViolation("email")
            now = now_utc()
            user = User(
                id=uuid.uuid4(),
                email=email,
                name=name,
                role=role,
                password_hash=password_hash,
                created_at=now,
                updated_at=now,
            )
            self._users[user.id] = user
            return user.model_copy()

    def add_user(self, user: User) -> None:
        """Insert a fully formed record, e.g. one provisioned by a federated provider."""
        with self._lock:
            if any(
                existing.email == user.email and existing.id != user.id
                for existing in self._users.values()
            ):
                raise UniqueConstraintViolation("email")
            self._users[user.id] = user.model_copy()

    def _update_hash(self, user_id: UUID, value: str | None) -> None:
        user = self._users[user_id]
        self._users[user_id] = user.model_copy(
            update={"refresh_token_hash": value, "updated_at": now_utc()}
        )

    def set_refresh_token_hash(self, user_id: UUID, value: str | None) -> bool:
        with self._lock:
            if user_id not in self._users:
                return False
            self._update_hash(user_id, value)
            return True

    def replace_refresh_token_hash(self, user_id: UUID, expected: str, new: str) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None or user.refresh_token_hash != expected:
                return False
            self._update_hash(user_id, new)
            return True

    def clear_refresh_token_hash(self, user_id: UUID) -> bool:
        with self._lock:
            user = self._users.get(user_id)
            if user is None or user.refresh_token_hash is None:
                return False
            self._update_hash(user_id, None)
            return True
