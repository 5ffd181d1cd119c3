"""Argon2id hashing for passwords and refresh token fingerprints."""

import secrets
from functools import cached_property

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError

from auth.config import AuthConfig


class CredentialHasher:
    """One-way, salted, memory-hard hash + verify.

    Used both for account passwords and for refresh token fingerprints.
    verify() relies on argon2's constant-time comparison.
    """

    def __init__(self, config: AuthConfig):
        self._hasher = PasswordHasher(
            time_cost=config.argon2_time_cost,
            memory_cost=config.argon2_memory_cost_kib,
            parallelism=config.argon2_parallelism,
        )

    def hash(self, plaintext: str) -> str:
        """Hash a plaintext secret."""
        return self._hasher.hash(plaintext)

    def verify(self, hashed: str, plaintext: str) -> bool:
        """Verify a plaintext secret against a stored hash.

        Returns False on mismatch. A malformed stored hash is a data
        problem and propagates.
        """
        try:
            return self._hasher.verify(hashed, plaintext)
        except VerifyMismatchError:
            return False

    @cached_property
    def _dummy_hash(self) -> str:
        return self._hasher.hash(secrets.token_urlsafe(16))

    def verify_dummy(self, plaintext: str) -> None:
        """Spend the same work as a real verify when there is nothing to verify.

        Keeps login timing the same whether or not the email exists.
        """
        self.verify(self._dummy_hash, plaintext)
