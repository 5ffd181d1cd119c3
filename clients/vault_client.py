"""
HashiCorp Vault client for auth secret management.

Uses AppRole authentication and fails fast on missing configuration.
Secrets live under the 'auth/' KV v2 prefix:

    auth/database  url
    auth/jwt       access_secret, refresh_secret
"""

import os
import logging
from typing import Dict, Iterable

import hvac
from hvac.exceptions import InvalidPath, Unauthorized, Forbidden

logger = logging.getLogger(__name__)

_SECRET_PREFIX = "auth"

# Process-wide client and field cache; secrets are read once per process
_vault_client_instance: "VaultClient | None" = None
_secret_cache: Dict[str, str] = {}


def _ensure_vault_client() -> "VaultClient":
    global _vault_client_instance
    if _vault_client_instance is None:
        _vault_client_instance = VaultClient()
    return _vault_client_instance


class VaultClient:
    """AppRole-authenticated reader for the auth/ secret namespace."""

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_namespace: str | None = None,
        role_id: str | None = None,
        secret_id: str | None = None,
    ):
        """Explicit arguments win over VAULT_* environment variables."""
        self.vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        self.vault_namespace = vault_namespace or os.getenv("VAULT_NAMESPACE")
        role_id = role_id or os.getenv("VAULT_ROLE_ID")
        secret_id = secret_id or os.getenv("VAULT_SECRET_ID")

        if not self.vault_addr:
            raise ValueError("VAULT_ADDR environment variable is required")
        if not role_id or not secret_id:
            raise ValueError(
                "VAULT_ROLE_ID and VAULT_SECRET_ID environment variables are required"
            )

        client_kwargs = {"url": self.vault_addr}
        if self.vault_namespace:
            client_kwargs["namespace"] = self.vault_namespace

        self.client = hvac.Client(**client_kwargs)
        self._login(role_id, secret_id)

        if not self.client.is_authenticated():
            raise PermissionError("Vault authentication failed")

        logger.info(f"Vault client initialized: {self.vault_addr}")

    def _login(self, role_id: str, secret_id: str) -> None:
        try:
            auth_response = self.client.auth.approle.login(
                role_id=role_id,
                secret_id=secret_id,
            )
        except (Unauthorized, Forbidden, InvalidPath) as e:
            logger.error(f"AppRole authentication failed: {e}")
            raise PermissionError(f"AppRole authentication failed: {e}") from e
        self.client.token = auth_response["auth"]["client_token"]

    def read_secret(self, path: str) -> Dict[str, str]:
        """Read all fields of auth/<path>.

        Raises:
            PermissionError: Path missing or not readable with this role.
        """
        full_path = f"{_SECRET_PREFIX}/{path}"
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=full_path, raise_on_deleted_version=True
            )
        except InvalidPath:
            logger.error(f"Secret path not found: {full_path}")
            raise PermissionError(f"Secret path '{full_path}' not found in Vault")
        except (Unauthorized, Forbidden) as e:
            logger.error(f"Access denied to secret {full_path}: {e}")
            raise PermissionError(f"Access denied to secret '{full_path}': {e}")
        return response["data"]["data"]

    def get_secret(self, path: str, field: str) -> str:
        """Read one field of auth/<path>.

        Raises:
            PermissionError: Path missing or not readable.
            KeyError: Field not present in the secret.
        """
        data = self.read_secret(path)
        if field not in data:
            raise KeyError(
                f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'. "
                f"Available: {', '.join(data)}"
            )
        return data[field]


def _cached_fields(path: str, fields: Iterable[str]) -> Dict[str, str]:
    """Return requested fields of auth/<path>, hitting Vault at most once."""
    keys = {field: f"{_SECRET_PREFIX}/{path}/{field}" for field in fields}
    if not all(key in _secret_cache for key in keys.values()):
        data = _ensure_vault_client().read_secret(path)
        for field, key in keys.items():
            if field not in data:
                raise KeyError(f"Field '{field}' not found in secret '{_SECRET_PREFIX}/{path}'")
            _secret_cache[key] = data[field]
    return {field: _secret_cache[key] for field, key in keys.items()}


def get_database_url() -> str:
    """PostgreSQL connection URL."""
    return _cached_fields("database", ["url"])["url"]


def get_jwt_config() -> Dict[str, str]:
    """Token signing secrets: {'access_secret': ..., 'refresh_secret': ...}."""
    return _cached_fields("jwt", ["access_secret", "refresh_secret"])
