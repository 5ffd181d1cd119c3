"""Shared test fixtures for the auth test suite.

Everything runs in-process: MemoryUserStore stands in for PostgreSQL and the
security logger is a mock. Argon2 costs are turned down so hashing is fast.
"""

from unittest.mock import Mock

import pytest

from auth.config import AuthConfig
from auth.memory_store import MemoryUserStore
from auth.passwords import CredentialHasher
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.session import SessionManager
from auth.tokens import TokenSigner
from auth.transport import CookieTransport
from auth.types import SignupRequest
from utils.user_context import clear_current_claims


# =============================================================================
# TEST CONSTANTS
# =============================================================================

ACCESS_SECRET = "test-access-secret-0123456789abcdef0123456789"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef012345678"

TEST_EMAIL = "a@x.com"
TEST_PASSWORD = "pw1"
TEST_NAME = "Ann"


# =============================================================================
# CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_claims()
    yield
    clear_current_claims()


# =============================================================================
# AUTH FIXTURES
# =============================================================================


@pytest.fixture
def config():
    """Auth config with cheap argon2 parameters."""
    return AuthConfig(
        argon2_time_cost=1,
        argon2_memory_cost_kib=8,
        argon2_parallelism=1,
        client_origin="https://app.test.example.com",
        federated_failure_redirect="https://app.test.example.com/login?error=federated",
    )


@pytest.fixture
def hasher(config):
    return CredentialHasher(config)


@pytest.fixture
def signer(config):
    return TokenSigner(config.jwt_algorithm)


@pytest.fixture
def session_manager(signer, config):
    return SessionManager(
        signer,
        config,
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
    )


@pytest.fixture
def store():
    return MemoryUserStore()


@pytest.fixture
def security_logger():
    """Mock security logger - no database writes in tests."""
    return Mock(spec=SecurityLogger)


@pytest.fixture
def auth_service(config, store, hasher, session_manager, security_logger):
    return AuthService(
        config=config,
        store=store,
        hasher=hasher,
        session_manager=session_manager,
        security_logger=security_logger,
    )


@pytest.fixture
def transport(config):
    return CookieTransport(config)


@pytest.fixture
def registered_user(auth_service):
    """A signed-up user (a@x.com / pw1)."""
    result = auth_service.signup(
        SignupRequest(email=TEST_EMAIL, password=TEST_PASSWORD, name=TEST_NAME)
    )
    assert result.ok
    return result.value
