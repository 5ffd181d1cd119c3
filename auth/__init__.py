"""Authentication and session lifecycle modules."""

from auth.exceptions import (
    AuthError,
    ConflictError,
    UnauthorizedError,
    ForbiddenError,
    InvalidTokenError,
    UniqueConstraintViolation,
)
from auth.types import (
    Role,
    User,
    PublicUser,
    TokenPair,
    SessionClaims,
    SignupRequest,
    LoginRequest,
    FederatedIdentity,
    AuthenticatedUser,
    AuthFailure,
    AuthResult,
    FederatedLoginResult,
)
from auth.config import AuthConfig
from auth.passwords import CredentialHasher
from auth.tokens import TokenSigner
from auth.session import SessionManager
from auth.database import UserStore, AuthDatabase
from auth.memory_store import MemoryUserStore
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.service import AuthService
from auth.transport import CookieTransport
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router
