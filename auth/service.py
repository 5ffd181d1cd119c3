"""Authentication service - orchestrates the credential and session lifecycle."""

import logging
from uuid import UUID

from auth.config import AuthConfig
from auth.database import UserStore
from auth.exceptions import InvalidTokenError, UniqueConstraintViolation
from auth.passwords import CredentialHasher
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.session import SessionManager
from auth.types import (
    AuthenticatedUser,
    AuthFailure,
    AuthResult,
    FederatedIdentity,
    FederatedLoginResult,
    LoginRequest,
    PublicUser,
    Role,
    SessionClaims,
    SignupRequest,
    TokenPair,
    User,
)

logger = logging.getLogger(__name__)

CREDENTIALS_ERROR = "email or password incorrect"
CONFLICT_ERROR = "Email is already in use"
ACCESS_DENIED_ERROR = "Access denied"
INVALID_TOKEN_ERROR = "Invalid or expired token"


class AuthService:
    """Orchestrates signup, login, refresh, logout and federated login.

    Session state lives entirely in the user store as a single argon2
    fingerprint of the current refresh token. Every successful login,
    refresh or federated login overwrites it (rotation), so any earlier
    refresh token stops matching. Logout clears it.

    Expected failures come back as AuthResult failures. Anything else
    (store down, hasher misconfigured) propagates to the caller.
    """

    def __init__(
        self,
        config: AuthConfig,
        store: UserStore,
        hasher: CredentialHasher,
        session_manager: SessionManager,
        security_logger: SecurityLogger,
    ):
        self._config = config
        self._store = store
        self._hasher = hasher
        self._session_manager = session_manager
        self._security_logger = security_logger

    def signup(self, request: SignupRequest) -> AuthResult[PublicUser]:
        """Create an account.

        Uniqueness is left to the store's constraint rather than checked
        first, so two concurrent signups for one email cannot both win.
        """
        password_hash = self._hasher.hash(request.password)

        try:
            user = self._store.create_user(
                email=request.email,
                password_hash=password_hash,
                name=request.name,
            )
        except UniqueConstraintViolation:
            self._security_logger.log(SecurityEvent.SIGNUP_CONFLICT, email=request.email)
            return AuthResult.fail(AuthFailure.CONFLICT, CONFLICT_ERROR)

        self._security_logger.log(SecurityEvent.USER_CREATED, email=user.email, user_id=user.id)
        logger.info(f"User created: {user.id}")

        return AuthResult.success(PublicUser.from_user(user))

    def login(self, request: LoginRequest) -> AuthResult[AuthenticatedUser]:
        """Password login.

        Flow:
        1. Look up user by email
        2. Verify password (unknown email still pays for a verify)
        3. Issue token pair and overwrite the stored fingerprint
        4. Log security event

        Unknown email and wrong password produce the same failure.
        """
        user = self._store.get_user_by_email(request.email)

        if user is None:
            self._hasher.verify_dummy(request.password)
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=request.email,
                details={"reason": "user_not_found"},
            )
            return AuthResult.fail(AuthFailure.UNAUTHORIZED, CREDENTIALS_ERROR)

        if user.password_hash is None:
            matches = False
            self._hasher.verify_dummy(request.password)
        else:
            matches = self._hasher.verify(user.password_hash, request.password)

        if not matches:
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=user.email,
                user_id=user.id,
                details={"reason": "password_mismatch"},
            )
            return AuthResult.fail(AuthFailure.UNAUTHORIZED, CREDENTIALS_ERROR)

        tokens = self._issue_and_commit(user.id, user.email, user.role)

        self._security_logger.log(SecurityEvent.LOGIN_SUCCEEDED, email=user.email, user_id=user.id)
        logger.info(f"User logged in: {user.id}")

        return AuthResult.success(
            AuthenticatedUser(user=PublicUser.from_user(user), tokens=tokens)
        )

    def identify_refresh_token(self, refresh_token: str) -> AuthResult[SessionClaims]:
        """Read the user id out of a refresh token whose signature checks out.

        Only proves the token was minted by us and has not expired; whether
        it is still the session of record is decided by refresh_tokens().
        """
        try:
            claims = self._session_manager.verify_refresh_token(refresh_token)
        except InvalidTokenError:
            self._security_logger.log(
                SecurityEvent.REFRESH_REJECTED,
                details={"reason": "invalid_token"},
            )
            return AuthResult.fail(AuthFailure.INVALID_TOKEN, INVALID_TOKEN_ERROR)
        return AuthResult.success(claims)

    def refresh_tokens(self, user_id: UUID, refresh_token: str) -> AuthResult[AuthenticatedUser]:
        """Exchange the current refresh token for a new pair.

        Flow:
        1. Load user; no stored fingerprint means logged out
        2. Verify presented token against stored fingerprint
        3. Issue new pair, swap fingerprint only if unchanged since step 1
        4. Log security event

        A caller that loses a race with another refresh, login or logout
        for the same user is rejected and must log in again.
        """
        user = self._store.get_user_by_id(user_id)

        if user is None or user.refresh_token_hash is None:
            return self._reject_refresh(user, user_id, "no_active_session")

        if not self._hasher.verify(user.refresh_token_hash, refresh_token):
            return self._reject_refresh(user, user_id, "fingerprint_mismatch")

        tokens = self._session_manager.issue_tokens(user.id, user.email, user.role)
        new_hash = self._hasher.hash(tokens.refresh_token)

        if not self._store.replace_refresh_token_hash(user.id, user.refresh_token_hash, new_hash):
            return self._reject_refresh(user, user_id, "concurrent_rotation")

        self._security_logger.log(SecurityEvent.TOKENS_REFRESHED, email=user.email, user_id=user.id)
        logger.info(f"Tokens refreshed: {user.id}")

        return AuthResult.success(
            AuthenticatedUser(user=PublicUser.from_user(user), tokens=tokens)
        )

    def _reject_refresh(
        self, user: User | None, user_id: UUID, reason: str
    ) -> AuthResult[AuthenticatedUser]:
        self._security_logger.log(
            SecurityEvent.REFRESH_REJECTED,
            email=user.email if user else None,
            user_id=user_id,
            details={"reason": reason},
        )
        logger.warning(f"Refresh rejected for {user_id}: {reason}")
        return AuthResult.fail(AuthFailure.FORBIDDEN, ACCESS_DENIED_ERROR)

    def logout(self, user_id: UUID) -> AuthResult[bool]:
        """Revoke the user's refresh token.

        Idempotent. Value is True if a session was revoked, False if the
        user was already logged out.
        """
        revoked = self._store.clear_refresh_token_hash(user_id)

        if revoked:
            self._security_logger.log(SecurityEvent.SESSION_REVOKED, user_id=user_id)
            logger.info(f"Session revoked: {user_id}")

        return AuthResult.success(revoked)

    def federated_login(self, identity: FederatedIdentity) -> FederatedLoginResult:
        """Issue tokens for an identity authenticated by an external provider.

        A token issuance failure, or an identity with no user record, sends
        the caller to the fallback location instead of raising. Other store
        failures after issuance still propagate.
        """
        try:
            tokens = self._session_manager.issue_tokens(identity.id, identity.email, identity.role)
        except Exception:
            logger.exception(f"Token issuance failed for federated login: {identity.id}")
            return self._federated_failure(identity, "token_issuance_failed")

        if not self._store.set_refresh_token_hash(
            identity.id, self._hasher.hash(tokens.refresh_token)
        ):
            logger.warning(f"Federated login for unknown user: {identity.id}")
            return self._federated_failure(identity, "unknown_user")

        self._security_logger.log(
            SecurityEvent.FEDERATED_LOGIN,
            email=identity.email,
            user_id=identity.id,
        )
        logger.info(f"Federated login: {identity.id}")

        return FederatedLoginResult(tokens=tokens, redirect_url=self._config.client_origin)

    def _federated_failure(self, identity: FederatedIdentity, reason: str) -> FederatedLoginResult:
        self._security_logger.log(
            SecurityEvent.FEDERATED_LOGIN_FAILED,
            email=identity.email,
            user_id=identity.id,
            details={"reason": reason},
        )
        return FederatedLoginResult(
            tokens=None,
            redirect_url=self._config.federated_failure_redirect,
        )

    def validate_access_token(self, access_token: str) -> AuthResult[SessionClaims]:
        """Verify an access token and return its claims."""
        try:
            return AuthResult.success(self._session_manager.verify_access_token(access_token))
        except InvalidTokenError:
            return AuthResult.fail(AuthFailure.INVALID_TOKEN, INVALID_TOKEN_ERROR)

    def _issue_and_commit(self, user_id: UUID, email: str, role: Role) -> TokenPair:
        """Mint a pair and make its refresh token the session of record."""
        tokens = self._session_manager.issue_tokens(user_id, email, role)
        if not self._store.set_refresh_token_hash(user_id, self._hasher.hash(tokens.refresh_token)):
            raise LookupError(f"User {user_id} no longer exists")
        return tokens
