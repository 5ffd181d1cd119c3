"""Tests for AuthService - credential and session lifecycle."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock
from uuid import uuid4

import pytest

from auth.exceptions import ConflictError, ForbiddenError, UnauthorizedError
from auth.memory_store import MemoryUserStore
from auth.security_logger import SecurityEvent
from auth.service import AuthService
from auth.session import SessionManager
from auth.types import (
    AuthFailure,
    FederatedIdentity,
    LoginRequest,
    PublicUser,
    Role,
    SignupRequest,
    User,
)
from utils.timezone import now_utc


def _login(service, email="a@x.com", password="pw1"):
    return service.login(LoginRequest(email=email, password=password))


def _refresh(service, refresh_token):
    claims = service.identify_refresh_token(refresh_token).unwrap()
    return service.refresh_tokens(claims.subject, refresh_token)


class TestSignup:
    """Test account creation."""

    def test_returns_public_user(self, auth_service):
        """Signup returns the sanitized projection."""
        result = auth_service.signup(SignupRequest(email="a@x.com", password="pw1", name="Ann"))

        assert result.ok
        assert isinstance(result.value, PublicUser)
        assert result.value.email == "a@x.com"
        assert result.value.name == "Ann"
        assert result.value.role == Role.STANDARD

    def test_payload_has_no_secret_fields(self, auth_service):
        """Neither password hash nor fingerprint leaks into the response."""
        result = auth_service.signup(SignupRequest(email="a@x.com", password="pw1", name="Ann"))
        payload = result.value.model_dump()

        assert "password_hash" not in payload
        assert "refresh_token_hash" not in payload
        assert "password" not in payload

    def test_password_stored_hashed(self, auth_service, store, hasher):
        """Plaintext password is never persisted."""
        auth_service.signup(SignupRequest(email="a@x.com", password="pw1", name="Ann"))

        stored = store.get_user_by_email("a@x.com")
        assert stored.password_hash != "pw1"
        assert hasher.verify(stored.password_hash, "pw1")

    def test_duplicate_email_conflicts(self, auth_service):
        """Second signup with the same email is a conflict, whatever the other fields."""
        first = auth_service.signup(SignupRequest(email="a@x.com", password="pw1", name="Ann"))
        second = auth_service.signup(SignupRequest(email="a@x.com", password="pw2", name="Bob"))

        assert first.ok
        assert not second.ok
        assert second.failure == AuthFailure.CONFLICT
        assert second.message == "Email is already in use"

    def test_email_key_is_case_sensitive(self, auth_service):
        """Local part differing only in case is a different account."""
        auth_service.signup(SignupRequest(email="a@x.com", password="pw1", name="Ann"))
        result = auth_service.signup(SignupRequest(email="A@x.com", password="pw1", name="Ann"))

        assert result.ok

    def test_conflict_detected_by_store_not_precheck(self, config, hasher, session_manager, security_logger):
        """The service relies on create_user raising, never on a lookup first."""
        store = Mock(spec=MemoryUserStore)
        store.create_user.side_effect = MemoryUserStore().create_user
        service = AuthService(config, store, hasher, session_manager, security_logger)

        service.signup(SignupRequest(email="a@x.com", password="pw1", name="Ann"))

        store.get_user_by_email.assert_not_called()

    def test_store_failure_propagates(self, config, hasher, session_manager, security_logger):
        """Unexpected store errors are internal failures, not conflicts."""
        store = Mock(spec=MemoryUserStore)
        store.create_user.side_effect = RuntimeError("connection reset")
        service = AuthService(config, store, hasher, session_manager, security_logger)

        with pytest.raises(RuntimeError, match="connection reset"):
            service.signup(SignupRequest(email="a@x.com", password="pw1", name="Ann"))

    def test_logs_events(self, auth_service, security_logger):
        auth_service.signup(SignupRequest(email="a@x.com", password="pw1", name="Ann"))
        auth_service.signup(SignupRequest(email="a@x.com", password="pw2", name="Bob"))

        events = [c.args[0] for c in security_logger.log.call_args_list]
        assert events == [SecurityEvent.USER_CREATED, SecurityEvent.SIGNUP_CONFLICT]

    def test_email_is_case_sensitive_key(self, auth_service, store):
        """Addresses differing only in domain case are distinct accounts."""
        first = auth_service.signup(SignupRequest(email="a@X.COM", password="pw1", name="Ann"))
        second = auth_service.signup(SignupRequest(email="a@x.com", password="pw2", name="Bob"))

        assert first.ok and second.ok
        assert store.get_user_by_email("a@X.COM").name == "Ann"
        assert store.get_user_by_email("a@x.com").name == "Bob"


class TestLogin:
    """Test password login."""

    def test_success_returns_user_and_tokens(self, auth_service, registered_user):
        result = _login(auth_service)

        assert result.ok
        assert result.value.user == registered_user
        assert result.value.tokens.access_token
        assert result.value.tokens.refresh_token

    def test_wrong_password_unauthorized(self, auth_service, registered_user):
        result = _login(auth_service, password="wrong")

        assert result.failure == AuthFailure.UNAUTHORIZED
        assert result.message == "email or password incorrect"

    @pytest.mark.parametrize("password", ["pw2", "Pw1", "pw", "pw1 ", "xw1"])
    def test_one_character_off_fails(self, auth_service, registered_user, password):
        """Any password differing from the signup one is rejected."""
        assert _login(auth_service, password=password).failure == AuthFailure.UNAUTHORIZED

    def test_unknown_email_indistinguishable(self, auth_service, registered_user):
        """Unknown email and bad password give the same failure and message."""
        unknown = _login(auth_service, email="nobody@x.com")
        bad_password = _login(auth_service, password="wrong")

        assert unknown.failure == bad_password.failure
        assert unknown.message == bad_password.message

    def test_stores_fingerprint_of_new_refresh_token(self, auth_service, registered_user, store, hasher):
        result = _login(auth_service)

        stored = store.get_user_by_id(registered_user.id)
        assert stored.refresh_token_hash != result.value.tokens.refresh_token
        assert hasher.verify(stored.refresh_token_hash, result.value.tokens.refresh_token)

    def test_second_login_invalidates_first_refresh_token(self, auth_service, registered_user):
        """Login is a rotation point."""
        first = _login(auth_service).value.tokens
        second = _login(auth_service).value.tokens

        assert _refresh(auth_service, first.refresh_token).failure == AuthFailure.FORBIDDEN
        assert _refresh(auth_service, second.refresh_token).ok

    def test_user_without_password_cannot_login(self, auth_service, store):
        """Federated-only accounts have no password hash."""
        now = now_utc()
        store.add_user(User(
            id=uuid4(), email="fed@x.com", name="Fed", created_at=now, updated_at=now,
        ))

        result = _login(auth_service, email="fed@x.com", password="anything")

        assert result.failure == AuthFailure.UNAUTHORIZED

    def test_failed_login_logs_reason(self, auth_service, registered_user, security_logger):
        _login(auth_service, password="wrong")

        call = security_logger.log.call_args
        assert call.args[0] == SecurityEvent.LOGIN_FAILED
        assert call.kwargs["details"] == {"reason": "password_mismatch"}

    def test_unwrap_raises_unauthorized(self, auth_service, registered_user):
        with pytest.raises(UnauthorizedError, match="email or password incorrect"):
            _login(auth_service, password="wrong").unwrap()


class TestRefresh:
    """Test refresh token rotation."""

    def test_rotation_scenario(self, auth_service, registered_user):
        """T1 -> T2; reusing T1 is forbidden; T2 still works."""
        t1 = _login(auth_service).value.tokens.refresh_token

        first = _refresh(auth_service, t1)
        assert first.ok
        t2 = first.value.tokens.refresh_token
        assert t2 != t1

        replay = _refresh(auth_service, t1)
        assert replay.failure == AuthFailure.FORBIDDEN
        assert replay.message == "Access denied"

        assert _refresh(auth_service, t2).ok

    def test_new_token_matches_stored_fingerprint(self, auth_service, registered_user, store, hasher):
        t1 = _login(auth_service).value.tokens.refresh_token
        t2 = _refresh(auth_service, t1).value.tokens.refresh_token

        stored = store.get_user_by_id(registered_user.id).refresh_token_hash
        assert hasher.verify(stored, t2)
        assert not hasher.verify(stored, t1)

    def test_returns_sanitized_user(self, auth_service, registered_user):
        t1 = _login(auth_service).value.tokens.refresh_token
        result = _refresh(auth_service, t1)

        assert result.value.user == registered_user
        assert "refresh_token_hash" not in result.value.model_dump()["user"]

    def test_after_logout_forbidden(self, auth_service, registered_user):
        t1 = _login(auth_service).value.tokens.refresh_token
        auth_service.logout(registered_user.id)

        result = _refresh(auth_service, t1)

        assert result.failure == AuthFailure.FORBIDDEN

    def test_never_logged_in_forbidden(self, auth_service, registered_user, session_manager):
        """Validly signed token but no stored fingerprint."""
        tokens = session_manager.issue_tokens(registered_user.id, registered_user.email, registered_user.role)

        result = auth_service.refresh_tokens(registered_user.id, tokens.refresh_token)

        assert result.failure == AuthFailure.FORBIDDEN

    def test_unknown_user_forbidden(self, auth_service):
        result = auth_service.refresh_tokens(uuid4(), "whatever")

        assert result.failure == AuthFailure.FORBIDDEN

    def test_other_users_token_forbidden(self, auth_service, registered_user):
        """A token for user B does not match user A's fingerprint."""
        auth_service.signup(SignupRequest(email="b@x.com", password="pw", name="Bea"))
        _login(auth_service)
        b_token = _login(auth_service, email="b@x.com", password="pw").value.tokens.refresh_token

        result = auth_service.refresh_tokens(registered_user.id, b_token)

        assert result.failure == AuthFailure.FORBIDDEN

    def test_unwrap_raises_forbidden(self, auth_service):
        with pytest.raises(ForbiddenError):
            auth_service.refresh_tokens(uuid4(), "whatever").unwrap()

    def test_rejection_logged_with_reason(self, auth_service, registered_user, security_logger):
        t1 = _login(auth_service).value.tokens.refresh_token
        auth_service.logout(registered_user.id)
        _refresh(auth_service, t1)

        call = security_logger.log.call_args
        assert call.args[0] == SecurityEvent.REFRESH_REJECTED
        assert call.kwargs["details"] == {"reason": "no_active_session"}


class TestIdentifyRefreshToken:
    """Test signature-level identification of refresh tokens."""

    def test_returns_subject(self, auth_service, registered_user):
        t1 = _login(auth_service).value.tokens.refresh_token

        result = auth_service.identify_refresh_token(t1)

        assert result.value.subject == registered_user.id

    def test_access_token_rejected(self, auth_service, registered_user):
        """Access tokens are signed with a different secret."""
        access = _login(auth_service).value.tokens.access_token

        assert auth_service.identify_refresh_token(access).failure == AuthFailure.INVALID_TOKEN

    def test_garbage_rejected(self, auth_service):
        result = auth_service.identify_refresh_token("not.a.jwt")

        assert result.failure == AuthFailure.INVALID_TOKEN
        assert result.message == "Invalid or expired token"


class TestConcurrentRefresh:
    """Two refreshes racing with the same token: exactly one wins."""

    def test_loser_of_interleaved_race_forbidden(self, config, hasher, session_manager, security_logger):
        """Rival rotates between the loser's verify and its write."""

        class RacingStore(MemoryUserStore):
            rival = None

            def replace_refresh_token_hash(self, user_id, expected, new):
                if self.rival is not None:
                    rival, self.rival = self.rival, None
                    rival()
                return super().replace_refresh_token_hash(user_id, expected, new)

        store = RacingStore()
        service = AuthService(config, store, hasher, session_manager, security_logger)
        user = service.signup(SignupRequest(email="a@x.com", password="pw1", name="Ann")).value
        t1 = _login(service).value.tokens.refresh_token

        rival_results = []
        store.rival = lambda: rival_results.append(service.refresh_tokens(user.id, t1))

        loser = service.refresh_tokens(user.id, t1)

        assert rival_results[0].ok
        assert loser.failure == AuthFailure.FORBIDDEN
        stored = store.get_user_by_id(user.id).refresh_token_hash
        assert hasher.verify(stored, rival_results[0].value.tokens.refresh_token)

    def test_parallel_refreshes_single_winner(self, auth_service, registered_user):
        t1 = _login(auth_service).value.tokens.refresh_token

        with ThreadPoolExecutor(max_workers=6) as pool:
            results = list(pool.map(
                lambda _: auth_service.refresh_tokens(registered_user.id, t1), range(6)
            ))

        assert sum(1 for r in results if r.ok) == 1
        assert all(r.failure == AuthFailure.FORBIDDEN for r in results if not r.ok)


class TestLogout:
    """Test logout."""

    def test_clears_fingerprint(self, auth_service, registered_user, store):
        _login(auth_service)

        result = auth_service.logout(registered_user.id)

        assert result.ok
        assert result.value is True
        assert store.get_user_by_id(registered_user.id).refresh_token_hash is None

    def test_idempotent(self, auth_service, registered_user, store):
        """Logging out twice succeeds both times."""
        _login(auth_service)

        first = auth_service.logout(registered_user.id)
        second = auth_service.logout(registered_user.id)

        assert first.ok and second.ok
        assert second.value is False
        assert store.get_user_by_id(registered_user.id).refresh_token_hash is None

    def test_unknown_user_is_noop(self, auth_service):
        assert auth_service.logout(uuid4()).ok

    def test_revocation_logged_once(self, auth_service, registered_user, security_logger):
        _login(auth_service)
        security_logger.reset_mock()

        auth_service.logout(registered_user.id)
        auth_service.logout(registered_user.id)

        security_logger.log.assert_called_once_with(
            SecurityEvent.SESSION_REVOKED, user_id=registered_user.id
        )


class TestFederatedLogin:
    """Test federated login callback."""

    def test_issues_tokens_and_rotates(self, auth_service, registered_user, store, hasher, config):
        identity = FederatedIdentity(id=registered_user.id, email=registered_user.email)

        result = auth_service.federated_login(identity)

        assert result.tokens is not None
        assert result.redirect_url == config.client_origin
        stored = store.get_user_by_id(registered_user.id).refresh_token_hash
        assert hasher.verify(stored, result.tokens.refresh_token)

    def test_invalidates_previous_refresh_token(self, auth_service, registered_user):
        t1 = _login(auth_service).value.tokens.refresh_token

        auth_service.federated_login(
            FederatedIdentity(id=registered_user.id, email=registered_user.email)
        )

        assert _refresh(auth_service, t1).failure == AuthFailure.FORBIDDEN

    def test_issuance_failure_redirects_to_fallback(
        self, config, store, hasher, security_logger, registered_user
    ):
        """Signing failure is absorbed into a redirect, nothing is stored."""
        failing = Mock(spec=SessionManager)
        failing.issue_tokens.side_effect = RuntimeError("signer down")
        service = AuthService(config, store, hasher, failing, security_logger)

        result = service.federated_login(
            FederatedIdentity(id=registered_user.id, email=registered_user.email)
        )

        assert result.tokens is None
        assert result.redirect_url == config.federated_failure_redirect
        assert store.get_user_by_id(registered_user.id).refresh_token_hash is None
        assert security_logger.log.call_args.args[0] == SecurityEvent.FEDERATED_LOGIN_FAILED

    def test_unknown_identity_redirects_to_fallback(self, auth_service, store, security_logger, config):
        """No user row means no session; tokens are discarded."""
        identity = FederatedIdentity(id=uuid4(), email="ghost@x.com")

        result = auth_service.federated_login(identity)

        assert result.tokens is None
        assert result.redirect_url == config.federated_failure_redirect
        assert store.get_user_by_id(identity.id) is None
        event = security_logger.log.call_args
        assert event.args[0] == SecurityEvent.FEDERATED_LOGIN_FAILED
        assert event.kwargs["details"] == {"reason": "unknown_user"}

    def test_claims_carry_identity_role(self, auth_service, registered_user):
        identity = FederatedIdentity(id=registered_user.id, email=registered_user.email, role=Role.ADMIN)

        tokens = auth_service.federated_login(identity).tokens

        claims = auth_service.validate_access_token(tokens.access_token).value
        assert claims.role == Role.ADMIN


class TestValidateAccessToken:
    """Test access token validation."""

    def test_valid_token(self, auth_service, registered_user):
        access = _login(auth_service).value.tokens.access_token

        result = auth_service.validate_access_token(access)

        assert result.value.subject == registered_user.id
        assert result.value.email == "a@x.com"

    def test_refresh_token_not_accepted(self, auth_service, registered_user):
        refresh = _login(auth_service).value.tokens.refresh_token

        assert auth_service.validate_access_token(refresh).failure == AuthFailure.INVALID_TOKEN


class TestResultUnwrap:
    """AuthResult.unwrap maps failures to exceptions."""

    def test_conflict(self, auth_service):
        auth_service.signup(SignupRequest(email="a@x.com", password="pw1", name="Ann"))
        with pytest.raises(ConflictError):
            auth_service.signup(SignupRequest(email="a@x.com", password="pw2", name="Bob")).unwrap()
