"""HTTP routes for authentication."""

from typing import Callable
from uuid import UUID

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from api.base import success_response, error_json, ErrorCodes
from auth.service import AuthService
from auth.transport import CookieTransport
from auth.types import (
    AuthFailure,
    AuthResult,
    FederatedIdentity,
    LoginRequest,
    SignupRequest,
)

FederatedIdentityProvider = Callable[[Request], FederatedIdentity | None]

# (status, code) per failure. Invalid tokens at refresh are answered as
# 403 by the refresh route itself.
_FAILURE_STATUS = {
    AuthFailure.CONFLICT: (409, ErrorCodes.ALREADY_EXISTS),
    AuthFailure.UNAUTHORIZED: (401, ErrorCodes.INVALID_CREDENTIALS),
    AuthFailure.FORBIDDEN: (403, ErrorCodes.ACCESS_DENIED),
    AuthFailure.INVALID_TOKEN: (401, ErrorCodes.INVALID_TOKEN),
}


def _failure_response(result: AuthResult) -> JSONResponse:
    status_code, code = _FAILURE_STATUS[result.failure]
    return error_json(status_code, code, result.message)


def federated_identity_from_state(request: Request) -> FederatedIdentity | None:
    """Default provider: identity placed on request.state by the OAuth handshake middleware."""
    return getattr(request.state, "federated_identity", None)


def create_auth_router(
    auth_service: AuthService,
    transport: CookieTransport,
    federated_identity_provider: FederatedIdentityProvider = federated_identity_from_state,
) -> APIRouter:
    """Create auth router with injected service and transport."""
    router = APIRouter(tags=["auth"])

    def _session_owner(request: Request) -> UUID | None:
        access_token = transport.extract_access_token(request)
        if access_token:
            identified = auth_service.validate_access_token(access_token)
            if identified.ok:
                return identified.value.subject

        refresh_token = transport.extract_refresh_token(request)
        if refresh_token:
            identified = auth_service.identify_refresh_token(refresh_token)
            if identified.ok:
                return identified.value.subject
        return None

    @router.post("/signup", status_code=201)
    def signup(body: SignupRequest):
        """Create an account. 409 if the email is taken."""
        result = auth_service.signup(body)
        if not result.ok:
            return _failure_response(result)

        return success_response({"user": result.value.model_dump(mode="json")})

    @router.post("/login")
    def login(body: LoginRequest, response: Response):
        """Password login. Sets ACCESS_TOKEN and REFRESH_TOKEN cookies."""
        result = auth_service.login(body)
        if not result.ok:
            return _failure_response(result)

        transport.deliver_token_pair(response, result.value.tokens)
        return success_response(result.value.model_dump(mode="json"))

    @router.post("/refresh")
    def refresh(request: Request, response: Response):
        """Rotate the token pair using the REFRESH_TOKEN cookie."""
        refresh_token = transport.extract_refresh_token(request)
        if not refresh_token:
            return error_json(403, ErrorCodes.ACCESS_DENIED, "Access denied")

        identified = auth_service.identify_refresh_token(refresh_token)
        if not identified.ok:
            return error_json(403, ErrorCodes.INVALID_TOKEN, identified.message)

        result = auth_service.refresh_tokens(identified.value.subject, refresh_token)
        if not result.ok:
            return _failure_response(result)

        transport.deliver_token_pair(response, result.value.tokens)
        return success_response(result.value.model_dump(mode="json"))

    @router.post("/logout")
    def logout(request: Request, response: Response):
        """Logout - revoke refresh token and clear cookies.

        The caller is identified by the access token, or by the refresh
        token once the access token has expired. Always succeeds.
        """
        user_id = _session_owner(request)
        if user_id is not None:
            auth_service.logout(user_id)

        transport.clear_token_pair(response)

        return success_response({"message": "Logged out successfully"})

    @router.get("/oauth/callback")
    def federated_callback(request: Request):
        """Finish a federated login: set cookies and redirect to the client."""
        identity = federated_identity_provider(request)
        if identity is None:
            return error_json(401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        result = auth_service.federated_login(identity)

        redirect = RedirectResponse(url=result.redirect_url, status_code=303)
        if result.tokens is not None:
            transport.deliver_token_pair(redirect, result.tokens)
        return redirect

    @router.get("/me")
    async def get_current_user(request: Request):
        """Get the caller's identity from verified access token claims.

        Requires authentication (middleware sets request.state.claims).
        """
        claims = getattr(request.state, "claims", None)
        if claims is None:
            return error_json(401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        return success_response({
            "user_id": str(claims.subject),
            "email": claims.email,
            "role": claims.role.value,
        })

    return router
