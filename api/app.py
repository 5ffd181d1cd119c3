"""FastAPI application factory."""

import logging

from fastapi import FastAPI

from api.base import success_response
from api.errors import register_error_handlers
from auth.api import FederatedIdentityProvider, create_auth_router, federated_identity_from_state
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.passwords import CredentialHasher
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from auth.tokens import TokenSigner
from auth.transport import CookieTransport
from clients.postgres_client import PostgresClient
from clients.vault_client import get_database_url, get_jwt_config

logger = logging.getLogger(__name__)


def create_app(
    auth_service: AuthService,
    transport: CookieTransport,
    federated_identity_provider: FederatedIdentityProvider = federated_identity_from_state,
) -> FastAPI:
    """Assemble the app around already-built collaborators."""
    app = FastAPI(title="Auth")

    register_error_handlers(app)
    app.add_middleware(AuthMiddleware, auth_service=auth_service, transport=transport)
    app.include_router(
        create_auth_router(auth_service, transport, federated_identity_provider),
        prefix="/auth",
    )

    @app.get("/health")
    async def health():
        return success_response({"status": "ok"})

    return app


def build_auth_service(
    config: AuthConfig,
    postgres: PostgresClient,
    access_secret: str,
    refresh_secret: str,
) -> AuthService:
    """Wire AuthService against PostgreSQL."""
    return AuthService(
        config=config,
        store=AuthDatabase(postgres),
        hasher=CredentialHasher(config),
        session_manager=SessionManager(
            TokenSigner(config.jwt_algorithm),
            config,
            access_secret=access_secret,
            refresh_secret=refresh_secret,
        ),
        security_logger=SecurityLogger(postgres),
    )


def create_production_app(config: AuthConfig | None = None) -> FastAPI:
    """App with secrets and database URL read from Vault."""
    config = config or AuthConfig()
    secrets = get_jwt_config()
    postgres = PostgresClient(get_database_url())

    service = build_auth_service(
        config,
        postgres,
        access_secret=secrets["access_secret"],
        refresh_secret=secrets["refresh_secret"],
    )
    logger.info("Auth service configured")

    return create_app(service, CookieTransport(config))
