"""
FastAPI application for the user administration service.

create_app() is the composition root: it wires settings, storage,
hasher, token issuer and notifier into the services the routers use.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from useradmin.api.errors import register_error_handlers
from useradmin.api.logging_config import configure_logging
from useradmin.auth.passwords import PasswordHasher
from useradmin.auth.routes import router as auth_router
from useradmin.auth.service import AuthService
from useradmin.auth.tokens import TokenIssuer
from useradmin.config import Settings, get_settings
from useradmin.integrations.email import EmailService
from useradmin.integrations.sentry import init_sentry
from useradmin.roles.routes import router as roles_router
from useradmin.roles.service import RoleService
from useradmin.storage import StorageProvider, create_storage
from useradmin.users.routes import router as users_router
from useradmin.users.service import UserService

logger = logging.getLogger(__name__)


# =============================================================================
# Container
# =============================================================================


@dataclass
class Container:
    """Everything a request handler may reach, built once per app."""

    settings: Settings
    storage: StorageProvider
    hasher: PasswordHasher
    tokens: TokenIssuer
    notifier: EmailService
    auth: AuthService
    roles: RoleService
    users: UserService


def build_container(settings: Settings, storage: StorageProvider | None = None) -> Container:
    if storage is None:
        storage = create_storage(settings.database_url, echo=settings.database_echo)

    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenIssuer(
        secret=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_minutes=settings.jwt_access_token_expire_minutes,
    )
    notifier = EmailService(settings)

    return Container(
        settings=settings,
        storage=storage,
        hasher=hasher,
        tokens=tokens,
        notifier=notifier,
        auth=AuthService(
            accounts=storage.accounts,
            roles=storage.roles,
            hasher=hasher,
            tokens=tokens,
            notifier=notifier,
            default_role=settings.default_role,
            reset_token_ttl=timedelta(minutes=settings.password_reset_expire_minutes),
        ),
        roles=RoleService(storage.roles),
        users=UserService(
            accounts=storage.accounts,
            roles=storage.roles,
            hasher=hasher,
            notifier=notifier,
            default_role=settings.default_role,
        ),
    )


# =============================================================================
# App Setup
# =============================================================================


def create_app(
    settings: Settings | None = None,
    storage: StorageProvider | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    container = build_container(settings, storage)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize and cleanup app resources."""
        configure_logging(settings.log_level)

        if init_sentry(settings):
            logger.info("Sentry error tracking enabled")

        await container.storage.initialize()
        seeded = await container.roles.initialize_default_roles()
        if seeded:
            logger.info(f"Seeded roles: {', '.join(r.name for r in seeded)}")

        logger.info(f"User admin API starting in {settings.environment} mode")

        yield

        await container.storage.close()
        logger.info("User admin API shutting down")

    app = FastAPI(
        title="User Admin API",
        description="Accounts, roles and bearer-token authentication",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(roles_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "useradmin-api"}

    return app
