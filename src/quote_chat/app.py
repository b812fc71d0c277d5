"""Application entry point for the quote chat provisioning service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error forwarding when a DSN is configured
- **Provider client** and **role configuration**, built once and shared
- **FastAPI** routes for provisioning, health checks and Prometheus metrics
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from quote_chat.api.routes import register_error_handlers, router
from quote_chat.config import ChatRoleConfig, Settings, get_settings, validate_credentials
from quote_chat.domain.errors import ConfigurationError
from quote_chat.health import register_health_routes
from quote_chat.observability.metrics import setup_metrics
from quote_chat.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from quote_chat.observability.sentry import get_sentry_processor, init_sentry
from quote_chat.provider.client import ConversationsClient
from quote_chat.state.schema import connect_chat_db, init_chat_tables

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Insert the Sentry processor before the renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def build_provider(settings: Settings) -> tuple[ConversationsClient | None, ChatRoleConfig | None]:
    """Build the shared provider client and role configuration.

    In production a missing value is fatal.  In development the service
    still starts (health checks work) and chat routes answer 500.
    """
    try:
        return ConversationsClient.from_settings(settings), ChatRoleConfig.from_settings(settings)
    except ConfigurationError as exc:
        if settings.production:
            raise
        logger.warning("chat_provider_unconfigured", error=str(exc))
        return None, None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Prepare the chat database on startup.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    db_path = app.state.settings.chat_db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect_chat_db(db_path)
    try:
        init_chat_tables(conn)
    finally:
        conn.close()
    logger.info("quote_chat_starting", chat_db_path=str(db_path))
    yield
    logger.info("quote_chat_stopped")


def create_app(
    settings: Settings,
    provider: ConversationsClient | None = None,
    role_config: ChatRoleConfig | None = None,
) -> FastAPI:
    """Create the FastAPI app with lifespan, chat routes, health and metrics.

    Args:
        settings: The loaded application settings.
        provider: Shared messaging provider client.
        role_config: Provider role SIDs per participant role.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Quote Chat", lifespan=lifespan)
    fastapi_app.state.settings = settings
    fastapi_app.state.provider = provider
    fastapi_app.state.role_config = role_config

    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(router)
    register_error_handlers(fastapi_app)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


def main() -> None:
    """Main entry point.

    1. Load settings and configure logging (with Sentry when configured)
    2. Validate provider credentials
    3. Build the shared provider client and role configuration
    4. Serve the FastAPI app with uvicorn
    """
    settings = get_settings()
    sentry_enabled = init_sentry(settings.sentry_dsn, production=settings.production)
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("application_starting")

    validate_credentials(settings)
    provider, role_config = build_provider(settings)

    fastapi_app = create_app(settings, provider, role_config)
    uvicorn.run(fastapi_app, host="0.0.0.0", port=settings.http_port, log_level="info")


if __name__ == "__main__":
    main()
