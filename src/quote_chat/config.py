"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, a ``validate_credentials()``
startup gate, and the immutable ``ChatRoleConfig`` that is built once at
startup and injected into the participant manager.

IMPORTANT: This module imports only ``quote_chat.domain.errors`` from the
package to prevent circular imports.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from quote_chat.domain.errors import ConfigurationError
from quote_chat.domain.types import ParticipantRole

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    http_port: int = 8000

    # -- Storage ---------------------------------------------------------------
    chat_db_path: Path = Path("data/chat.db")

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""

    # -- Twilio Conversations ----------------------------------------------------
    twilio_account_sid: str = ""
    twilio_api_key: str = ""
    twilio_api_secret: SecretStr = SecretStr("")
    twilio_conversations_service_sid: str = ""
    twilio_role_client_sid: str = ""
    twilio_role_shipper_sid: str = ""
    provider_timeout_seconds: float = 10.0


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list -- never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce provider credential presence at startup.

    In **production** mode the process exits with a clear error block if any
    required credential is missing.  In **development** mode each missing
    credential is logged as a warning and startup continues.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.twilio_account_sid:
        errors.append("TWILIO_ACCOUNT_SID is empty or not set")
    if not settings.twilio_api_key:
        errors.append("TWILIO_API_KEY is empty or not set")
    if not settings.twilio_api_secret.get_secret_value():
        errors.append("TWILIO_API_SECRET is empty or not set")
    if not settings.twilio_conversations_service_sid:
        errors.append("TWILIO_CONVERSATIONS_SERVICE_SID is empty or not set")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)


@dataclass(frozen=True)
class ChatRoleConfig:
    """Provider role identifiers, one per participant role.

    Attributes:
        client_role_sid: Provider role SID granted to requester participants.
        shipper_role_sid: Provider role SID granted to provider participants.
    """

    client_role_sid: str
    shipper_role_sid: str

    def __post_init__(self) -> None:
        missing = [
            name
            for name, value in (
                ("TWILIO_ROLE_CLIENT_SID", self.client_role_sid),
                ("TWILIO_ROLE_SHIPPER_SID", self.shipper_role_sid),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required role configuration: {', '.join(missing)}"
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> ChatRoleConfig:
        """Build the role config from settings, failing fast when incomplete.

        Raises:
            ConfigurationError: If either role SID is empty.
        """
        return cls(
            client_role_sid=settings.twilio_role_client_sid,
            shipper_role_sid=settings.twilio_role_shipper_sid,
        )

    def role_sid_for(self, role: ParticipantRole) -> str:
        """Return the provider role SID for *role*."""
        if role == ParticipantRole.PROVIDER:
            return self.shipper_role_sid
        return self.client_role_sid
