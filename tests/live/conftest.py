"""Shared fixtures for live integration tests.

Provides a session-scoped Twilio Conversations client built from
environment credentials (via Settings).  Tests skip when the credentials
are not available.
"""

from __future__ import annotations

import pytest

from quote_chat.config import ChatRoleConfig, Settings
from quote_chat.domain.errors import ConfigurationError


@pytest.fixture(scope="session")
def _live_settings() -> Settings:
    """Load application settings from environment for live tests."""
    return Settings()


@pytest.fixture(scope="session")
def conversations_client(_live_settings: Settings):
    """Create a real ConversationsClient, skipping if credentials are missing."""
    from quote_chat.provider.client import ConversationsClient

    try:
        return ConversationsClient.from_settings(_live_settings)
    except ConfigurationError:
        pytest.skip("Twilio Conversations credentials not configured")


@pytest.fixture(scope="session")
def live_role_config(_live_settings: Settings) -> ChatRoleConfig:
    """Role SIDs from environment, skipping if either is missing."""
    try:
        return ChatRoleConfig.from_settings(_live_settings)
    except ConfigurationError:
        pytest.skip("TWILIO_ROLE_CLIENT_SID / TWILIO_ROLE_SHIPPER_SID not configured")
