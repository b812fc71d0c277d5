"""Live integration tests for Twilio Conversations operations.

These tests create a clearly-labelled conversation in the configured
Conversations service, exercise participant membership and attribute
updates, and verify the provider's idempotency responses.  They require the
TWILIO_* variables in the environment.

Run with: pytest -m live -k twilio
"""

from __future__ import annotations

import uuid

import pytest

from quote_chat.domain.errors import ProviderConflictError


@pytest.mark.live
def test_conversation_lifecycle(conversations_client, live_role_config):
    """Create, re-create (conflict), fetch, update and manage membership."""
    unique_name = f"quote::live-test-{uuid.uuid4().hex[:12]}"
    identity = f"client:live-test-{uuid.uuid4().hex[:8]}"

    conversation = conversations_client.create_conversation(
        unique_name, "[LIVE TEST] quote chat", {"liveTest": True}
    )
    assert conversation.unique_name == unique_name

    with pytest.raises(ProviderConflictError):
        conversations_client.create_conversation(unique_name, "[LIVE TEST] duplicate")

    fetched = conversations_client.fetch_conversation(unique_name)
    assert fetched.sid == conversation.sid
    assert fetched.attributes == {"liveTest": True}

    conversations_client.update_conversation_attributes(
        conversation.sid, {"liveTest": True, "partnerName": "Live Test"}
    )
    assert conversations_client.fetch_conversation(conversation.sid).attributes["partnerName"] == (
        "Live Test"
    )

    role_sid = live_role_config.client_role_sid
    assert conversations_client.add_participant(conversation.sid, identity, role_sid) is not None
    assert conversations_client.add_participant(conversation.sid, identity, role_sid) is None

    assert conversations_client.remove_participant(conversation.sid, identity) is True
    assert conversations_client.remove_participant(conversation.sid, identity) is False
