"""Messaging provider integration (Twilio Conversations)."""

from quote_chat.provider.client import ConversationsClient
from quote_chat.provider.models import ProviderConversation

__all__ = ["ConversationsClient", "ProviderConversation"]
