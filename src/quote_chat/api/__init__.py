"""HTTP surface for chat provisioning."""

from quote_chat.api.routes import register_error_handlers, router

__all__ = ["register_error_handlers", "router"]
