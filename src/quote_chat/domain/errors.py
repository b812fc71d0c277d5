"""Domain-specific exception classes for quote conversation provisioning."""


class ChatError(Exception):
    """Base class for all domain errors in the chat core."""


class NotFoundError(ChatError):
    """Raised when a quote, thread, organization or participant is missing.

    Attributes:
        entity: The kind of record that was looked up.
        entity_id: The identifier that was not found.
    """

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ForbiddenError(ChatError):
    """Raised when a user may not join or manage a thread."""


class ConflictError(ChatError):
    """Raised when a uniqueness constraint rejects a write.

    Handled inside the thread resolver and never surfaced to callers.
    """


class DuplicateThreadError(ConflictError):
    """Raised by the store when a thread row for the same scope already exists."""


class ConfigurationError(ChatError):
    """Raised when required deployment configuration is missing."""


class ExternalProviderError(ChatError):
    """Raised when the messaging provider rejects or fails a call.

    Attributes:
        operation: The provider operation that failed.
        status: The HTTP status reported by the provider, if any.
    """

    def __init__(self, operation: str, message: str, status: int | None = None) -> None:
        self.operation = operation
        self.status = status
        super().__init__(f"{operation} failed: {message}")


class ProviderConflictError(ExternalProviderError):
    """Raised when the provider reports that the resource already exists."""
