"""Error handling utilities."""


class QueueAgentError(Exception):
    """Base exception for queue agents."""
    pass


class ConfigurationError(QueueAgentError):
    """Agent or store configuration is missing or invalid."""
    pass


class StoreError(QueueAgentError):
    """Task store operation error."""
    pass


class HandlerResultError(QueueAgentError):
    """Task handler returned a value that is not a recognized result."""
    pass


class TaskValidationError(QueueAgentError):
    """Task document is missing required fields or sets reserved ones."""
    pass
