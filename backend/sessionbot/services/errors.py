"""Errors raised by the event services.

Every ``EventServiceError`` carries a message fit to show the user as-is.
"""


class EventServiceError(Exception):
    """Base class for errors reported back to the caller."""


class ValidationError(EventServiceError):
    """Empty required field or malformed input; nothing was changed."""


class ConfigurationMissingError(EventServiceError):
    """A guild setting required by the operation is not configured."""

    def __init__(self, setting: str, message: str):
        super().__init__(message)
        self.setting = setting


class ProvisioningError(EventServiceError):
    """The private room could not be created; no event was stored."""


class NotFoundError(EventServiceError):
    """The event does not exist (any more)."""


class ExternalSideEffectError(Exception):
    """A best-effort side effect failed.

    Logged by the service, never raised to the caller.
    """


class ChannelServiceError(Exception):
    """The chat platform rejected or failed a request."""


class ChannelNotFoundError(ChannelServiceError):
    """The channel, category or message does not exist."""
