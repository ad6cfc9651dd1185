"""Event scheduling services used by the cogs."""

from .board import BoardPublisher
from .channels import ChannelService, DiscordChannelService
from .errors import (
    ChannelNotFoundError,
    ChannelServiceError,
    ConfigurationMissingError,
    EventServiceError,
    ExternalSideEffectError,
    NotFoundError,
    ProvisioningError,
    ValidationError,
)
from .event_service import EventChanges, EventFields, EventService
from .rooms import RoomMode, RoomProvisioner
from .scheduler import NotificationScheduler
from .visibility import EventView, Visibility, visibility_for

__all__ = [
    "BoardPublisher",
    "ChannelNotFoundError",
    "ChannelService",
    "ChannelServiceError",
    "ConfigurationMissingError",
    "DiscordChannelService",
    "EventChanges",
    "EventFields",
    "EventService",
    "EventServiceError",
    "EventView",
    "ExternalSideEffectError",
    "NotFoundError",
    "NotificationScheduler",
    "ProvisioningError",
    "RoomMode",
    "RoomProvisioner",
    "ValidationError",
    "Visibility",
    "visibility_for",
]
