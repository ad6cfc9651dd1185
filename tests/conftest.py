"""Shared fixtures: an in-memory store, a fake platform, and wired services."""

from datetime import timedelta
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

from fakes import (
    BOARD_CHANNEL_ID,
    CATEGORY_ID,
    GUILD_ID,
    NOTIFY_CHANNEL_ID,
    OTHER_BOARD_CHANNEL_ID,
    FakeChannelService,
    InMemoryEventStore,
)
from sessionbot.services import (
    BoardPublisher,
    EventService,
    NotificationScheduler,
    RoomProvisioner,
)
from sessionstore.repositories import EventRepository


@pytest.fixture
def zone():
    return ZoneInfo("Asia/Tokyo")


@pytest.fixture
def store():
    return InMemoryEventStore()


@pytest.fixture
def repo(store):
    return EventRepository(store, write_retries=3, retry_delay=0)


@pytest.fixture
def channels():
    fake = FakeChannelService()
    fake.add_text_channel(GUILD_ID, "予定管理", NOTIFY_CHANNEL_ID)
    fake.add_category(GUILD_ID, "sessions", CATEGORY_ID)
    fake.add_text_channel(GUILD_ID, "board", BOARD_CHANNEL_ID)
    fake.add_text_channel(GUILD_ID, "board-2", OTHER_BOARD_CHANNEL_ID)
    return fake


@pytest.fixture
def board(repo, channels, zone):
    return BoardPublisher(repo, channels, zone)


@pytest.fixture
def scheduler(repo, channels, zone):
    return NotificationScheduler(repo, channels, zone, grace=timedelta(seconds=60))


@pytest.fixture
def service(repo, channels, board, zone):
    return EventService(repo, channels, RoomProvisioner(channels), board, zone)


@pytest_asyncio.fixture
async def configured(repo):
    """Guild 1 with notification channel, category and board channel set."""
    repo.set_config(
        GUILD_ID,
        notification_channel_id=NOTIFY_CHANNEL_ID,
        event_category_id=CATEGORY_ID,
        board_channel_id=BOARD_CHANNEL_ID,
    )
    await repo.flush()
    return repo
