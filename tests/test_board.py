"""Tests for the board publisher."""

import pytest

from fakes import BOARD_CHANNEL_ID, GUILD_ID, OTHER_BOARD_CHANNEL_ID, U1
from sessionbot.services.errors import ChannelServiceError
from sessionbot.services.rendering import EMPTY_PLACEHOLDER
from sessionstore.models.event import Event


def add_event(repo, event_id="a", name="Tomb"):
    events = repo.load_events(GUILD_ID)
    events.append(Event(id=event_id, guild_id=GUILD_ID, scenario_name=name, created_by=U1, participants={U1}))
    repo.replace_events(GUILD_ID, events)


class TestPublish:
    """Edit-or-replace upsert."""

    @pytest.mark.asyncio
    async def test_no_board_channel_is_noop(self, repo, board, channels):
        assert await board.publish(GUILD_ID) is None
        assert channels.sent == []

    @pytest.mark.asyncio
    async def test_first_publish_sends_and_records(self, configured, board, channels):
        message_id = await board.publish(GUILD_ID)

        assert channels.messages[message_id] == (BOARD_CHANNEL_ID, channels.sent[0][1])
        assert EMPTY_PLACEHOLDER in channels.sent[0][1]
        state = configured.get_board_state(GUILD_ID)
        assert (state.channel_id, state.message_id) == (BOARD_CHANNEL_ID, message_id)

    @pytest.mark.asyncio
    async def test_second_publish_edits_in_place(self, configured, board, channels):
        first = await board.publish(GUILD_ID)
        add_event(configured)
        second = await board.publish(GUILD_ID)

        assert first == second
        assert len(channels.sent) == 1
        assert "Tomb" in channels.messages[first][1]

    @pytest.mark.asyncio
    async def test_missing_message_is_reposted(self, configured, board, channels):
        first = await board.publish(GUILD_ID)
        del channels.messages[first]

        second = await board.publish(GUILD_ID)
        assert second != first
        assert configured.get_board_state(GUILD_ID).message_id == second

    @pytest.mark.asyncio
    async def test_channel_change_moves_board(self, configured, board, channels):
        first = await board.publish(GUILD_ID)
        configured.set_config(GUILD_ID, board_channel_id=OTHER_BOARD_CHANNEL_ID)

        second = await board.publish(GUILD_ID)
        assert channels.messages[second][0] == OTHER_BOARD_CHANNEL_ID
        assert (BOARD_CHANNEL_ID, first) in channels.deleted
        assert channels.edits == []
        state = configured.get_board_state(GUILD_ID)
        assert (state.channel_id, state.message_id) == (OTHER_BOARD_CHANNEL_ID, second)

    @pytest.mark.asyncio
    async def test_old_message_delete_is_best_effort(self, configured, board, channels):
        await board.publish(GUILD_ID)
        configured.set_config(GUILD_ID, board_channel_id=OTHER_BOARD_CHANNEL_ID)
        channels.failing.add("delete_message")

        second = await board.publish(GUILD_ID)
        assert configured.get_board_state(GUILD_ID).message_id == second

    @pytest.mark.asyncio
    async def test_send_failure_raises_and_keeps_state(self, configured, board, channels):
        channels.failing.add("send_message")
        with pytest.raises(ChannelServiceError):
            await board.publish(GUILD_ID)
        assert configured.get_board_state(GUILD_ID).message_id is None

    @pytest.mark.asyncio
    async def test_same_state_renders_same_text(self, configured, board, channels):
        add_event(configured, "a", "Tomb")
        add_event(configured, "b", "Keep")
        message_id = await board.publish(GUILD_ID)
        first_text = channels.messages[message_id][1]
        await board.publish(GUILD_ID)
        assert channels.messages[message_id][1] == first_text


class TestRemove:
    """Taking the board down."""

    @pytest.mark.asyncio
    async def test_remove_deletes_and_forgets(self, configured, board, channels):
        message_id = await board.publish(GUILD_ID)
        await board.remove(GUILD_ID)

        assert message_id not in channels.messages
        state = configured.get_board_state(GUILD_ID)
        assert state.message_id is None and state.channel_id is None

    @pytest.mark.asyncio
    async def test_remove_without_board(self, configured, board, channels):
        await board.remove(GUILD_ID)
        assert channels.deleted == []
