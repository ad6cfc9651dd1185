"""Tests for room naming and provisioning."""

import pytest

from fakes import CATEGORY_ID, GUILD_ID, U1, U2
from sessionbot.services.errors import ProvisioningError
from sessionbot.services.rooms import RoomMode, RoomProvisioner, slugify_name, unique_name


class TestSlugifyName:
    """Channel names derived from scenario names."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Tomb of Horrors", "tomb-of-horrors"),
            ("Call of Cthulhu!!", "call-of-cthulhu"),
            ("  狂気山脈　第2章 ", "狂気山脈-第2章"),
            ("ねこ_カフェ", "ねこ_カフェ"),
            ("", "scenario"),
            (None, "scenario"),
            ("!!!", "scenario"),
        ],
    )
    def test_slugify(self, name, expected):
        assert slugify_name(name) == expected

    def test_slug_is_capped(self):
        assert len(slugify_name("a" * 200)) == 90

    def test_unique_name_appends_counter(self):
        assert unique_name("x", set()) == "x"
        assert unique_name("x", {"x"}) == "x-2"
        assert unique_name("x", {"x", "x-2"}) == "x-3"


class TestProvision:
    """RoomProvisioner.provision in both modes."""

    @pytest.mark.asyncio
    async def test_single_channel_under_category(self, channels):
        rooms = RoomProvisioner(channels)
        room_id = await rooms.provision(
            GUILD_ID, "e1", "Tomb of Horrors", U1, CATEGORY_ID, RoomMode.SINGLE_CHANNEL
        )
        room = channels.channels[room_id]
        assert room["name"] == "tomb-of-horrors"
        assert room["parent_id"] == CATEGORY_ID
        assert room["members"] == {U1}

    @pytest.mark.asyncio
    async def test_name_collision_gets_suffix(self, channels):
        rooms = RoomProvisioner(channels)
        first = await rooms.provision(GUILD_ID, "e1", "Tomb", U1, CATEGORY_ID, RoomMode.SINGLE_CHANNEL)
        second = await rooms.provision(GUILD_ID, "e2", "Tomb", U2, CATEGORY_ID, RoomMode.SINGLE_CHANNEL)
        assert channels.channels[first]["name"] == "tomb"
        assert channels.channels[second]["name"] == "tomb-2"

    @pytest.mark.asyncio
    async def test_category_mode_creates_category(self, channels):
        rooms = RoomProvisioner(channels)
        room_id = await rooms.provision(GUILD_ID, "e1", "Tomb", U1, None, RoomMode.CATEGORY)
        parent_id = channels.channels[room_id]["parent_id"]
        assert parent_id != CATEGORY_ID
        assert channels.categories[parent_id] == (GUILD_ID, "tomb")

    @pytest.mark.asyncio
    async def test_category_mode_collision(self, channels):
        channels.add_category(GUILD_ID, "tomb")
        rooms = RoomProvisioner(channels)
        room_id = await rooms.provision(GUILD_ID, "e1", "Tomb", U1, None, RoomMode.CATEGORY)
        parent_id = channels.channels[room_id]["parent_id"]
        assert channels.categories[parent_id][1] == "tomb-2"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("category_id", [None, 999])
    async def test_invalid_category_fails(self, channels, category_id):
        rooms = RoomProvisioner(channels)
        with pytest.raises(ProvisioningError):
            await rooms.provision(GUILD_ID, "e1", "Tomb", U1, category_id, RoomMode.SINGLE_CHANNEL)
        assert all(ch["parent_id"] is None for ch in channels.channels.values())

    @pytest.mark.asyncio
    async def test_platform_refusal_becomes_provisioning_error(self, channels):
        channels.failing.add("create_channel")
        rooms = RoomProvisioner(channels)
        with pytest.raises(ProvisioningError):
            await rooms.provision(GUILD_ID, "e1", "Tomb", U1, CATEGORY_ID, RoomMode.SINGLE_CHANNEL)

    @pytest.mark.asyncio
    async def test_category_mode_deletes_category_when_channel_fails(self, channels):
        before = dict(channels.categories)
        channels.failing.add("create_channel")
        rooms = RoomProvisioner(channels)

        with pytest.raises(ProvisioningError):
            await rooms.provision(GUILD_ID, "e1", "Tomb", U1, None, RoomMode.CATEGORY)
        assert channels.categories == before
        assert len(channels.deleted_channels) == 1

    @pytest.mark.asyncio
    async def test_orphan_cleanup_failure_still_reports_provisioning_error(self, channels):
        channels.failing.update({"create_channel", "delete_channel"})
        rooms = RoomProvisioner(channels)

        with pytest.raises(ProvisioningError):
            await rooms.provision(GUILD_ID, "e1", "Tomb", U1, None, RoomMode.CATEGORY)
        assert channels.deleted_channels == []


class TestAccess:
    """grant_access / revoke_access never raise."""

    @pytest.mark.asyncio
    async def test_grant_and_revoke(self, channels):
        rooms = RoomProvisioner(channels)
        room_id = await rooms.provision(GUILD_ID, "e1", "Tomb", U1, CATEGORY_ID, RoomMode.SINGLE_CHANNEL)

        assert await rooms.grant_access(room_id, U2)
        assert U2 in channels.channels[room_id]["members"]
        assert await rooms.revoke_access(room_id, U2)
        assert U2 not in channels.channels[room_id]["members"]

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self, channels):
        rooms = RoomProvisioner(channels)
        room_id = await rooms.provision(GUILD_ID, "e1", "Tomb", U1, CATEGORY_ID, RoomMode.SINGLE_CHANNEL)
        channels.failing.add("set_permission")

        assert await rooms.grant_access(room_id, U2) is False
        assert await rooms.revoke_access(room_id, U2) is False
        assert await rooms.grant_access(None, U2) is False
        assert await rooms.grant_access(424242, U2) is False
