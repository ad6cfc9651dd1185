"""Tests for participant visibility."""

from fakes import GUILD_ID, U1, U2, U3
from sessionbot.services.visibility import Visibility, view_of, visibility_for
from sessionstore.models.event import Event


def make_event(created_by=U2, participants=(U1,)):
    return Event(
        id="abc",
        guild_id=GUILD_ID,
        scenario_name="Tomb of Horrors",
        created_by=created_by,
        participants=set(participants),
    )


class TestVisibilityFor:
    """visibility_for three-tier policy."""

    def test_participant_sees_everything(self):
        assert visibility_for(make_event(), U1) is Visibility.FULL

    def test_creator_who_left_sees_count(self):
        assert visibility_for(make_event(), U2) is Visibility.COUNT_ONLY

    def test_outsider_sees_nothing(self):
        assert visibility_for(make_event(), U3) is Visibility.NONE

    def test_creator_still_participating_is_full(self):
        event = make_event(created_by=U1, participants=(U1, U3))
        assert visibility_for(event, U1) is Visibility.FULL


class TestViewOf:
    """view_of never leaks identities below FULL."""

    def test_full_view_lists_participants(self):
        event = make_event(participants=(U3, U1))
        view = view_of(event, U1)
        assert view.participant_ids == (U1, U3)
        assert view.participant_count == 2
        assert view.joined

    def test_count_only_has_no_ids(self):
        view = view_of(make_event(participants=(U1, U3)), U2)
        assert view.participant_count == 2
        assert view.participant_ids is None
        assert view.is_creator_view

    def test_none_has_no_count_or_ids(self):
        view = view_of(make_event(), U3)
        assert view.participant_count is None
        assert view.participant_ids is None
        assert not view.joined
