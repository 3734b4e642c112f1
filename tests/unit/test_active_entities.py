"""
MUSISCORE - Active Artist Resolution Tests
"""

import pytest

from musiscore.services.scoring.active_entities import latest_rosters, resolve_active_entities
from musiscore.services.scoring.types import Roster, Wager

pytestmark = pytest.mark.unit


class TestLatestRosters:
    """A saved roster carries forward until a newer one is saved."""

    def test_latest_roster_at_or_before_week(self):
        rosters = [
            Roster("u1", 1, ["a"]),
            Roster("u1", 3, ["b"]),
            Roster("u1", 5, ["c"]),
        ]
        active = latest_rosters(rosters, 4)
        assert len(active) == 1
        assert active[0].slots == ["b"]

    def test_future_rosters_ignored(self):
        assert latest_rosters([Roster("u1", 5, ["a"])], 4) == []

    def test_one_roster_per_manager(self):
        rosters = [Roster("u1", 1, ["a"]), Roster("u2", 2, ["b"]), Roster("u1", 2, ["c"])]
        active = {r.user_id: r for r in latest_rosters(rosters, 2)}
        assert active["u1"].slots == ["c"]
        assert active["u2"].slots == ["b"]


class TestResolveActiveEntities:

    def test_union_of_rosters_featured_and_bets(self):
        rosters = [Roster("u1", 1, ["a", "b", None, "", "c"], captain_id="a")]
        wagers = [Wager("p1", "u2", "d", "e", "my_artist")]

        active = resolve_active_entities(rosters, {"f"}, wagers)

        assert active == {"a", "b", "c", "d", "e", "f"}

    def test_blank_references_ignored(self):
        wagers = [Wager("p1", "u2", None, "", "rival")]
        assert resolve_active_entities([], {"", "x"}, wagers) == {"x"}

    def test_empty_state(self):
        assert resolve_active_entities([], set(), []) == set()
