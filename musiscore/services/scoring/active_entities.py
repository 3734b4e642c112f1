"""
MUSISCORE - Active Artist Resolution

Decides which artists need fresh Spotify metrics in a run: anything on an
active roster, anything featured, and both sides of every unresolved bet.
Keeps provider traffic proportional to what the league actually plays with
instead of the whole artist catalog.
"""

from typing import Dict, Iterable, List, Set

from musiscore.services.scoring.types import Roster, Wager


def latest_rosters(rosters: Iterable[Roster], week_number: int) -> List[Roster]:
    """
    Active roster per manager for a week.

    A roster saved for week w stays in play until the manager saves a newer
    one, so the active roster is the one with the highest week_number <= week.
    """
    active: Dict[str, Roster] = {}
    for roster in rosters:
        if roster.week_number > week_number:
            continue
        current = active.get(roster.user_id)
        if current is None or roster.week_number >= current.week_number:
            active[roster.user_id] = roster
    return list(active.values())


def resolve_active_entities(
    rosters: Iterable[Roster],
    featured_ids: Iterable[str],
    wagers: Iterable[Wager],
) -> Set[str]:
    """Union of rostered, featured and bet-on artist ids."""
    active: Set[str] = set()

    for roster in rosters:
        active.update(roster.artist_ids)
        if roster.captain_id:
            active.add(roster.captain_id)

    active.update(artist_id for artist_id in featured_ids if artist_id)

    for wager in wagers:
        if wager.artist_id:
            active.add(wager.artist_id)
        if wager.rival_id:
            active.add(wager.rival_id)

    return active
