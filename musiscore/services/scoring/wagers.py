"""
MUSISCORE - Promo Bet Resolution

A promo bet pits the manager's artist against a rival artist. The bet
snapshot records the side the manager picked and both artists' week scores
at the time the bet was placed; the bet is settled on how much each artist
gained since then.

    pending -> won | lost | draw      (terminal, exactly once)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from musiscore.core.config import Settings, settings as default_settings
from musiscore.models.models import BetSide, BetStatus
from musiscore.services.scoring.types import Wager, WagerResolution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WagerPayout:
    """Reward of a settled bet."""
    points_on_win: int = 10
    coins: int = 0

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "WagerPayout":
        config = config or default_settings
        return cls(points_on_win=config.WAGER_POINTS_REWARD, coins=config.WAGER_COINS_REWARD)


@dataclass
class WagerRunStats:
    resolved: int = 0
    pending: int = 0
    skipped: int = 0
    already_resolved: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'resolved': self.resolved,
            'pending': self.pending,
            'skipped': self.skipped,
            'already_resolved': self.already_resolved,
            'failed': self.failed,
        }


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def wager_from_promo(
    promo_id: str,
    user_id: str,
    artist_id: Optional[str],
    week_number: Optional[int],
    snapshot: Optional[Dict[str, Any]],
) -> Wager:
    """Build a Wager from a daily_promos row and its bet_snapshot JSON."""
    snapshot = dict(snapshot or {})
    rival = snapshot.get('rival') or {}
    initial = snapshot.get('initial_scores') or {}

    return Wager(
        promo_id=promo_id,
        user_id=user_id,
        artist_id=artist_id,
        rival_id=rival.get('id') if isinstance(rival, dict) else None,
        side=snapshot.get('wager') or '',
        initial_my=_as_int(initial.get('my')),
        initial_rival=_as_int(initial.get('rival')),
        week_number=week_number,
        snapshot=snapshot,
    )


def determine_outcome(my_delta: int, rival_delta: int) -> BetSide:
    """Which side actually performed better."""
    if my_delta > rival_delta:
        return BetSide.MY_ARTIST
    if rival_delta > my_delta:
        return BetSide.RIVAL
    return BetSide.DRAW


def resolve_wager_status(side: str, outcome: BetSide) -> BetStatus:
    if side == outcome.value:
        return BetStatus.WON
    if outcome == BetSide.DRAW:
        return BetStatus.DRAW
    return BetStatus.LOST


def settle_wager(
    wager: Wager,
    scores: Dict[str, int],
    payout: WagerPayout,
) -> Optional[WagerResolution]:
    """
    Settle a bet against the week's scores.

    Returns None while either artist still has no score for the week; the
    bet then stays pending for a later run.
    """
    if wager.artist_id not in scores or wager.rival_id not in scores:
        return None

    my_delta = scores[wager.artist_id] - wager.initial_my
    rival_delta = scores[wager.rival_id] - wager.initial_rival
    status = resolve_wager_status(wager.side, determine_outcome(my_delta, rival_delta))

    return WagerResolution(
        promo_id=wager.promo_id,
        user_id=wager.user_id,
        status=status.value,
        my_delta=my_delta,
        rival_delta=rival_delta,
        points_awarded=payout.points_on_win if status == BetStatus.WON else 0,
        coins_awarded=payout.coins if status == BetStatus.WON else 0,
    )


async def resolve_pending_wagers(
    store,
    wagers: Iterable[Wager],
    current_week: int,
    payout: Optional[WagerPayout] = None,
) -> WagerRunStats:
    """
    Settle every pending bet whose artists both have a score for its week.

    Each bet is written on its own; a failed write is logged and the
    remaining bets still get settled.
    """
    payout = payout or WagerPayout.from_settings()
    stats = WagerRunStats()
    scores_by_week: Dict[int, Dict[str, int]] = {}

    for wager in wagers:
        if not wager.artist_id or not wager.rival_id:
            logger.warning(f"[Wagers] Promo {wager.promo_id} has no artist or rival id, skipping")
            stats.skipped += 1
            continue

        week = wager.week_number or current_week
        if week not in scores_by_week:
            scores_by_week[week] = await store.list_period_scores(week)

        resolution = settle_wager(wager, scores_by_week[week], payout)
        if resolution is None:
            stats.pending += 1
            continue

        try:
            applied = await store.resolve_wager(wager, resolution)
        except Exception as e:
            logger.error(f"[Wagers] Failed to resolve promo {wager.promo_id}: {e}")
            stats.failed += 1
            continue

        if applied:
            stats.resolved += 1
            logger.info(
                f"[Wagers] Promo {wager.promo_id} {resolution.status} "
                f"({resolution.my_delta} vs {resolution.rival_delta})"
            )
        else:
            stats.already_resolved += 1

    return stats
