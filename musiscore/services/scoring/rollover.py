"""
MUSISCORE - Weekly Leaderboard Rollover

Closes a week: ranks every manager with a positive combined score, archives
the standings, pays the tier rewards configured in leaderboard_config and
resets the running scores for the next week.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from musiscore.core.config import LEADERBOARD_REWARD_TIERS, settings
from musiscore.services.scoring.types import LeaderboardEntry, UserAggregate

logger = logging.getLogger(__name__)


@dataclass
class RolloverResult:
    week_number: int
    participants: int = 0
    history_written: int = 0
    rewarded: int = 0
    coins_credited: int = 0
    profiles_reset: int = 0

    @property
    def message(self) -> str:
        return (
            f"Weekly leaderboard processed for Week {self.week_number}. "
            f"Rewards assigned to {self.rewarded} players."
        )


def _created_key(created_at: Optional[datetime]) -> datetime:
    if created_at is None:
        return datetime.max.replace(tzinfo=timezone.utc)
    if created_at.tzinfo is None:
        return created_at.replace(tzinfo=timezone.utc)
    return created_at


def rank_participants(profiles: List[UserAggregate]) -> List[UserAggregate]:
    """
    Order managers for the week's final standings.

    Combined score descending, then total_score, then listen_score (both
    descending), then earliest signup, then id. Managers at or below zero are
    left out.
    """
    participants = [p for p in profiles if p.combined_score > 0]
    return sorted(
        participants,
        key=lambda p: (
            -p.combined_score,
            -p.total_score,
            -p.listen_score,
            _created_key(p.created_at),
            p.user_id,
        ),
    )


def reward_for_rank(rank: int, rewards: Dict[str, int]) -> int:
    """Coins for a rank; the first matching tier wins."""
    for tier, upper_rank in LEADERBOARD_REWARD_TIERS:
        if rank <= upper_rank:
            return rewards.get(tier, 0) or 0
    return 0


def build_leaderboard(
    profiles: List[UserAggregate],
    rewards: Dict[str, int],
    week_number: int,
) -> List[LeaderboardEntry]:
    return [
        LeaderboardEntry(
            user_id=profile.user_id,
            week_number=week_number,
            rank=rank,
            score=profile.combined_score,
            reward_musicoins=reward_for_rank(rank, rewards),
        )
        for rank, profile in enumerate(rank_participants(profiles), start=1)
    ]


async def run_rollover(store, week_number: int, batch_size: Optional[int] = None) -> RolloverResult:
    """
    Archive, reward and reset.

    History rows that already exist for (user, week) are left alone, and
    rewards are only credited for rows this run inserted.
    """
    batch_size = batch_size or settings.HISTORY_BATCH_SIZE
    result = RolloverResult(week_number=week_number)

    profiles = await store.list_profiles()
    rewards = await store.get_leaderboard_rewards()
    entries = build_leaderboard(profiles, rewards, week_number)
    result.participants = len(entries)

    logger.info(f"[Rollover] Processing {len(entries)} active players for week {week_number}")
    if not entries:
        return result

    for start in range(0, len(entries), batch_size):
        batch = entries[start:start + batch_size]
        inserted = await store.insert_leaderboard_history(batch)
        result.history_written += len(inserted)
        if len(inserted) < len(batch):
            logger.warning(
                f"[Rollover] {len(batch) - len(inserted)} history rows already existed for week {week_number}"
            )

        credits = {
            e.user_id: e.reward_musicoins
            for e in batch
            if e.reward_musicoins > 0 and e.user_id in inserted
        }
        await store.credit_coins(credits)
        result.rewarded += len(credits)
        result.coins_credited += sum(credits.values())

    result.profiles_reset = await store.reset_scores()
    logger.info(f"[Rollover] {result.message} Reset {result.profiles_reset} profiles.")
    return result
