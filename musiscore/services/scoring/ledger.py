"""
MUSISCORE - Daily Accrual Ledger

Makes the daily scoring job safe to re-run. Instead of adding "today's
points" to a manager, each run recomputes the manager's whole week total
and logs only the difference from what the ledger already holds:

    delta = week_total(roster, scores) - sum(daily_score_logs for the week)

Running twice with the same scores logs nothing the second time; running
after scores moved (in either direction) logs the correction.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Set

from musiscore.core.config import settings
from musiscore.services.scoring.calculator import ScoringRules, roster_points
from musiscore.services.scoring.types import AccrualEntry, Roster

logger = logging.getLogger(__name__)


@dataclass
class LedgerRunStats:
    users_evaluated: int = 0
    entries_written: int = 0
    entries_failed: int = 0
    points_applied: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'users_evaluated': self.users_evaluated,
            'entries_written': self.entries_written,
            'entries_failed': self.entries_failed,
            'points_applied': self.points_applied,
        }


def compute_accruals(
    rosters: Iterable[Roster],
    scores: Dict[str, int],
    featured_ids: Set[str],
    logged_points: Dict[str, int],
    week_number: int,
    run_date: date,
    rules: Optional[ScoringRules] = None,
) -> List[AccrualEntry]:
    """
    Ledger rows needed to bring every roster's logged total up to date.

    Args:
        rosters: Active rosters for the week (one per manager)
        scores: artist_id -> week points
        featured_ids: Featured artists (captain bonus x2.0)
        logged_points: user_id -> points already in the ledger for the week
        week_number: Week being accrued
        run_date: Date stamped on the new rows

    Returns:
        One entry per manager whose delta is non-zero
    """
    rules = rules or ScoringRules.from_settings()
    entries: List[AccrualEntry] = []

    for roster in rosters:
        current_total = roster_points(roster, scores, featured_ids, rules)
        delta = current_total - logged_points.get(roster.user_id, 0)
        if delta == 0:
            continue
        entries.append(AccrualEntry(
            user_id=roster.user_id,
            week_number=week_number,
            points_gained=delta,
            log_date=run_date,
        ))

    return entries


async def apply_accruals(
    store,
    entries: List[AccrualEntry],
    batch_size: Optional[int] = None,
) -> LedgerRunStats:
    """
    Write ledger rows in batches.

    Each batch inserts its rows and bumps total_score in one transaction.
    A failing batch is logged and skipped; the next run recomputes its
    deltas from the ledger sum and writes them then.
    """
    batch_size = batch_size or settings.LEDGER_BATCH_SIZE
    stats = LedgerRunStats()

    for start in range(0, len(entries), batch_size):
        batch = entries[start:start + batch_size]
        try:
            await store.record_accruals(batch)
        except Exception as e:
            logger.error(f"[Ledger] Batch at offset {start} ({len(batch)} entries) failed: {e}")
            stats.entries_failed += len(batch)
            continue
        stats.entries_written += len(batch)
        stats.points_applied += sum(entry.points_gained for entry in batch)

    return stats


async def run_ledger(
    store,
    rosters: List[Roster],
    featured_ids: Set[str],
    week_number: int,
    run_date: date,
    rules: Optional[ScoringRules] = None,
    batch_size: Optional[int] = None,
) -> LedgerRunStats:
    """Read the week's scores and ledger sums, then write the deltas."""
    scores = await store.list_period_scores(week_number)
    logged = await store.sum_logged_points(week_number)

    entries = compute_accruals(rosters, scores, featured_ids, logged, week_number, run_date, rules)
    stats = await apply_accruals(store, entries, batch_size)
    stats.users_evaluated = len(rosters)

    logger.info(
        f"[Ledger] Week {week_number}: {len(rosters)} rosters, "
        f"{stats.entries_written} entries written, {stats.points_applied} points applied"
    )
    return stats
