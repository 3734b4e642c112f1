"""
MUSISCORE - Scoring Engine

Pure scoring components (active artists, score formula, ledger deltas, bet
settlement, rollover ranking, baseline freeze). All I/O goes through a
ScoringStore passed in by the job pipelines.
"""

from musiscore.services.scoring.active_entities import latest_rosters, resolve_active_entities
from musiscore.services.scoring.calculator import (
    ScoringRules,
    calculate_period_score,
    calculate_release_bonus,
    round_half_up,
    roster_points,
)
from musiscore.services.scoring.ledger import apply_accruals, compute_accruals, run_ledger
from musiscore.services.scoring.rollover import build_leaderboard, rank_participants, reward_for_rank, run_rollover
from musiscore.services.scoring.snapshot import freeze_week
from musiscore.services.scoring.wagers import (
    WagerPayout,
    determine_outcome,
    resolve_pending_wagers,
    resolve_wager_status,
    settle_wager,
)

__all__ = [
    "latest_rosters",
    "resolve_active_entities",
    "ScoringRules",
    "calculate_period_score",
    "calculate_release_bonus",
    "round_half_up",
    "roster_points",
    "apply_accruals",
    "compute_accruals",
    "run_ledger",
    "build_leaderboard",
    "rank_participants",
    "reward_for_rank",
    "run_rollover",
    "freeze_week",
    "WagerPayout",
    "determine_outcome",
    "resolve_pending_wagers",
    "resolve_wager_status",
    "settle_wager",
]
