"""
MUSISCORE - Daily Scoring Pipeline

Scores the current week from fresh Spotify metrics, settles promo bets and
brings every manager's ledger up to date.

Order within a run:
    1. week scores (weekly_scores upsert + artists_cache refresh)
    2. promo bet settlement
    3. ledger accrual

Safe to run several times a day; later runs only log corrections.

Usage:
    musiscore daily-scores
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from musiscore.core.config import Settings, settings as default_settings
from musiscore.pipeline.summary import JobSummary
from musiscore.services.collectors import MetricsClientConfig, RetryPolicy, SpotifyMetricsClient
from musiscore.services.scoring.active_entities import resolve_active_entities
from musiscore.services.scoring.calculator import ScoringRules, calculate_period_score
from musiscore.services.scoring.ledger import run_ledger
from musiscore.services.scoring.types import ArtistMetrics, BaselineSnapshot, PeriodScore, Release
from musiscore.services.scoring.wagers import WagerPayout, resolve_pending_wagers
from musiscore.services.store.scoring_store import ScoringStore

logger = logging.getLogger(__name__)

JOB_NAME = "daily-scores"

ClientFactory = Callable[[], SpotifyMetricsClient]


def default_client_factory(config: Optional[Settings] = None) -> ClientFactory:
    config = config or default_settings

    def factory() -> SpotifyMetricsClient:
        return SpotifyMetricsClient(
            MetricsClientConfig.from_settings(config),
            retry_policy=RetryPolicy.from_settings(config),
        )

    return factory


def score_artists(
    snapshots: List[BaselineSnapshot],
    metrics: Dict[str, ArtistMetrics],
    releases: Dict[str, List[Release]],
    window_end: datetime,
    rules: ScoringRules,
) -> List[PeriodScore]:
    """Scores for every snapshot whose metrics and releases were fetched."""
    scores = []
    for snapshot in snapshots:
        current = metrics.get(snapshot.artist_id)
        if current is None:
            logger.warning(f"[DailyScores] No metrics for {snapshot.artist_id}, skipping")
            continue
        artist_releases = releases.get(snapshot.artist_id)
        if artist_releases is None:
            logger.warning(f"[DailyScores] No releases for {snapshot.artist_id}, skipping")
            continue
        scores.append(calculate_period_score(snapshot, current, artist_releases, window_end, rules))
    return scores


async def write_in_batches(label: str, items: list, batch_size: int, write) -> int:
    """Write items batch by batch; a failed batch is logged and skipped."""
    written = 0
    for start in range(0, len(items), batch_size):
        batch = items[start:start + batch_size]
        try:
            await write(batch)
        except Exception as e:
            logger.error(f"[DailyScores] {label} batch at offset {start} failed: {e}")
            continue
        written += len(batch)
    return written


async def run_daily_scoring(
    store: ScoringStore,
    client_factory: Optional[ClientFactory] = None,
    now: Optional[datetime] = None,
    config: Optional[Settings] = None,
) -> JobSummary:
    """
    Run the daily scoring job.

    Args:
        store: Store gateway
        client_factory: Builds the Spotify collector for this run
        now: Run time; also the end of the release window
        config: Settings override

    Raises:
        ProviderAuthError: Spotify rejected the credentials
        Exception: Store reads the run cannot do without
    """
    config = config or default_settings
    client_factory = client_factory or default_client_factory(config)
    now = now or datetime.now(timezone.utc)
    rules = ScoringRules.from_settings(config)

    season = await store.get_active_season()
    if season is None:
        return JobSummary.skipped(JOB_NAME, "No active season found. Skipping scoring.")

    week_number = await store.get_latest_week()
    if week_number is None:
        return JobSummary.skipped(JOB_NAME, "No snapshots found. Skipping scoring.")

    snapshots = await store.list_snapshots(week_number)
    if not snapshots:
        return JobSummary.skipped(JOB_NAME, "No snapshots found for current week. Skipping scoring.")

    logger.info(f"[DailyScores] Calculating daily scores for Week {week_number} ({season['name']})")

    rosters = await store.list_active_rosters(week_number)
    featured_ids = await store.list_featured_ids()
    wagers = await store.list_pending_wagers()

    active_ids = resolve_active_entities(rosters, featured_ids, wagers)
    baseline_ids = {s.artist_id for s in snapshots}
    scorable = [s for s in snapshots if s.artist_id in active_ids]
    unscorable = active_ids - baseline_ids
    if unscorable:
        logger.warning(f"[DailyScores] {len(unscorable)} active artists have no baseline for week {week_number}")

    logger.info(f"[DailyScores] {len(scorable)} of {len(snapshots)} baseline artists are in play")

    scores: List[PeriodScore] = []
    metrics: Dict[str, ArtistMetrics] = {}
    if scorable:
        async with client_factory() as client:
            metrics = await client.fetch_metrics(s.artist_id for s in scorable)
            releases = await client.fetch_releases_for(list(metrics))
        scores = score_artists(scorable, metrics, releases, now, rules)

    scores_written = await write_in_batches(
        "Score", scores, config.SCORE_BATCH_SIZE, store.upsert_period_scores,
    )
    scored_metrics = [metrics[s.artist_id] for s in scores]
    await write_in_batches(
        "Artist cache", scored_metrics, config.SCORE_BATCH_SIZE,
        lambda batch: store.update_artist_metrics(batch, now),
    )

    wager_stats = await resolve_pending_wagers(
        store, wagers, week_number, WagerPayout.from_settings(config),
    )

    ledger_stats = await run_ledger(
        store,
        rosters,
        featured_ids,
        week_number,
        now.date(),
        rules,
        config.LEDGER_BATCH_SIZE,
    )

    return JobSummary.completed(
        JOB_NAME,
        f"Scoring complete. Updated {ledger_stats.entries_written} users.",
        week_number=week_number,
        artists_scored=scores_written,
        artists_skipped=len(scorable) - len(scores),
        wagers=wager_stats.to_dict(),
        ledger=ledger_stats.to_dict(),
    )
