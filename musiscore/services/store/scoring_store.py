"""
MUSISCORE - Scoring Store Gateway

Every read and write the scoring jobs perform against the league database.
The jobs only talk to the ScoringStore interface; SqlAlchemyScoringStore is
the PostgreSQL implementation.

Score and currency changes on profiles are always additive
(SET col = col + :delta) so concurrent writers commute.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import bindparam, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from musiscore.core.config import settings
from musiscore.core.database import DatabaseManager, db_manager
from musiscore.models import (
    ArtistCache,
    DailyPromo,
    DailyScoreLog,
    FeaturedArtist,
    LeaderboardConfig,
    Profile,
    Season,
    Team,
    WeeklyLeaderboardHistory,
    WeeklyScore,
    WeeklySnapshot,
)
from musiscore.services.scoring.active_entities import latest_rosters
from musiscore.services.scoring.types import (
    AccrualEntry,
    ArtistMetrics,
    BaselineSnapshot,
    LeaderboardEntry,
    PeriodScore,
    Roster,
    UserAggregate,
    Wager,
    WagerResolution,
)
from musiscore.services.scoring.wagers import wager_from_promo
from musiscore.services.store.pagination import fetch_all_rows

logger = logging.getLogger(__name__)


class ScoringStore(ABC):
    """Data access used by the daily scoring, rollover and snapshot jobs."""

    # ---- season / period ---------------------------------------------------

    @abstractmethod
    async def get_active_season(self) -> Optional[Dict[str, Any]]:
        """The active season as a dict (id, name, start_date), or None."""

    @abstractmethod
    async def get_latest_week(self) -> Optional[int]:
        """Highest week_number present in the baseline snapshots."""

    @abstractmethod
    async def get_week_opened_at(self, week_number: int) -> Optional[datetime]:
        """When the first baseline snapshot of the week was written."""

    # ---- daily scoring reads -----------------------------------------------

    @abstractmethod
    async def list_snapshots(self, week_number: int) -> List[BaselineSnapshot]:
        pass

    @abstractmethod
    async def list_active_rosters(self, week_number: int) -> List[Roster]:
        """Latest roster per manager saved for this week or earlier."""

    @abstractmethod
    async def list_featured_ids(self) -> Set[str]:
        pass

    @abstractmethod
    async def list_pending_wagers(self) -> List[Wager]:
        pass

    @abstractmethod
    async def list_period_scores(self, week_number: int) -> Dict[str, int]:
        """artist_id -> total_points for the week."""

    @abstractmethod
    async def sum_logged_points(self, week_number: int) -> Dict[str, int]:
        """user_id -> sum of ledger rows for the week."""

    # ---- daily scoring writes ----------------------------------------------

    @abstractmethod
    async def upsert_period_scores(self, scores: List[PeriodScore]) -> None:
        pass

    @abstractmethod
    async def update_artist_metrics(self, metrics: List[ArtistMetrics], updated_at: datetime) -> None:
        pass

    @abstractmethod
    async def record_accruals(self, entries: List[AccrualEntry]) -> None:
        """Append ledger rows and apply the same deltas to total_score, atomically."""

    @abstractmethod
    async def resolve_wager(self, wager: Wager, resolution: WagerResolution) -> bool:
        """
        Mark the bet resolved and pay it out in one transaction.

        Returns False when the bet was already resolved (nothing written).
        """

    # ---- rollover ----------------------------------------------------------

    @abstractmethod
    async def list_profiles(self) -> List[UserAggregate]:
        pass

    @abstractmethod
    async def get_leaderboard_rewards(self) -> Dict[str, int]:
        pass

    @abstractmethod
    async def insert_leaderboard_history(self, entries: List[LeaderboardEntry]) -> Set[str]:
        """
        Insert history rows, ignoring (user, week) pairs already archived.

        Returns the user ids whose rows were inserted.
        """

    @abstractmethod
    async def credit_coins(self, credits: Dict[str, int]) -> None:
        pass

    @abstractmethod
    async def reset_scores(self) -> int:
        """Zero total_score and listen_score for every profile."""

    # ---- weekly freeze -----------------------------------------------------

    @abstractmethod
    async def list_cached_artists(self) -> List[ArtistMetrics]:
        pass

    @abstractmethod
    async def list_snapshot_artist_ids(self, week_number: int) -> Set[str]:
        pass

    @abstractmethod
    async def insert_snapshots(self, snapshots: List[BaselineSnapshot]) -> int:
        pass


class SqlAlchemyScoringStore(ScoringStore):
    """PostgreSQL implementation backed by the async DatabaseManager."""

    def __init__(self, database: Optional[DatabaseManager] = None, page_size: Optional[int] = None):
        self.db = database or db_manager
        self.page_size = page_size or settings.STORE_PAGE_SIZE

    async def get_active_season(self) -> Optional[Dict[str, Any]]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Season)
                .where(Season.is_active.is_(True))
                .order_by(Season.start_date.desc())
                .limit(1)
            )
            season = result.scalars().first()
            if season is None:
                return None
            return {"id": str(season.id), "name": season.name, "start_date": season.start_date}

    async def get_latest_week(self) -> Optional[int]:
        async with self.db.session() as session:
            result = await session.execute(select(func.max(WeeklySnapshot.week_number)))
            week = result.scalar()
            return int(week) if week is not None else None

    async def get_week_opened_at(self, week_number: int) -> Optional[datetime]:
        async with self.db.session() as session:
            result = await session.execute(
                select(func.min(WeeklySnapshot.created_at)).where(WeeklySnapshot.week_number == week_number)
            )
            return result.scalar()

    async def list_snapshots(self, week_number: int) -> List[BaselineSnapshot]:
        statement = (
            select(
                WeeklySnapshot.week_number,
                WeeklySnapshot.artist_id,
                WeeklySnapshot.popularity,
                WeeklySnapshot.followers,
                WeeklySnapshot.created_at,
            )
            .where(WeeklySnapshot.week_number == week_number)
            .order_by(WeeklySnapshot.artist_id)
        )
        async with self.db.session() as session:
            rows = await fetch_all_rows(session, statement, self.page_size)

        return [
            BaselineSnapshot(
                week_number=row.week_number,
                artist_id=row.artist_id,
                popularity=row.popularity or 0,
                followers=row.followers or 0,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def list_active_rosters(self, week_number: int) -> List[Roster]:
        statement = (
            select(Team)
            .where(Team.week_number <= week_number)
            .order_by(Team.user_id, Team.week_number)
        )
        async with self.db.session() as session:
            teams = await fetch_all_rows(session, statement, self.page_size, scalars=True)

        rosters = [
            Roster(
                user_id=str(team.user_id),
                week_number=team.week_number,
                slots=[team.slot_1_id, team.slot_2_id, team.slot_3_id, team.slot_4_id, team.slot_5_id],
                captain_id=team.captain_id,
            )
            for team in teams
        ]
        return latest_rosters(rosters, week_number)

    async def list_featured_ids(self) -> Set[str]:
        statement = select(FeaturedArtist.spotify_id).order_by(FeaturedArtist.spotify_id)
        async with self.db.session() as session:
            ids = await fetch_all_rows(session, statement, self.page_size, scalars=True)
        return set(ids)

    async def list_pending_wagers(self) -> List[Wager]:
        statement = (
            select(
                DailyPromo.id,
                DailyPromo.user_id,
                DailyPromo.artist_id,
                DailyPromo.week_number,
                DailyPromo.bet_snapshot,
            )
            .where(DailyPromo.bet_done.is_(True), DailyPromo.bet_resolved.is_(False))
            .order_by(DailyPromo.id)
        )
        async with self.db.session() as session:
            rows = await fetch_all_rows(session, statement, self.page_size)

        return [
            wager_from_promo(
                promo_id=str(row.id),
                user_id=str(row.user_id),
                artist_id=row.artist_id,
                week_number=row.week_number,
                snapshot=row.bet_snapshot,
            )
            for row in rows
        ]

    async def list_period_scores(self, week_number: int) -> Dict[str, int]:
        statement = (
            select(WeeklyScore.artist_id, WeeklyScore.total_points)
            .where(WeeklyScore.week_number == week_number)
            .order_by(WeeklyScore.artist_id)
        )
        async with self.db.session() as session:
            rows = await fetch_all_rows(session, statement, self.page_size)
        return {row.artist_id: row.total_points or 0 for row in rows}

    async def sum_logged_points(self, week_number: int) -> Dict[str, int]:
        statement = (
            select(DailyScoreLog.user_id, func.sum(DailyScoreLog.points_gained).label("logged"))
            .where(DailyScoreLog.week_number == week_number)
            .group_by(DailyScoreLog.user_id)
            .order_by(DailyScoreLog.user_id)
        )
        async with self.db.session() as session:
            rows = await fetch_all_rows(session, statement, self.page_size)
        return {str(row.user_id): int(row.logged or 0) for row in rows}

    async def upsert_period_scores(self, scores: List[PeriodScore]) -> None:
        if not scores:
            return
        stmt = pg_insert(WeeklyScore).values([score.to_dict() for score in scores])
        stmt = stmt.on_conflict_do_update(
            index_elements=[WeeklyScore.week_number, WeeklyScore.artist_id],
            set_={
                "popularity_gain": stmt.excluded.popularity_gain,
                "follower_gain_percent": stmt.excluded.follower_gain_percent,
                "release_bonus": stmt.excluded.release_bonus,
                "total_points": stmt.excluded.total_points,
                "updated_at": func.now(),
            },
        )
        async with self.db.session() as session:
            await session.execute(stmt)
        self.db.record_query()

    async def update_artist_metrics(self, metrics: List[ArtistMetrics], updated_at: datetime) -> None:
        if not metrics:
            return
        table = ArtistCache.__table__
        stmt = (
            update(table)
            .where(table.c.spotify_id == bindparam("b_artist_id"))
            .values(
                current_popularity=bindparam("b_popularity"),
                current_followers=bindparam("b_followers"),
                last_updated=bindparam("b_updated_at"),
            )
        )
        params = [
            {
                "b_artist_id": m.artist_id,
                "b_popularity": m.popularity,
                "b_followers": m.followers,
                "b_updated_at": updated_at,
            }
            for m in metrics
        ]
        async with self.db.session() as session:
            await session.execute(stmt, params)
        self.db.record_query(len(params))

    async def record_accruals(self, entries: List[AccrualEntry]) -> None:
        if not entries:
            return
        profiles = Profile.__table__
        apply_delta = (
            update(profiles)
            .where(profiles.c.id == bindparam("b_user_id"))
            .values(
                total_score=profiles.c.total_score + bindparam("b_delta"),
                updated_at=func.now(),
            )
        )
        async with self.db.session() as session:
            await session.execute(
                pg_insert(DailyScoreLog.__table__).values([
                    {
                        "id": uuid.uuid4(),
                        "user_id": uuid.UUID(entry.user_id),
                        "week_number": entry.week_number,
                        "points_gained": entry.points_gained,
                        "date": entry.log_date,
                        "seen_by_user": False,
                    }
                    for entry in entries
                ])
            )
            await session.execute(
                apply_delta,
                [{"b_user_id": uuid.UUID(e.user_id), "b_delta": e.points_gained} for e in entries],
            )
        self.db.record_query(len(entries) + 1)

    async def resolve_wager(self, wager: Wager, resolution: WagerResolution) -> bool:
        promo_id = uuid.UUID(wager.promo_id)
        async with self.db.session() as session:
            result = await session.execute(
                update(DailyPromo)
                .where(DailyPromo.id == promo_id, DailyPromo.bet_resolved.is_(False))
                .values(
                    bet_snapshot=resolution.apply_to_snapshot(wager.snapshot),
                    bet_resolved=True,
                    total_points=func.coalesce(DailyPromo.total_points, 0) + resolution.points_awarded,
                    total_coins=func.coalesce(DailyPromo.total_coins, 0) + resolution.coins_awarded,
                )
                .returning(DailyPromo.id)
                .execution_options(synchronize_session=False)
            )
            if result.first() is None:
                return False

            if resolution.points_awarded or resolution.coins_awarded:
                await session.execute(
                    update(Profile)
                    .where(Profile.id == uuid.UUID(wager.user_id))
                    .values(
                        listen_score=Profile.listen_score + resolution.points_awarded,
                        musi_coins=Profile.musi_coins + resolution.coins_awarded,
                    )
                    .execution_options(synchronize_session=False)
                )
        return True

    async def list_profiles(self) -> List[UserAggregate]:
        statement = (
            select(
                Profile.id,
                Profile.total_score,
                Profile.listen_score,
                Profile.musi_coins,
                Profile.created_at,
            )
            .order_by(Profile.id)
        )
        async with self.db.session() as session:
            rows = await fetch_all_rows(session, statement, self.page_size)

        return [
            UserAggregate(
                user_id=str(row.id),
                total_score=row.total_score or 0,
                listen_score=row.listen_score or 0,
                musi_coins=row.musi_coins or 0,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def get_leaderboard_rewards(self) -> Dict[str, int]:
        async with self.db.session() as session:
            result = await session.execute(select(LeaderboardConfig.tier, LeaderboardConfig.reward_musicoins))
            return {row.tier: row.reward_musicoins or 0 for row in result.all()}

    async def insert_leaderboard_history(self, entries: List[LeaderboardEntry]) -> Set[str]:
        if not entries:
            return set()
        stmt = (
            pg_insert(WeeklyLeaderboardHistory)
            .values([
                {
                    "id": uuid.uuid4(),
                    "user_id": uuid.UUID(entry.user_id),
                    "week_number": entry.week_number,
                    "rank": entry.rank,
                    "score": entry.score,
                    "reward_musicoins": entry.reward_musicoins,
                    "is_seen": False,
                }
                for entry in entries
            ])
            .on_conflict_do_nothing(index_elements=["user_id", "week_number"])
            .returning(WeeklyLeaderboardHistory.user_id)
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            return {str(user_id) for user_id in result.scalars().all()}

    async def credit_coins(self, credits: Dict[str, int]) -> None:
        params = [
            {"b_user_id": uuid.UUID(user_id), "b_coins": coins}
            for user_id, coins in credits.items()
            if coins
        ]
        if not params:
            return
        profiles = Profile.__table__
        stmt = (
            update(profiles)
            .where(profiles.c.id == bindparam("b_user_id"))
            .values(musi_coins=profiles.c.musi_coins + bindparam("b_coins"))
        )
        async with self.db.session() as session:
            await session.execute(stmt, params)

    async def reset_scores(self) -> int:
        async with self.db.session() as session:
            result = await session.execute(
                update(Profile)
                .where(or_(Profile.total_score != 0, Profile.listen_score != 0))
                .values(total_score=0, listen_score=0)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

    async def list_cached_artists(self) -> List[ArtistMetrics]:
        statement = (
            select(
                ArtistCache.spotify_id,
                ArtistCache.name,
                ArtistCache.current_popularity,
                ArtistCache.current_followers,
            )
            .order_by(ArtistCache.spotify_id)
        )
        async with self.db.session() as session:
            rows = await fetch_all_rows(session, statement, self.page_size)

        return [
            ArtistMetrics(
                artist_id=row.spotify_id,
                popularity=row.current_popularity or 0,
                followers=row.current_followers or 0,
                name=row.name,
            )
            for row in rows
        ]

    async def list_snapshot_artist_ids(self, week_number: int) -> Set[str]:
        statement = (
            select(WeeklySnapshot.artist_id)
            .where(WeeklySnapshot.week_number == week_number)
            .order_by(WeeklySnapshot.artist_id)
        )
        async with self.db.session() as session:
            ids = await fetch_all_rows(session, statement, self.page_size, scalars=True)
        return set(ids)

    async def insert_snapshots(self, snapshots: List[BaselineSnapshot]) -> int:
        if not snapshots:
            return 0
        stmt = (
            pg_insert(WeeklySnapshot)
            .values([
                {
                    "id": uuid.uuid4(),
                    "week_number": s.week_number,
                    "artist_id": s.artist_id,
                    "popularity": s.popularity,
                    "followers": s.followers,
                    "created_at": s.created_at,
                }
                for s in snapshots
            ])
            .on_conflict_do_nothing(index_elements=["week_number", "artist_id"])
            .returning(WeeklySnapshot.id)
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            return len(result.all())
