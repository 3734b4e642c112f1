"""
MUSISCORE - SQL Store Statement Tests

Runs SqlAlchemyScoringStore against a recording session and checks the
PostgreSQL statements it issues. No database is needed.
"""

import re
import uuid
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, List, Optional, Tuple

import pytest
from sqlalchemy.dialects import postgresql

from musiscore.services.scoring.types import (
    AccrualEntry,
    LeaderboardEntry,
    PeriodScore,
    Wager,
    WagerResolution,
)
from musiscore.services.store.scoring_store import SqlAlchemyScoringStore

pytestmark = pytest.mark.unit

USER_A = str(uuid.UUID(int=1))
USER_B = str(uuid.UUID(int=2))
PROMO = str(uuid.UUID(int=10))


class FakeResult:

    def __init__(self, rows: Optional[List[Any]] = None, rowcount: int = 0):
        self.rows = rows or []
        self.rowcount = rowcount

    def first(self):
        return self.rows[0] if self.rows else None

    def all(self):
        return list(self.rows)

    def scalars(self):
        return self


class RecordingSession:

    def __init__(self, results: List[FakeResult]):
        self.results = results
        self.executed: List[Tuple[Any, Any]] = []

    async def execute(self, statement, params=None):
        self.executed.append((statement, params))
        return self.results.pop(0) if self.results else FakeResult()


class RecordingDatabase:
    """DatabaseManager stand-in; one list of statements per session (transaction)."""

    def __init__(self, *results: FakeResult):
        self.results = list(results)
        self.sessions: List[RecordingSession] = []

    @asynccontextmanager
    async def session(self):
        session = RecordingSession(self.results)
        self.sessions.append(session)
        yield session

    def record_query(self, count: int = 1) -> None:
        pass


def sql(statement) -> str:
    compiled = str(statement.compile(dialect=postgresql.dialect()))
    return re.sub(r"\s+", " ", compiled)


class TestRecordAccruals:

    @pytest.mark.asyncio
    async def test_log_rows_and_deltas_share_one_transaction(self):
        db = RecordingDatabase()
        store = SqlAlchemyScoringStore(database=db)

        await store.record_accruals([
            AccrualEntry(USER_A, 3, 20, date(2026, 10, 14)),
            AccrualEntry(USER_B, 3, -5, date(2026, 10, 14)),
        ])

        assert len(db.sessions) == 1
        (insert_log, _), (apply_delta, params) = db.sessions[0].executed
        assert sql(insert_log).startswith("INSERT INTO daily_score_logs")
        assert re.search(r"SET total_score=\(?profiles\.total_score \+ %\(b_delta\)s", sql(apply_delta))
        assert [p["b_delta"] for p in params] == [20, -5]

    @pytest.mark.asyncio
    async def test_nothing_to_record(self):
        db = RecordingDatabase()
        await SqlAlchemyScoringStore(database=db).record_accruals([])
        assert db.sessions == []


class TestResolveWager:

    def _wager(self) -> Wager:
        return Wager(PROMO, USER_A, "mine", "rival", "my_artist")

    @pytest.mark.asyncio
    async def test_conditional_update_then_payout(self):
        db = RecordingDatabase(FakeResult(rows=[(uuid.UUID(PROMO),)]))
        store = SqlAlchemyScoringStore(database=db)
        resolution = WagerResolution(PROMO, USER_A, "won", 30, 10, points_awarded=10, coins_awarded=2)

        applied = await store.resolve_wager(self._wager(), resolution)

        assert applied is True
        assert len(db.sessions) == 1
        (resolve, _), (payout, _) = db.sessions[0].executed
        resolve_sql = sql(resolve)
        assert resolve_sql.startswith("UPDATE daily_promos SET")
        assert "daily_promos.bet_resolved IS false" in resolve_sql
        assert resolve_sql.endswith("RETURNING daily_promos.id")
        payout_sql = sql(payout)
        assert re.search(r"listen_score=\(?profiles\.listen_score \+", payout_sql)
        assert re.search(r"musi_coins=\(?profiles\.musi_coins \+", payout_sql)

    @pytest.mark.asyncio
    async def test_already_resolved_pays_nothing(self):
        db = RecordingDatabase(FakeResult(rows=[]))
        store = SqlAlchemyScoringStore(database=db)
        resolution = WagerResolution(PROMO, USER_A, "won", 30, 10, points_awarded=10)

        applied = await store.resolve_wager(self._wager(), resolution)

        assert applied is False
        assert len(db.sessions[0].executed) == 1

    @pytest.mark.asyncio
    async def test_lost_bet_touches_only_the_promo(self):
        db = RecordingDatabase(FakeResult(rows=[(uuid.UUID(PROMO),)]))
        store = SqlAlchemyScoringStore(database=db)

        await store.resolve_wager(self._wager(), WagerResolution(PROMO, USER_A, "lost", 5, 10))

        assert len(db.sessions[0].executed) == 1


class TestLeaderboardHistory:

    @pytest.mark.asyncio
    async def test_duplicates_ignored_and_inserted_ids_returned(self):
        db = RecordingDatabase(FakeResult(rows=[uuid.UUID(USER_A)]))
        store = SqlAlchemyScoringStore(database=db)

        inserted = await store.insert_leaderboard_history([
            LeaderboardEntry(USER_A, 4, 1, 90, 500),
            LeaderboardEntry(USER_B, 4, 2, 60, 300),
        ])

        assert inserted == {USER_A}
        statement_sql = sql(db.sessions[0].executed[0][0])
        assert statement_sql.startswith("INSERT INTO weekly_leaderboard_history")
        assert "ON CONFLICT (user_id, week_number) DO NOTHING" in statement_sql
        assert statement_sql.endswith("RETURNING weekly_leaderboard_history.user_id")

    @pytest.mark.asyncio
    async def test_coins_credited_additively(self):
        db = RecordingDatabase()
        store = SqlAlchemyScoringStore(database=db)

        await store.credit_coins({USER_A: 500, USER_B: 0})

        statement, params = db.sessions[0].executed[0]
        assert re.search(r"SET musi_coins=\(?profiles\.musi_coins \+ %\(b_coins\)s", sql(statement))
        assert params == [{"b_user_id": uuid.UUID(USER_A), "b_coins": 500}]

    @pytest.mark.asyncio
    async def test_reset_only_touches_scored_profiles(self):
        db = RecordingDatabase(FakeResult(rowcount=7))

        reset = await SqlAlchemyScoringStore(database=db).reset_scores()

        assert reset == 7
        statement_sql = sql(db.sessions[0].executed[0][0])
        assert "profiles.total_score != %(total_score_1)s" in statement_sql
        assert "profiles.listen_score != %(listen_score_1)s" in statement_sql


class TestPeriodScores:

    @pytest.mark.asyncio
    async def test_upsert_on_week_and_artist(self):
        db = RecordingDatabase()
        store = SqlAlchemyScoringStore(database=db)

        await store.upsert_period_scores([PeriodScore(3, "a", 4, 1.5, 10, 30)])

        statement_sql = sql(db.sessions[0].executed[0][0])
        assert "ON CONFLICT (week_number, artist_id) DO UPDATE SET" in statement_sql
        assert "total_points = excluded.total_points" in statement_sql
