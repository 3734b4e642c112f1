"""
MUSISCORE - Test Configuration
Pytest fixtures and in-memory doubles for the test suite.
"""

import json
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx
import pytest

from musiscore.services.collectors import MetricsClientConfig, RetryPolicy, SpotifyMetricsClient
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
from musiscore.services.scoring.active_entities import latest_rosters
from musiscore.services.scoring.wagers import wager_from_promo
from musiscore.services.store.scoring_store import ScoringStore

WEEK_START = datetime(2026, 10, 12, 0, 5, tzinfo=timezone.utc)


class InMemoryScoringStore(ScoringStore):
    """
    ScoringStore backed by dicts.

    fail(method, times) makes the next `times` calls of a write method raise.
    """

    def __init__(self):
        self.season: Optional[Dict[str, Any]] = {"id": "season-1", "name": "Season 1", "start_date": date(2026, 9, 1)}
        self.snapshots: Dict[Tuple[int, str], BaselineSnapshot] = {}
        self.teams: List[Roster] = []
        self.featured: Set[str] = set()
        self.promos: Dict[str, Dict[str, Any]] = {}
        self.weekly_scores: Dict[Tuple[int, str], PeriodScore] = {}
        self.logs: List[AccrualEntry] = []
        self.profiles: Dict[str, UserAggregate] = {}
        self.rewards: Dict[str, int] = {}
        self.history: Dict[Tuple[str, int], LeaderboardEntry] = {}
        self.artists: Dict[str, ArtistMetrics] = {}
        self.artists_updated_at: Dict[str, datetime] = {}
        self._failures: Dict[str, int] = {}

    # ---- test helpers ------------------------------------------------------

    def fail(self, method: str, times: int = 1) -> None:
        self._failures[method] = times

    def _maybe_fail(self, method: str) -> None:
        remaining = self._failures.get(method, 0)
        if remaining > 0:
            self._failures[method] = remaining - 1
            raise RuntimeError(f"{method} failed")

    def add_profile(self, user_id: str, total_score: int = 0, listen_score: int = 0,
                    musi_coins: int = 0, created_at: Optional[datetime] = None) -> UserAggregate:
        profile = UserAggregate(
            user_id=user_id,
            total_score=total_score,
            listen_score=listen_score,
            musi_coins=musi_coins,
            created_at=created_at or datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        self.profiles[user_id] = profile
        return profile

    def add_snapshot(self, week_number: int, artist_id: str, popularity: int, followers: int,
                     created_at: datetime = WEEK_START) -> None:
        self.snapshots[(week_number, artist_id)] = BaselineSnapshot(
            week_number, artist_id, popularity, followers, created_at,
        )

    def add_team(self, user_id: str, week_number: int, slots: List[Optional[str]],
                 captain_id: Optional[str] = None) -> None:
        if user_id not in self.profiles:
            self.add_profile(user_id)
        self.teams.append(Roster(user_id, week_number, list(slots), captain_id))

    def add_promo(self, promo_id: str, user_id: str, artist_id: Optional[str], snapshot: Dict[str, Any],
                  week_number: Optional[int] = None) -> None:
        if user_id not in self.profiles:
            self.add_profile(user_id)
        self.promos[promo_id] = {
            "user_id": user_id,
            "artist_id": artist_id,
            "week_number": week_number,
            "bet_done": True,
            "bet_resolved": False,
            "bet_snapshot": snapshot,
            "total_points": 0,
            "total_coins": 0,
        }

    def logged_total(self, user_id: str, week_number: int) -> int:
        return sum(e.points_gained for e in self.logs if e.user_id == user_id and e.week_number == week_number)

    # ---- season / period ---------------------------------------------------

    async def get_active_season(self):
        return self.season

    async def get_latest_week(self):
        weeks = [week for week, _ in self.snapshots]
        return max(weeks) if weeks else None

    async def get_week_opened_at(self, week_number):
        times = [s.created_at for (week, _), s in self.snapshots.items() if week == week_number]
        return min(times) if times else None

    # ---- daily scoring reads -----------------------------------------------

    async def list_snapshots(self, week_number):
        return [s for (week, _), s in sorted(self.snapshots.items()) if week == week_number]

    async def list_active_rosters(self, week_number):
        return latest_rosters(self.teams, week_number)

    async def list_featured_ids(self):
        return set(self.featured)

    async def list_pending_wagers(self):
        return [
            wager_from_promo(
                promo_id=promo_id,
                user_id=row["user_id"],
                artist_id=row["artist_id"],
                week_number=row["week_number"],
                snapshot=json.loads(json.dumps(row["bet_snapshot"])),
            )
            for promo_id, row in sorted(self.promos.items())
            if row["bet_done"] and not row["bet_resolved"]
        ]

    async def list_period_scores(self, week_number):
        return {artist: s.total_points for (week, artist), s in self.weekly_scores.items() if week == week_number}

    async def sum_logged_points(self, week_number):
        sums: Dict[str, int] = {}
        for entry in self.logs:
            if entry.week_number == week_number:
                sums[entry.user_id] = sums.get(entry.user_id, 0) + entry.points_gained
        return sums

    # ---- daily scoring writes ----------------------------------------------

    async def upsert_period_scores(self, scores):
        self._maybe_fail("upsert_period_scores")
        for score in scores:
            self.weekly_scores[(score.week_number, score.artist_id)] = score

    async def update_artist_metrics(self, metrics, updated_at):
        self._maybe_fail("update_artist_metrics")
        for m in metrics:
            self.artists[m.artist_id] = ArtistMetrics(m.artist_id, m.popularity, m.followers,
                                                      self.artists.get(m.artist_id, m).name)
            self.artists_updated_at[m.artist_id] = updated_at

    async def record_accruals(self, entries):
        self._maybe_fail("record_accruals")
        for entry in entries:
            self.logs.append(entry)
            self.profiles[entry.user_id].total_score += entry.points_gained

    async def resolve_wager(self, wager: Wager, resolution: WagerResolution):
        self._maybe_fail("resolve_wager")
        row = self.promos[wager.promo_id]
        if row["bet_resolved"]:
            return False
        row["bet_resolved"] = True
        row["bet_snapshot"] = resolution.apply_to_snapshot(wager.snapshot)
        row["total_points"] += resolution.points_awarded
        row["total_coins"] += resolution.coins_awarded
        profile = self.profiles[wager.user_id]
        profile.listen_score += resolution.points_awarded
        profile.musi_coins += resolution.coins_awarded
        return True

    # ---- rollover ----------------------------------------------------------

    async def list_profiles(self):
        return [
            UserAggregate(p.user_id, p.total_score, p.listen_score, p.musi_coins, p.created_at)
            for p in self.profiles.values()
        ]

    async def get_leaderboard_rewards(self):
        return dict(self.rewards)

    async def insert_leaderboard_history(self, entries):
        self._maybe_fail("insert_leaderboard_history")
        inserted = set()
        for entry in entries:
            key = (entry.user_id, entry.week_number)
            if key in self.history:
                continue
            self.history[key] = entry
            inserted.add(entry.user_id)
        return inserted

    async def credit_coins(self, credits):
        for user_id, coins in credits.items():
            self.profiles[user_id].musi_coins += coins

    async def reset_scores(self):
        reset = 0
        for profile in self.profiles.values():
            if profile.total_score or profile.listen_score:
                profile.total_score = 0
                profile.listen_score = 0
                reset += 1
        return reset

    # ---- weekly freeze -----------------------------------------------------

    async def list_cached_artists(self):
        return list(self.artists.values())

    async def list_snapshot_artist_ids(self, week_number):
        return {artist for (week, artist) in self.snapshots if week == week_number}

    async def insert_snapshots(self, snapshots):
        self._maybe_fail("insert_snapshots")
        inserted = 0
        for s in snapshots:
            key = (s.week_number, s.artist_id)
            if key not in self.snapshots:
                self.snapshots[key] = s
                inserted += 1
        return inserted


class FakeSpotify:
    """
    Stand-in for the Spotify Web API, served through httpx.MockTransport.

    artists: id -> (popularity, followers)
    releases: id -> list of (release_date, album_type)
    fail_ids: any /artists batch containing one of these ids answers 400
    """

    def __init__(self):
        self.artists: Dict[str, Tuple[int, int]] = {}
        self.releases: Dict[str, List[Tuple[str, str]]] = {}
        self.fail_ids: Set[str] = set()
        self.failing_release_ids: Set[str] = set()
        self.token_status = 200
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/api/token"):
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            return httpx.Response(200, json={"access_token": "test-token", "expires_in": 3600})

        if path.endswith("/albums"):
            artist_id = path.split("/")[-2]
            if artist_id in self.failing_release_ids:
                return httpx.Response(404, json={"error": "not found"})
            items = [
                {"id": f"{artist_id}-r{i}", "name": f"Release {i}", "release_date": rd, "album_type": kind}
                for i, (rd, kind) in enumerate(self.releases.get(artist_id, []))
            ]
            return httpx.Response(200, json={"items": items})

        if path.endswith("/artists"):
            ids = request.url.params.get("ids", "").split(",")
            if self.fail_ids.intersection(ids):
                return httpx.Response(400, json={"error": "bad request"})
            return httpx.Response(200, json={"artists": [
                {
                    "id": artist_id,
                    "name": artist_id.title(),
                    "popularity": self.artists[artist_id][0],
                    "followers": {"total": self.artists[artist_id][1]},
                } if artist_id in self.artists else None
                for artist_id in ids
            ]})

        return httpx.Response(404)

    def client(self, batch_size: int = 50) -> SpotifyMetricsClient:
        async def no_sleep(_seconds):
            return None

        config = MetricsClientConfig(
            client_id="client-id",
            client_secret="client-secret",
            token_url="https://accounts.spotify.test/api/token",
            api_base_url="https://api.spotify.test/v1",
            batch_size=batch_size,
        )
        return SpotifyMetricsClient(
            config,
            retry_policy=RetryPolicy(max_attempts=3, base_delay=0.5),
            sleep=no_sleep,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def store() -> InMemoryScoringStore:
    return InMemoryScoringStore()


@pytest.fixture
def fake_spotify() -> FakeSpotify:
    return FakeSpotify()
