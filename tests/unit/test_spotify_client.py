"""
MUSISCORE - Spotify Collector Tests

Runs the collector against httpx.MockTransport; retry sleeps are recorded
instead of awaited.
"""

import asyncio
from dataclasses import replace
from typing import List

import httpx
import pytest

from musiscore.services.collectors import (
    MetricsClientConfig,
    PermanentProviderError,
    ProviderAuthError,
    RetryPolicy,
    SpotifyMetricsClient,
    TransientProviderError,
)
from musiscore.services.collectors.base_collector import RateLimiter, parse_retry_after
from musiscore.services.collectors.spotify_collector import chunked, unique_ids

pytestmark = pytest.mark.unit

CONFIG = MetricsClientConfig(
    client_id="client-id",
    client_secret="client-secret",
    token_url="https://accounts.spotify.test/api/token",
    api_base_url="https://api.spotify.test/v1",
)


def token_response() -> httpx.Response:
    return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})


def scripted_client(responses: List[httpx.Response], sleeps: List[float], config=CONFIG):
    """Collector whose API calls answer with `responses` in order (token call excluded)."""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/api/token"):
            return token_response()
        return queue.pop(0)

    async def record_sleep(seconds):
        sleeps.append(seconds)

    return SpotifyMetricsClient(
        config,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.5, multiplier=2.0),
        sleep=record_sleep,
        transport=httpx.MockTransport(handler),
    )


def artists_payload(*ids):
    return {"artists": [{"id": i, "name": i, "popularity": 50, "followers": {"total": 10}} for i in ids]}


class TestHelpers:

    def test_chunked(self):
        assert chunked(["a", "b", "c"], 2) == [["a", "b"], ["c"]]

    def test_unique_ids(self):
        assert unique_ids(["b", None, "a", "b", ""]) == ["b", "a"]

    @pytest.mark.parametrize("value,expected", [("3", 3.0), ("0", 0.0), (None, None), ("soon", None)])
    def test_parse_retry_after(self, value, expected):
        assert parse_retry_after(value) == expected

    def test_backoff_delays(self):
        policy = RetryPolicy(base_delay=0.5, multiplier=2.0, max_delay=1.5)
        assert [policy.get_delay(n) for n in range(4)] == [0.5, 1.0, 1.5, 1.5]

    def test_rate_limiter_budget(self):
        limiter = RateLimiter(max_requests=2, window_seconds=60)
        limiter.add_request()
        assert limiter.can_request()
        limiter.add_request()
        assert not limiter.can_request()
        assert limiter.wait_time() > 0


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_token_obtained_once(self, fake_spotify):
        fake_spotify.artists = {"a": (50, 100)}

        async with fake_spotify.client() as client:
            await client.fetch_metrics(["a"])
            await client.fetch_metrics(["a"])

        token_calls = [r for r in fake_spotify.requests if r.url.path.endswith("/api/token")]
        assert len(token_calls) == 1
        assert token_calls[0].headers["Authorization"].startswith("Basic ")
        assert b"grant_type=client_credentials" in token_calls[0].content
        assert fake_spotify.requests[-1].headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401])
    async def test_rejected_credentials(self, fake_spotify, status):
        fake_spotify.token_status = status

        async with fake_spotify.client() as client:
            with pytest.raises(ProviderAuthError):
                await client.fetch_metrics(["a"])

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        client = SpotifyMetricsClient(MetricsClientConfig(client_id="", client_secret=""))
        with pytest.raises(ProviderAuthError):
            await client.authenticate()


class TestFetchMetrics:

    @pytest.mark.asyncio
    async def test_chunks_of_fifty(self, fake_spotify):
        ids = [f"artist-{i}" for i in range(120)]
        fake_spotify.artists = {artist_id: (i, i * 100) for i, artist_id in enumerate(ids)}

        async with fake_spotify.client() as client:
            metrics = await client.fetch_metrics(ids)

        calls = [r for r in fake_spotify.requests if r.url.path.endswith("/artists")]
        assert [len(r.url.params["ids"].split(",")) for r in calls] == [50, 50, 20]
        assert len(metrics) == 120
        assert metrics["artist-7"].popularity == 7
        assert metrics["artist-7"].followers == 700

    @pytest.mark.asyncio
    async def test_batch_size_never_exceeds_provider_limit(self, fake_spotify):
        ids = [f"artist-{i}" for i in range(60)]
        fake_spotify.artists = {artist_id: (1, 1) for artist_id in ids}

        async with fake_spotify.client(batch_size=200) as client:
            await client.fetch_metrics(ids)

        calls = [r for r in fake_spotify.requests if r.url.path.endswith("/artists")]
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_failed_chunk_is_skipped(self, fake_spotify):
        ids = [f"artist-{i}" for i in range(120)]
        fake_spotify.artists = {artist_id: (1, 1) for artist_id in ids}
        fake_spotify.fail_ids = {"artist-60"}

        async with fake_spotify.client() as client:
            metrics = await client.fetch_metrics(ids)

        assert len(metrics) == 70
        assert "artist-60" not in metrics
        assert "artist-119" in metrics

    @pytest.mark.asyncio
    async def test_unknown_ids_ignored(self, fake_spotify):
        fake_spotify.artists = {"a": (1, 1)}

        async with fake_spotify.client() as client:
            metrics = await client.fetch_metrics(["a", "ghost"])

        assert list(metrics) == ["a"]


class TestRetries:

    @pytest.mark.asyncio
    async def test_retry_after_is_honored(self):
        sleeps: List[float] = []
        client = scripted_client([
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(200, json=artists_payload("a")),
        ], sleeps)

        async with client:
            metrics = await client.fetch_metrics(["a"])

        assert sleeps == [3.0]
        assert "a" in metrics

    @pytest.mark.asyncio
    async def test_server_errors_back_off(self):
        sleeps: List[float] = []
        client = scripted_client([
            httpx.Response(503),
            httpx.Response(500),
            httpx.Response(200, json=artists_payload("a")),
        ], sleeps)

        async with client:
            metrics = await client.fetch_metrics(["a"])

        assert sleeps == [0.5, 1.0]
        assert "a" in metrics

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        sleeps: List[float] = []
        client = scripted_client([httpx.Response(502) for _ in range(3)], sleeps)

        async with client:
            await client.authenticate()
            with pytest.raises(TransientProviderError):
                await client.get("/artists", params={"ids": "a"})

        assert sleeps == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        sleeps: List[float] = []
        client = scripted_client([httpx.Response(404)], sleeps)

        async with client:
            with pytest.raises(PermanentProviderError) as exc_info:
                await client.fetch_recent_releases("a")

        assert exc_info.value.status_code == 404
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        sleeps: List[float] = []
        attempts = []

        def handler(request):
            if request.url.path.endswith("/api/token"):
                return token_response()
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=artists_payload("a"))

        async def record_sleep(seconds):
            sleeps.append(seconds)

        client = SpotifyMetricsClient(CONFIG, sleep=record_sleep, transport=httpx.MockTransport(handler))
        async with client:
            metrics = await client.fetch_metrics(["a"])

        assert len(attempts) == 2
        assert "a" in metrics


class TestReleases:

    @pytest.mark.asyncio
    async def test_release_query(self, fake_spotify):
        fake_spotify.releases = {"a": [("2026-10-13", "single"), ("2025", "album")]}

        async with fake_spotify.client() as client:
            releases = await client.fetch_recent_releases("a")

        request = fake_spotify.requests[-1]
        assert request.url.params["include_groups"] == "album,single,appears_on"
        assert request.url.params["limit"] == "50"
        assert request.url.params["market"] == "IT"
        assert [(r.release_date, r.album_type) for r in releases] == [("2026-10-13", "single"), ("2025", "album")]

    @pytest.mark.asyncio
    async def test_failed_artist_left_out(self, fake_spotify):
        fake_spotify.releases = {"a": [("2026-10-13", "single")], "b": []}
        fake_spotify.failing_release_ids = {"c"}

        async with fake_spotify.client() as client:
            releases = await client.fetch_releases_for(["a", "b", "c", "a"])

        assert set(releases) == {"a", "b"}
        assert releases["b"] == []

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_bounded(self):
        in_flight = 0
        peak = 0

        async def handler(request):
            nonlocal in_flight, peak
            if request.url.path.endswith("/api/token"):
                return token_response()
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, json={"items": []})

        config = replace(CONFIG, releases_concurrency=5)
        client = SpotifyMetricsClient(config, transport=httpx.MockTransport(handler))

        async with client:
            releases = await client.fetch_releases_for([f"artist-{i}" for i in range(20)])

        assert len(releases) == 20
        assert 1 < peak <= 5


class TestTokenRefresh:

    @staticmethod
    def expiring_token_client(token_calls: List[httpx.Request], accepted: set):
        """Token endpoint hands out t1, t2, ...; the API only accepts tokens in `accepted`."""

        def handler(request):
            if request.url.path.endswith("/api/token"):
                token_calls.append(request)
                return httpx.Response(200, json={"access_token": f"t{len(token_calls)}"})
            if request.headers.get("Authorization", "").removeprefix("Bearer ") not in accepted:
                return httpx.Response(401, json={"error": "The access token expired"})
            if request.url.path.endswith("/albums"):
                return httpx.Response(200, json={"items": []})
            return httpx.Response(200, json=artists_payload("a"))

        async def no_sleep(_seconds):
            return None

        return SpotifyMetricsClient(CONFIG, sleep=no_sleep, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed(self):
        token_calls: List[httpx.Request] = []
        client = self.expiring_token_client(token_calls, accepted={"t2"})

        async with client:
            metrics = await client.fetch_metrics(["a"])

        assert "a" in metrics
        assert len(token_calls) == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self):
        token_calls: List[httpx.Request] = []
        client = self.expiring_token_client(token_calls, accepted={"t2"})

        async with client:
            releases = await client.fetch_releases_for([f"artist-{i}" for i in range(10)])

        assert len(releases) == 10
        assert len(token_calls) == 2

    @pytest.mark.asyncio
    async def test_rejected_after_refresh_aborts(self):
        token_calls: List[httpx.Request] = []
        client = self.expiring_token_client(token_calls, accepted=set())

        async with client:
            with pytest.raises(ProviderAuthError):
                await client.fetch_metrics(["a"])

        assert len(token_calls) == 2


class TestRateBudget:

    @pytest.mark.asyncio
    async def test_budget_rechecked_after_waiting(self):
        sleeps: List[float] = []
        client = scripted_client([], sleeps)
        client.rate_limiter = RateLimiter(max_requests=1, window_seconds=60)
        client.rate_limiter.add_request()

        async def sleep(seconds):
            sleeps.append(seconds)
            # Still full on the first wake; the window clears on the second.
            if len(sleeps) == 2:
                client.rate_limiter.requests.clear()

        client._sleep = sleep

        await client._wait_for_budget()

        assert len(sleeps) == 2
        assert client.rate_limiter.can_request()
