"""
MUSISCORE - Spotify Metrics Collector

Fetches current popularity/followers and recent releases for the artists a
scoring run needs. Uses the client-credentials flow; the token lives only
as long as the collector.

Endpoints:
- POST {token_url}                      grant_type=client_credentials
- GET  /artists?ids=a,b,c               up to 50 ids per call
- GET  /artists/{id}/albums             recent albums and singles
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import httpx

from musiscore.core.config import SPOTIFY_MAX_IDS_PER_REQUEST, Settings, settings as default_settings
from musiscore.services.collectors.base_collector import (
    BaseCollector,
    MetricsProviderError,
    ProviderAuthError,
    RetryPolicy,
    SleepFunc,
)
from musiscore.services.scoring.types import ArtistMetrics, Release

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MetricsClientConfig:
    """Everything the collector needs, resolved once per run."""
    client_id: str
    client_secret: str
    token_url: str = "https://accounts.spotify.com/api/token"
    api_base_url: str = "https://api.spotify.com/v1"
    market: str = "IT"
    batch_size: int = SPOTIFY_MAX_IDS_PER_REQUEST
    releases_concurrency: int = 5
    rate_limit_per_minute: int = 180
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "MetricsClientConfig":
        config = config or default_settings
        return cls(
            client_id=config.SPOTIFY_CLIENT_ID,
            client_secret=config.SPOTIFY_CLIENT_SECRET,
            token_url=config.SPOTIFY_TOKEN_URL,
            api_base_url=config.SPOTIFY_API_BASE_URL,
            market=config.SPOTIFY_MARKET,
            batch_size=config.SPOTIFY_BATCH_SIZE,
            releases_concurrency=config.SPOTIFY_RELEASES_CONCURRENCY,
            rate_limit_per_minute=config.SPOTIFY_RATE_LIMIT_PER_MINUTE,
            timeout=config.SPOTIFY_TIMEOUT,
        )


def chunked(ids: List[str], size: int) -> List[List[str]]:
    return [ids[i:i + size] for i in range(0, len(ids), size)]


def unique_ids(ids: Iterable[Optional[str]]) -> List[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen = set()
    result = []
    for artist_id in ids:
        if artist_id and artist_id not in seen:
            seen.add(artist_id)
            result.append(artist_id)
    return result


def parse_artist(item: Dict[str, Any]) -> ArtistMetrics:
    followers = item.get("followers") or {}
    return ArtistMetrics(
        artist_id=item["id"],
        popularity=int(item.get("popularity") or 0),
        followers=int(followers.get("total") or 0),
        name=item.get("name"),
    )


def parse_release(item: Dict[str, Any]) -> Release:
    return Release(
        release_id=item.get("id", ""),
        name=item.get("name", ""),
        release_date=item.get("release_date", ""),
        album_type=item.get("album_type", ""),
    )


class SpotifyMetricsClient(BaseCollector):
    """
    Spotify Web API collector.

    Chunk and per-artist failures are logged and left out of the results so
    the rest of the run goes on; only ProviderAuthError escapes. A token the
    API rejects mid-run is refreshed once per request before giving up.
    """

    def __init__(
        self,
        config: MetricsClientConfig,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[SleepFunc] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            name="spotify",
            base_url=config.api_base_url,
            rate_limit=config.rate_limit_per_minute,
            rate_window=60,
            timeout=config.timeout,
            retry_policy=retry_policy,
            sleep=sleep,
            transport=transport,
        )
        self.config = config
        self._access_token: Optional[str] = None
        self._token_lock = asyncio.Lock()

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def authenticate(self) -> str:
        """
        Obtain a bearer token with the client-credentials grant.

        Raises:
            ProviderAuthError: Missing credentials, rejected credentials or
                an unreachable token endpoint
        """
        if not self.config.client_id or not self.config.client_secret:
            raise ProviderAuthError("Spotify credentials are not configured")

        try:
            payload = await self._make_request(
                "POST",
                self.config.token_url,
                data={"grant_type": "client_credentials"},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                auth=httpx.BasicAuth(self.config.client_id, self.config.client_secret),
            )
        except ProviderAuthError:
            raise
        except MetricsProviderError as e:
            raise ProviderAuthError(f"Failed to get Spotify token: {e}", e.status_code) from e

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise ProviderAuthError("Token response carried no access_token")

        self._access_token = token
        logger.info(f"[{self.name}] Authenticated")
        return token

    async def _ensure_token(self) -> None:
        if self._access_token is None:
            async with self._token_lock:
                if self._access_token is None:
                    await self.authenticate()

    async def _refresh_token(self, rejected: Optional[str]) -> None:
        # Concurrent callers holding the same expired token share one refresh.
        async with self._token_lock:
            if self._access_token == rejected:
                self._access_token = None
                await self.authenticate()

    async def _get_authorized(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET with the bearer token.

        A 401 from the API is taken as an expired token: the token is
        refreshed and the request retried once. A second 401, or a token
        endpoint that rejects the credentials, raises ProviderAuthError.
        """
        await self._ensure_token()
        token = self._access_token
        try:
            return await self._make_request("GET", endpoint, params=params, headers=self._get_headers())
        except ProviderAuthError:
            logger.warning(f"[{self.name}] Token rejected on {endpoint}, re-authenticating")

        await self._refresh_token(token)
        return await self._make_request("GET", endpoint, params=params, headers=self._get_headers())

    async def fetch_metrics(self, artist_ids: Iterable[str]) -> Dict[str, ArtistMetrics]:
        """
        Current metrics for many artists, one request per chunk of ids.

        Returns:
            artist_id -> ArtistMetrics for every artist the provider returned
        """
        await self._ensure_token()
        ids = unique_ids(artist_ids)
        size = min(self.config.batch_size, SPOTIFY_MAX_IDS_PER_REQUEST)
        metrics: Dict[str, ArtistMetrics] = {}

        for index, chunk in enumerate(chunked(ids, size)):
            try:
                payload = await self._get_authorized("/artists", params={"ids": ",".join(chunk)})
            except ProviderAuthError:
                raise
            except MetricsProviderError as e:
                logger.error(f"[{self.name}] Skipping chunk {index} ({len(chunk)} artists): {e}")
                continue

            for item in payload.get("artists") or []:
                if not item or not item.get("id"):
                    continue
                artist = parse_artist(item)
                metrics[artist.artist_id] = artist

        logger.info(f"[{self.name}] Fetched metrics for {len(metrics)}/{len(ids)} artists")
        return metrics

    async def fetch_recent_releases(self, artist_id: str) -> List[Release]:
        """Most recent albums/singles of an artist (one page of 50)."""
        payload = await self._get_authorized(
            f"/artists/{artist_id}/albums",
            params={
                "include_groups": "album,single,appears_on",
                "limit": 50,
                "market": self.config.market,
            },
        )
        return [parse_release(item) for item in payload.get("items") or [] if item]

    async def fetch_releases_for(self, artist_ids: Iterable[str]) -> Dict[str, List[Release]]:
        """
        Releases for many artists with bounded concurrency.

        Artists whose fetch failed are missing from the result.
        """
        await self._ensure_token()
        ids = unique_ids(artist_ids)
        semaphore = asyncio.Semaphore(max(1, self.config.releases_concurrency))

        async def fetch_one(artist_id: str) -> Optional[List[Release]]:
            async with semaphore:
                try:
                    return await self.fetch_recent_releases(artist_id)
                except ProviderAuthError:
                    raise
                except MetricsProviderError as e:
                    logger.error(f"[{self.name}] Releases for {artist_id} unavailable: {e}")
                    return None

        results = await asyncio.gather(*(fetch_one(artist_id) for artist_id in ids))
        return {
            artist_id: releases
            for artist_id, releases in zip(ids, results)
            if releases is not None
        }
