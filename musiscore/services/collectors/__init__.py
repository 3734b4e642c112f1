"""
MUSISCORE - Data Collectors Package

IMPLEMENTED COLLECTORS:
    spotify_collector.py  - Spotify Web API (popularity, followers, releases)
"""

from musiscore.services.collectors.base_collector import (
    BaseCollector,
    MetricsProviderError,
    PermanentProviderError,
    ProviderAuthError,
    RateLimiter,
    RetryPolicy,
    TransientProviderError,
)
from musiscore.services.collectors.spotify_collector import (
    MetricsClientConfig,
    SpotifyMetricsClient,
)

__all__ = [
    "BaseCollector",
    "MetricsProviderError",
    "PermanentProviderError",
    "ProviderAuthError",
    "RateLimiter",
    "RetryPolicy",
    "TransientProviderError",
    "MetricsClientConfig",
    "SpotifyMetricsClient",
]
