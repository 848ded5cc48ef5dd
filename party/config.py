"""
Runtime configuration, read from the environment at startup
"""
import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PartyConfig:
    poll_interval_ms: int = 5000
    cache_ttl_ms: int = 2000
    centralised_polling: bool = True
    market: str = "GB"
    search_query_limit: int = 10
    upstream_timeout: float = 10.0
    spotify_api_base: str = "https://api.spotify.com/v1"
    spotify_access_token: str = ""
    rate_limit_per_minute: int = 100
    host: str = "0.0.0.0"
    port: int = 3000
    verbose: bool = False

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000

    @property
    def cache_ttl(self) -> float:
        return self.cache_ttl_ms / 1000

    @classmethod
    def from_env(cls) -> "PartyConfig":
        return cls(
            poll_interval_ms=int(os.environ.get("POLL_INTERVAL_MS", 5000)),
            cache_ttl_ms=int(os.environ.get("CACHE_TTL_MS", 2000)),
            centralised_polling=_env_bool("CENTRALISED_POLLING", True),
            market=os.environ.get("MARKET", "GB"),
            search_query_limit=int(os.environ.get("SEARCH_QUERY_LIMIT", 10)),
            upstream_timeout=float(os.environ.get("UPSTREAM_TIMEOUT", 10)),
            spotify_api_base=os.environ.get("SPOTIFY_API_BASE", "https://api.spotify.com/v1").rstrip("/"),
            spotify_access_token=os.environ.get("SPOTIFY_ACCESS_TOKEN", ""),
            rate_limit_per_minute=int(os.environ.get("RATE_LIMIT_PER_MINUTE", 100)),
            host=os.environ.get("SERVER_HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", 3000)),
            verbose=_env_bool("PARTY_VERBOSE", False),
        )
