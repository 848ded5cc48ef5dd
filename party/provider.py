"""
Thin Spotify Web API client on aiohttp

Authentication is someone else's job: the client is handed a bearer token.
"""
import asyncio
import logging
from typing import Any, Optional

import aiohttp

from .errors import UpstreamError

logger = logging.getLogger("party_relay")

SPOTIFY_API_BASE = "https://api.spotify.com/v1"


class SpotifyClient:
    def __init__(self, access_token: str, api_base: str = SPOTIFY_API_BASE,
                 timeout: float = 10.0, session: Optional[aiohttp.ClientSession] = None):
        self.access_token = access_token
        self.api_base = api_base.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, path: str, params: Optional[dict] = None) -> Any:
        session = await self._get_session()
        url = f"{self.api_base}{path}"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            async with session.request(method, url, params=params, headers=headers) as resp:
                if resp.status == 204:
                    return None
                if resp.status >= 400:
                    body = await resp.text()
                    raise UpstreamError(
                        f"{method} {path} -> HTTP {resp.status}: {body[:200]}",
                        status=resp.status,
                    )
                if resp.content_type == "application/json":
                    return await resp.json()
                return None
        except asyncio.TimeoutError as e:
            raise UpstreamError(f"{method} {path} timed out") from e
        except aiohttp.ClientError as e:
            raise UpstreamError(f"{method} {path} failed: {e}") from e

    # ── Playback ────────────────────────────────────────────────────────────

    async def currently_playing(self, market: Optional[str] = None):
        return await self._request(
            "GET", "/me/player/currently-playing",
            {"market": market, "additional_types": "episode"},
        )

    async def queue(self):
        return await self._request("GET", "/me/player/queue")

    async def add_to_queue(self, uri: str):
        return await self._request("POST", "/me/player/queue", {"uri": uri})

    async def play(self):
        return await self._request("PUT", "/me/player/play")

    async def pause(self):
        return await self._request("PUT", "/me/player/pause")

    async def next(self):
        return await self._request("POST", "/me/player/next")

    async def previous(self):
        return await self._request("POST", "/me/player/previous")

    # ── Catalogue ───────────────────────────────────────────────────────────

    async def search(self, q: str, types=("track", "artist", "album"),
                     market: Optional[str] = None, limit: int = 10):
        return await self._request(
            "GET", "/search",
            {"q": q, "type": ",".join(types), "market": market, "limit": limit},
        )

    async def track(self, track_id: str):
        return await self._request("GET", f"/tracks/{track_id}")

    async def album(self, album_id: str):
        return await self._request("GET", f"/albums/{album_id}")

    async def artist(self, artist_id: str):
        return await self._request("GET", f"/artists/{artist_id}")

    async def artist_top_tracks(self, artist_id: str, market: Optional[str] = None):
        return await self._request("GET", f"/artists/{artist_id}/top-tracks", {"market": market})

    async def playlist(self, playlist_id: str):
        return await self._request("GET", f"/playlists/{playlist_id}")

    async def show(self, show_id: str, market: Optional[str] = None):
        return await self._request("GET", f"/shows/{show_id}", {"market": market})
