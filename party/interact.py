"""
Provider operations used by the HTTP handlers and the poller

Reads go through the result cache; commands go straight to the provider.
Responses are trimmed to the small view models the player UI renders.
"""
import logging
from typing import Any, Dict, List, Optional

from .cache import ResultCache, cache_key
from .errors import UpstreamError
from .scheduler import INFO_KEY
from .utils import deconstruct_uri

logger = logging.getLogger("party_relay")


# ============================================================
# VIEW MODELS
# ============================================================

def _images(images: Optional[List[dict]]) -> dict:
    images = images or []
    return {
        "full": images[0] if images else None,
        "low": images[-1] if images else None,
    }


def _normalised(item_id, name, subtitle, uri, images) -> dict:
    return {
        "id": item_id,
        "title": name,
        "subtitle": subtitle,
        "uri": uri,
        "image": _images(images),
    }


def trim_track(track: dict) -> dict:
    album = track.get("album") or {}
    artists = track.get("artists") or []
    artist = artists[0]["name"] if artists else ""
    images = album.get("images")
    return {
        "id": track["id"],
        "normalised": _normalised(track["id"], track["name"], artist, track["uri"], images),
        "title": track["name"],
        "album": album.get("name"),
        "artist": artist,
        "artists": [a["name"] for a in artists],
        "number": track.get("track_number"),
        "uri": track["uri"],
        "image": _images(images),
    }


def trim_album(album: dict) -> dict:
    release = album.get("release_date") or ""
    return {
        "id": album["id"],
        "normalised": _normalised(album["id"], album["name"], release.split("-")[0],
                                  album["uri"], album.get("images")),
        "title": album["name"],
        "release": release,
        "uri": album["uri"],
        "total": album.get("total_tracks"),
        "image": _images(album.get("images")),
    }


def trim_artist(artist: dict) -> dict:
    return {
        "id": artist["id"],
        "normalised": _normalised(artist["id"], artist["name"], "", artist["uri"], artist.get("images")),
        "title": artist["name"],
        "uri": artist["uri"],
        "image": _images(artist.get("images")),
    }


def trim_playlist(playlist: dict) -> dict:
    owner = (playlist.get("owner") or {}).get("display_name")
    return {
        "id": playlist["id"],
        "normalised": _normalised(playlist["id"], playlist["name"], owner,
                                  playlist["uri"], playlist.get("images")),
        "title": playlist["name"],
        "owner": owner,
        "total": (playlist.get("tracks") or {}).get("total"),
        "uri": playlist["uri"],
        "image": _images(playlist.get("images")),
    }


def trim_episode(episode: dict) -> dict:
    show = (episode.get("show") or {}).get("name")
    return {
        "id": episode["id"],
        "normalised": _normalised(episode["id"], episode["name"], show,
                                  episode["uri"], episode.get("images")),
        "title": episode["name"],
        "show": show,
        "release": episode.get("release_date"),
        "uri": episode["uri"],
        "image": _images(episode.get("images")),
    }


def trim_show(show: dict) -> dict:
    return {
        "id": show["id"],
        "normalised": _normalised(show["id"], show["name"], "", show["uri"], show.get("images")),
        "title": show["name"],
        "uri": show["uri"],
        "image": _images(show.get("images")),
    }


def trim_item(item: dict) -> dict:
    if item.get("type") == "episode":
        return trim_episode(item)
    return trim_track(item)


# ============================================================
# OPERATIONS
# ============================================================

class Interact:
    def __init__(self, cache: ResultCache, market: str = "GB", search_query_limit: int = 10):
        self.cache = cache
        self.market = market
        self.search_query_limit = search_query_limit

    # ── Cached reads ────────────────────────────────────────────────────────

    async def artist_top_tracks(self, client, artist_id: str) -> dict:
        results = await self.cache.resolve(
            cache_key("artist", "tracks", artist_id),
            lambda: client.artist_top_tracks(artist_id, self.market),
        )
        return {"tracks": [trim_track(t) for t in results["tracks"]]}

    async def album(self, client, album_id: str) -> dict:
        album = await self.cache.resolve(cache_key("album", album_id), lambda: client.album(album_id))
        items = album.get("tracks", {}).get("items", [])
        return {"tracks": [trim_track({**item, "album": album}) for item in items]}

    async def track(self, client, track_id: str) -> dict:
        track = await self.cache.resolve(cache_key("track", track_id), lambda: client.track(track_id))
        return {"tracks": [trim_track(track)]}

    async def search(self, client, q: str) -> dict:
        results = await self.cache.resolve(
            cache_key("search", q),
            lambda: client.search(q, market=self.market, limit=self.search_query_limit),
        )
        return {
            "albums": [trim_album(a) for a in results["albums"]["items"]],
            "artists": [trim_artist(a) for a in results["artists"]["items"]],
            "tracks": [trim_track(t) for t in results["tracks"]["items"]],
        }

    async def context(self, client, uri: Optional[str]) -> Dict[str, Any]:
        """Playlist/artist/album/show the current item plays from; {} if unknown"""
        if not uri:
            return {}
        kind, item_id = deconstruct_uri(uri)
        loaders = {
            "playlist": (lambda: client.playlist(item_id), trim_playlist),
            "artist": (lambda: client.artist(item_id), trim_artist),
            "album": (lambda: client.album(item_id), trim_album),
            "show": (lambda: client.show(item_id, self.market), trim_show),
        }
        if kind not in loaders:
            return {}
        fetch, trim = loaders[kind]
        try:
            raw = await self.cache.resolve(uri, fetch)
            return {**trim(raw), "type": kind}
        except (UpstreamError, KeyError, TypeError) as e:
            logger.debug(f"Context lookup failed for {uri}: {e!r}")
            return {}

    async def fetch_info(self, client) -> dict:
        """Uncached playback snapshot; the fetcher behind INFO_KEY"""
        current = await client.currently_playing(self.market)
        if not current or not current.get("item"):
            return {"noTrack": True}

        item = current["item"]
        context_uri = (current.get("context") or {}).get("uri")
        if current.get("currently_playing_type") == "episode":
            track = trim_episode(item)
        else:
            track = trim_track(item)
        return {
            "isPlaying": current.get("is_playing", False),
            "track": track,
            "context": await self.context(client, context_uri),
            "player": {
                "current": current.get("progress_ms"),
                "duration": item.get("duration_ms"),
            },
        }

    async def info(self, client) -> dict:
        return await self.cache.resolve(INFO_KEY, lambda: self.fetch_info(client))

    # ── Uncached reads and commands ─────────────────────────────────────────

    async def queue(self, client) -> dict:
        queue = await client.queue()
        if not queue:
            return {"noQueue": True}
        items = [queue.get("currently_playing"), *queue.get("queue", [])]
        return {
            "items": [
                trim_item(item) for item in items
                if item and item.get("type") in ("track", "episode")
            ]
        }

    async def add(self, client, uri: str) -> bool:
        """Queue uri unless it is already queued; returns whether it was added"""
        queue = await client.queue() or {}
        if any(item.get("uri") == uri for item in queue.get("queue", []) if item):
            return False
        await client.add_to_queue(uri)
        return True

    async def play(self, client) -> dict:
        await client.play()
        return {"success": True}

    async def pause(self, client) -> dict:
        await client.pause()
        return {"success": True}

    async def forward(self, client) -> dict:
        await client.next()
        return {"success": True}

    async def back(self, client) -> dict:
        await client.previous()
        return {"success": True}
