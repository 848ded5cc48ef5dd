"""
Test doubles and payload builders shared across test modules.
"""

from unittest.mock import AsyncMock


def make_track(track_id: str = "t1", name: str = "Song", artist: str = "Artist") -> dict:
    return {
        "id": track_id,
        "type": "track",
        "name": name,
        "uri": f"spotify:track:{track_id}",
        "track_number": 3,
        "duration_ms": 200000,
        "artists": [{"name": artist}, {"name": "Guest"}],
        "album": {
            "name": "Album",
            "images": [{"url": "big.jpg"}, {"url": "small.jpg"}],
        },
    }


def make_playing(track: dict | None = None, context_uri: str | None = None) -> dict:
    return {
        "is_playing": True,
        "progress_ms": 1500,
        "currently_playing_type": "track",
        "item": track or make_track(),
        "context": {"uri": context_uri} if context_uri else None,
    }


class FakeSpotify:
    """Stands in for SpotifyClient; every provider call is an AsyncMock."""

    def __init__(self) -> None:
        self.currently_playing = AsyncMock(return_value=make_playing())
        self.queue = AsyncMock(return_value={"currently_playing": None, "queue": []})
        self.add_to_queue = AsyncMock(return_value=None)
        self.play = AsyncMock(return_value=None)
        self.pause = AsyncMock(return_value=None)
        self.next = AsyncMock(return_value=None)
        self.previous = AsyncMock(return_value=None)
        self.search = AsyncMock(
            return_value={
                "albums": {"items": []},
                "artists": {"items": []},
                "tracks": {"items": [make_track()]},
            }
        )
        self.track = AsyncMock(return_value=make_track())
        self.album = AsyncMock()
        self.artist = AsyncMock()
        self.artist_top_tracks = AsyncMock(return_value={"tracks": [make_track()]})
        self.playlist = AsyncMock()
        self.show = AsyncMock()
        self.close = AsyncMock()


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


