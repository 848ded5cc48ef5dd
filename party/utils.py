"""
Utility functions for IDs and Spotify URL/URI parsing
"""
import random
import re
import string
from typing import Optional, Tuple

SPOTIFY_URL_RE = re.compile(
    r"https?://(?:embed\.|open\.)(?:spotify\.com/)"
    r"(?:(track|album|artist)/|\?uri=spotify:(track|album|artist):)((\w|-){22})"
)


def generate_client_id(length: int = 9) -> str:
    """Generate a random viewer ID"""
    alphabet = string.ascii_lowercase + string.digits
    return "client_" + "".join(random.choice(alphabet) for _ in range(length))


def parse_spotify_url(text: Optional[str]) -> Optional[Tuple[str, str]]:
    """Return (type, id) if text contains an open.spotify.com link, else None"""
    if not text:
        return None
    match = SPOTIFY_URL_RE.search(text)
    if not match:
        return None
    kind = match.group(1) or match.group(2)
    return kind, match.group(3)


def deconstruct_uri(uri: str) -> Tuple[str, str]:
    """'spotify:playlist:abc' -> ('playlist', 'abc')"""
    parts = uri.split(":")
    if len(parts) < 3:
        return "", ""
    return parts[1], parts[2]
