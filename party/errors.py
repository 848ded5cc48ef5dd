"""
Error types and user-facing error strings
"""
from typing import Optional

UNAUTHENTICATED = "Not authenticated"
GENERAL = "Something went wrong"
ALREADY_QUEUED = "Song already in queue"


class UpstreamError(Exception):
    """The playback provider (or a fetcher wrapping it) failed"""

    def __init__(self, message: str, status: Optional[int] = None, key: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.key = key
