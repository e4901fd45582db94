"""
Preview engine configuration — all environment variables in one place.

Durations are read in milliseconds and exposed in seconds, since every
consumer hands them to asyncio.
"""

from __future__ import annotations

import os


def _ms(name: str, default: int) -> float:
    return int(os.environ.get(name, str(default))) / 1000


class EngineSettings:
    """Client-side engine settings from environment variables."""

    # Scheduling
    DEBOUNCE_S: float = _ms("PREVIEW_DEBOUNCE_MS", 300)
    LOAD_TIMEOUT_S: float = _ms("PREVIEW_LOAD_TIMEOUT_MS", 2000)

    # Remote compile authority
    API_URL: str = os.environ.get("PREVIEW_API_URL", "http://localhost:8000")
    REMOTE_TIMEOUT_S: float = _ms("PREVIEW_REMOTE_TIMEOUT_MS", 5000)
    RECONNECT_DELAY_S: float = _ms("PREVIEW_RECONNECT_DELAY_MS", 1000)
    MAX_AUTH_RETRIES: int = int(os.environ.get("PREVIEW_MAX_AUTH_RETRIES", "3"))

    @property
    def WS_URL(self) -> str:
        url = os.environ.get("PREVIEW_WS_URL")
        if url:
            return url
        base = self.API_URL.rstrip("/")
        if base.startswith("https://"):
            return "wss://" + base.removeprefix("https://") + "/ws/preview"
        return "ws://" + base.removeprefix("http://") + "/ws/preview"


# Singleton instance
settings = EngineSettings()
