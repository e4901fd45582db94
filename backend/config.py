"""
Compile authority configuration — all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Auth
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "")
    JWT_ALGORITHM: str = os.environ.get("JWT_ALGORITHM", "HS256")
    JWT_EXPIRY_HOURS: int = int(os.environ.get("JWT_EXPIRY_HOURS", "24"))

    # Realtime
    WEBSOCKET_JOIN_TIMEOUT_S: float = float(os.environ.get("WEBSOCKET_JOIN_TIMEOUT_S", "10"))

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")
    HOST: str = os.environ.get("HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("PORT", "8000"))
    TESTING: bool = os.environ.get("TESTING", "").lower() == "true"


# Singleton instance
settings = Settings()

if not settings.JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is required")
