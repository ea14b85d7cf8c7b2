#!/usr/bin/env python
"""
Centralized configuration schema for the download relay.

Merges defaults from config.Config with optional runtime overrides and
resolves platform-specific values for the yt-dlp binary.
"""

from __future__ import annotations

import sys
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from config import Config

RELEASE_BASE_URL = "https://github.com/yt-dlp/yt-dlp/releases/latest/download"


def is_windows_platform(platform: str) -> bool:
    return platform.lower().startswith(("win", "cygwin", "msys"))


def binary_filename(platform: str) -> str:
    """Return the yt-dlp release asset name for ``platform``."""
    return "yt-dlp.exe" if is_windows_platform(platform) else "yt-dlp"


class AppSettings(BaseModel):
    """Application-wide settings injected into the download core."""

    model_config = ConfigDict(extra="ignore")

    # Filesystem
    base_output_dir: str
    bin_dir: str

    # Tool binary
    platform: str = Field(default_factory=lambda: sys.platform)
    release_url: Optional[str] = None
    fetch_timeout_seconds: float = 60.0
    version_check_timeout_seconds: float = 5.0

    # Invocation
    invocation_timeout_seconds: float = 600.0
    user_agent: str
    default_format: str = "best"

    # Transfers
    stream_chunk_size: int = 64 * 1024
    archive_filename: str = "playlist.zip"

    # HTTP
    cors_allowed_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("release_url", mode="before")
    @classmethod
    def _blank_release_url(cls, value: object) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("version_check_timeout_seconds")
    @classmethod
    def _cap_version_check(cls, value: float) -> float:
        # The version probe must stay lightweight
        return max(0.1, min(float(value), 5.0))

    @field_validator("invocation_timeout_seconds", "fetch_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    @field_validator("default_format", mode="before")
    @classmethod
    def _default_format(cls, value: object) -> str:
        text = str(value or "").strip()
        return text or "best"

    @field_validator("stream_chunk_size", mode="before")
    @classmethod
    def _coerce_chunk_size(cls, value: object) -> int:
        try:
            size = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 64 * 1024
        return max(1024, size)

    @model_validator(mode="after")
    def _resolve_release_url(self) -> "AppSettings":
        if self.release_url is None:
            self.release_url = f"{RELEASE_BASE_URL}/{binary_filename(self.platform)}"
        return self

    @property
    def binary_filename(self) -> str:
        return binary_filename(self.platform)


def load_app_settings(overrides: Optional[Dict[str, Any]] = None) -> AppSettings:
    """Load settings merging config defaults with optional runtime overrides."""
    data: Dict[str, Any] = {
        "base_output_dir": Config.BASE_OUTPUT_DIR,
        "bin_dir": Config.YTDLP_BIN_DIR,
        "release_url": Config.YTDLP_RELEASE_URL,
        "fetch_timeout_seconds": Config.YTDLP_FETCH_TIMEOUT_SECONDS,
        "version_check_timeout_seconds": Config.YTDLP_VERSION_CHECK_TIMEOUT_SECONDS,
        "invocation_timeout_seconds": Config.YTDLP_TIMEOUT_SECONDS,
        "user_agent": Config.YTDLP_USER_AGENT,
        "default_format": Config.DEFAULT_FORMAT,
        "stream_chunk_size": Config.STREAM_CHUNK_SIZE,
        "archive_filename": Config.PLAYLIST_ARCHIVE_NAME,
        "cors_allowed_origins": Config.CORS_ALLOWED_ORIGINS,
    }
    if overrides:
        data.update(overrides)
    return AppSettings.model_validate(data)


__all__ = [
    "AppSettings",
    "RELEASE_BASE_URL",
    "binary_filename",
    "is_windows_platform",
    "load_app_settings",
]
