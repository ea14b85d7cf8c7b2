#!/usr/bin/env python
# config.py
import os
from typing import List

# This assumes config.py is at the root of your project
basedir = os.path.abspath(os.path.dirname(__file__))


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _get_csv_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name)
    source = raw if raw is not None else default
    return [token.strip() for token in source.split(",") if token and token.strip()]


class Config:
    SERVICE_NAME = 'YouTube Downloader API'
    SERVICE_VERSION = '1.0.0'

    # Transient downloads; every job gets its own subdirectory under here
    BASE_OUTPUT_DIR = os.getenv('BASE_OUTPUT_DIR') or os.path.join(basedir, 'tmp', 'downloads')

    # yt-dlp binary location and release source
    YTDLP_BIN_DIR = os.getenv('YTDLP_BIN_DIR') or os.path.join(basedir, 'bin')
    # Empty means "latest release asset for this platform"
    YTDLP_RELEASE_URL = os.getenv('YTDLP_RELEASE_URL', '')
    YTDLP_FETCH_TIMEOUT_SECONDS = _get_float('YTDLP_FETCH_TIMEOUT_SECONDS', 60.0)
    YTDLP_VERSION_CHECK_TIMEOUT_SECONDS = _get_float('YTDLP_VERSION_CHECK_TIMEOUT_SECONDS', 5.0)

    # Invocation
    YTDLP_TIMEOUT_SECONDS = _get_float('YTDLP_TIMEOUT_SECONDS', 600.0)
    YTDLP_USER_AGENT = os.getenv(
        'YTDLP_USER_AGENT',
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    )
    DEFAULT_FORMAT = os.getenv('DEFAULT_FORMAT', 'best')

    # Transfers
    STREAM_CHUNK_SIZE = max(1024, _get_int('STREAM_CHUNK_SIZE', 64 * 1024))
    PLAYLIST_ARCHIVE_NAME = os.getenv('PLAYLIST_ARCHIVE_NAME', 'playlist.zip')

    # HTTP
    PORT = _get_int('PORT', 3000)
    CORS_ALLOWED_ORIGINS = _get_csv_list('CORS_ALLOWED_ORIGINS', '*')

    # Runtime behavior
    DEBUG = _get_bool('DEBUG', False)
    # Control console logging; when disabled, logs go only to file
    ENABLE_CONSOLE_LOGS = _get_bool('ENABLE_CONSOLE_LOGS', False)
    ENVIRONMENT = os.getenv('APP_ENV', 'development')
