"""Command-line argument contract for yt-dlp invocations."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

SINGLE_OUTPUT_TEMPLATE = "%(title)s.%(ext)s"
PLAYLIST_OUTPUT_TEMPLATE = "%(playlist_index)s - %(title)s.%(ext)s"


@dataclass(frozen=True)
class InvocationRequest:
    """Immutable argument vector plus the output template it writes to."""

    args: Tuple[str, ...]
    output_template: Optional[str] = None


def build_probe_request(url: str, user_agent: str) -> InvocationRequest:
    return InvocationRequest(
        args=(
            "--dump-json",
            "--no-playlist",
            "--no-check-certificates",
            "--user-agent", user_agent,
            url,
        )
    )


def build_download_request(
    url: str,
    output_dir: str,
    *,
    user_agent: str,
    format_selector: str = "best",
    playlist: bool = False,
) -> InvocationRequest:
    """Build the argument vector for a single-file or playlist download.

    The URL always goes last so it cannot be taken for an option value.
    """
    template = os.path.join(
        output_dir, PLAYLIST_OUTPUT_TEMPLATE if playlist else SINGLE_OUTPUT_TEMPLATE
    )
    return InvocationRequest(
        args=(
            "-f", format_selector or "best",
            "--yes-playlist" if playlist else "--no-playlist",
            "--no-check-certificates",
            "--user-agent", user_agent,
            "-o", template,
            url,
        ),
        output_template=template,
    )


__all__ = [
    "InvocationRequest",
    "PLAYLIST_OUTPUT_TEMPLATE",
    "SINGLE_OUTPUT_TEMPLATE",
    "build_download_request",
    "build_probe_request",
]
