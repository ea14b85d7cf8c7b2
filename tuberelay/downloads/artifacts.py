"""Locating the files an invocation produced."""

from __future__ import annotations

import logging
import os
from typing import List, Tuple

from ..errors import NoArtifactsError

logger = logging.getLogger(__name__)

# yt-dlp leaves these behind for interrupted or in-flight fragments
_PARTIAL_SUFFIXES: Tuple[str, ...] = (".part", ".ytdl", ".temp")

ArtifactSet = List[str]


def locate(directory: str) -> ArtifactSet:
    """Return the finished files in ``directory``, sorted by name.

    Non-recursive; file content is not inspected. Raises NoArtifactsError
    when nothing usable is present.
    """
    try:
        names = sorted(os.listdir(directory))
    except FileNotFoundError:
        names = []
    artifacts = [
        os.path.join(directory, name)
        for name in names
        if not name.lower().endswith(_PARTIAL_SUFFIXES)
        and os.path.isfile(os.path.join(directory, name))
    ]
    if not artifacts:
        raise NoArtifactsError("No file was downloaded")
    logger.info("Located %d artifact(s) in %s", len(artifacts), directory)
    return artifacts


def locate_single(directory: str) -> str:
    """Pick exactly one artifact: the first entry of the sorted listing."""
    artifacts = locate(directory)
    if len(artifacts) > 1:
        logger.warning(
            "Expected one artifact in %s, found %d; using %s",
            directory,
            len(artifacts),
            os.path.basename(artifacts[0]),
        )
    return artifacts[0]


__all__ = ["ArtifactSet", "locate", "locate_single"]
