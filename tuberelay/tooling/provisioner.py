#!/usr/bin/env python
"""
Provisioning of the yt-dlp binary.

Guarantees that a working executable sits at the platform-specific path
under the configured binary directory: fetches it from the release URL when
absent, fixes permissions, verifies it with ``--version`` and replaces it
once when verification fails.
"""

from __future__ import annotations

import logging
import os
import stat
import subprocess
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

import requests

from ..errors import ProvisionError
from ..settings import AppSettings, is_windows_platform

logger = logging.getLogger(__name__)

_FETCH_CHUNK_SIZE = 256 * 1024


@dataclass
class ToolBinary:
    """Process-wide handle on the external executable."""

    path: str
    filename: str
    executable: bool = False
    verified: bool = False
    version: Optional[str] = None


class ToolProvisioner:
    def __init__(self, settings: AppSettings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self._session = session or requests.Session()
        self._windows = is_windows_platform(settings.platform)
        self._lock = threading.Lock()
        self.binary = ToolBinary(
            path=os.path.join(settings.bin_dir, settings.binary_filename),
            filename=settings.binary_filename,
        )

    @property
    def path(self) -> str:
        return self.binary.path

    def ensure(self) -> ToolBinary:
        """Make sure a verified binary is present. Safe to call repeatedly.

        Once verified, the binary is only re-checked and callers run in
        parallel. The lock is taken only to fetch or replace it, so a
        first-time fetch happens once. Raises ProvisionError when the binary
        cannot be obtained or verified.
        """
        if self.binary.verified and os.path.exists(self.binary.path):
            ok, _ = self._run_version_check()
            if ok:
                return self.binary

        with self._lock:
            # Another caller may have repaired the binary while we waited
            if self.binary.verified and os.path.exists(self.binary.path) and self._verify():
                return self.binary

            os.makedirs(self.settings.bin_dir, exist_ok=True)
            logger.info("Platform: %s; looking for %s", self.settings.platform, self.binary.path)

            if os.path.exists(self.binary.path):
                logger.info("yt-dlp binary found")
                self._make_executable()
                if self._verify():
                    return self.binary
                logger.warning("Existing yt-dlp binary not working, re-downloading")
                self._discard()
            else:
                logger.warning("yt-dlp not found, downloading")

            self._fetch()
            self._make_executable()
            if not self._verify():
                self._discard()
                raise ProvisionError("Downloaded yt-dlp binary is not working")
            logger.info("yt-dlp ready to use")
            return self.binary

    def _fetch(self) -> None:
        url = self.settings.release_url
        tmp_path = self.binary.path + ".part"
        logger.info("Downloading yt-dlp from %s", url)
        try:
            with self._session.get(
                url,
                stream=True,
                allow_redirects=True,
                timeout=self.settings.fetch_timeout_seconds,
            ) as response:
                if response.status_code != 200:
                    raise ProvisionError(f"Failed to download yt-dlp: HTTP {response.status_code}")
                with open(tmp_path, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=_FETCH_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
            os.replace(tmp_path, self.binary.path)
        except requests.RequestException as exc:
            raise ProvisionError(f"Failed to download yt-dlp: {exc}") from exc
        except OSError as exc:
            raise ProvisionError(f"Failed to write yt-dlp to {self.binary.path}: {exc}") from exc
        finally:
            if os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    logger.warning("Could not remove partial download %s", tmp_path)
        logger.info("yt-dlp downloaded to %s", self.binary.path)

    def _make_executable(self) -> None:
        if self._windows:
            self.binary.executable = True
            return
        try:
            mode = os.stat(self.binary.path).st_mode
            os.chmod(self.binary.path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as exc:
            raise ProvisionError(f"Failed to chmod {self.binary.path}: {exc}") from exc
        self.binary.executable = True

    def _run_version_check(self) -> Tuple[bool, Optional[str]]:
        try:
            completed = subprocess.run(
                [self.binary.path, "--version"],
                capture_output=True,
                text=True,
                timeout=self.settings.version_check_timeout_seconds,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.error("yt-dlp test failed: %s", exc)
            return False, None
        if completed.returncode != 0:
            logger.error(
                "yt-dlp test failed with exit code %s: %s",
                completed.returncode,
                (completed.stderr or "").strip(),
            )
            return False, None
        return True, (completed.stdout or "").strip() or None

    def _verify(self) -> bool:
        ok, version = self._run_version_check()
        if not ok:
            self.binary.verified = False
            return False
        self.binary.version = version
        self.binary.verified = True
        logger.info("yt-dlp version: %s", self.binary.version)
        return True

    def _discard(self) -> None:
        self.binary.verified = False
        self.binary.executable = False
        try:
            os.remove(self.binary.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise ProvisionError(f"Failed to remove broken binary {self.binary.path}: {exc}") from exc


__all__ = ["ToolBinary", "ToolProvisioner"]
