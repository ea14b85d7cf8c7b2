#!/usr/bin/env python
"""
Supervised execution of the yt-dlp binary.

Each call spawns the binary with a literal argument vector (never through a
shell), drains stdout/stderr on reader threads while logging every line, and
enforces a hard wall-clock timeout. The call produces exactly one outcome:
an InvocationResult, an InvocationTimeoutError or a LaunchError.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import IO, Callable, List, Optional, Sequence

from ..errors import InvocationTimeoutError, LaunchError

logger = logging.getLogger(__name__)

_REAP_TIMEOUT_SECONDS = 5.0

OutputCallback = Callable[[str, str], None]


@dataclass(frozen=True)
class InvocationResult:
    stdout: str
    stderr: str
    error: bool
    exit_code: int
    elapsed_seconds: float = 0.0


def _drain(stream: IO[str], sink: List[str], label: str, on_output: Optional[OutputCallback]) -> None:
    try:
        for line in iter(stream.readline, ""):
            sink.append(line)
            text = line.rstrip()
            if text:
                if label == "stderr":
                    logger.warning("[yt-dlp] %s", text)
                else:
                    logger.info("[yt-dlp] %s", text)
            if on_output is not None:
                try:
                    on_output(label, line)
                except Exception as exc:  # pragma: no cover - do not break downloads on observer errors
                    logger.debug("Output callback error: %s", exc, exc_info=True)
    finally:
        stream.close()


class ToolInvoker:
    def __init__(
        self,
        binary_path: str,
        timeout_seconds: float = 600.0,
        on_output: Optional[OutputCallback] = None,
    ) -> None:
        self.binary_path = binary_path
        self.timeout_seconds = timeout_seconds
        self.on_output = on_output

    def invoke(self, args: Sequence[str]) -> InvocationResult:
        """Run the binary with ``args`` and wait for it, at most ``timeout_seconds``.

        A non-zero exit is a normal outcome (``error=True``), not an exception.
        """
        argv = [self.binary_path, *args]
        logger.info("[yt-dlp] Executing: %s", " ".join(argv))
        started = time.monotonic()
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                shell=False,
            )
        except OSError as exc:
            logger.error("[yt-dlp] Process error: %s", exc)
            raise LaunchError(f"Failed to start yt-dlp: {exc}") from exc

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        readers = [
            threading.Thread(
                target=_drain,
                args=(process.stdout, stdout_lines, "stdout", self.on_output),
                name="yt-dlp-stdout",
                daemon=True,
            ),
            threading.Thread(
                target=_drain,
                args=(process.stderr, stderr_lines, "stderr", self.on_output),
                name="yt-dlp-stderr",
                daemon=True,
            ),
        ]
        for reader in readers:
            reader.start()

        try:
            exit_code = process.wait(timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired:
            logger.error("[yt-dlp] Timeout after %ss - killing process", self.timeout_seconds)
            process.kill()
            try:
                process.wait(timeout=_REAP_TIMEOUT_SECONDS)
            except subprocess.TimeoutExpired:  # pragma: no cover - kernel did not reap in time
                logger.error("[yt-dlp] Process %s did not exit after kill", process.pid)
            self._join(readers)
            raise InvocationTimeoutError(
                f"yt-dlp process timed out after {self.timeout_seconds:g} seconds",
                timeout_seconds=self.timeout_seconds,
            )

        self._join(readers)
        elapsed = time.monotonic() - started
        logger.info("[yt-dlp] Process exited with code %s (%.1fs)", exit_code, elapsed)
        return InvocationResult(
            stdout="".join(stdout_lines),
            stderr="".join(stderr_lines),
            error=exit_code != 0,
            exit_code=exit_code,
            elapsed_seconds=elapsed,
        )

    @staticmethod
    def _join(readers: List[threading.Thread]) -> None:
        for reader in readers:
            reader.join(timeout=_REAP_TIMEOUT_SECONDS)
            if reader.is_alive():
                # A child of the tool still holds the pipe open
                logger.warning(
                    "[yt-dlp] %s reader still running after %ss; captured output may be incomplete",
                    reader.name,
                    _REAP_TIMEOUT_SECONDS,
                )


__all__ = ["InvocationResult", "OutputCallback", "ToolInvoker"]
