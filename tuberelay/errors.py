"""Error taxonomy for provisioning, invocation and transfer failures.

Every error carries a stable ``error_code`` so the HTTP layer can render a
machine-readable category next to the human-readable message.
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for failures raised by the download core."""

    error_code = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProvisionError(RelayError):
    """The tool binary could not be fetched or verified. Fatal at startup."""

    error_code = "provision_failed"


class LaunchError(RelayError):
    """The tool subprocess could not be started."""

    error_code = "launch_failed"


class InvocationTimeoutError(RelayError, TimeoutError):
    """The tool ran past its wall-clock budget and was killed."""

    error_code = "timeout"

    def __init__(self, message: str, timeout_seconds: Optional[float] = None) -> None:
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class ToolFailure(RelayError):
    """The tool exited non-zero; ``stderr`` holds its diagnostics."""

    error_code = "tool_failure"

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class NoArtifactsError(RelayError):
    error_code = "no_artifacts"


class ParseError(RelayError):
    error_code = "parse_error"


class StreamError(RelayError):
    error_code = "stream_error"


__all__ = [
    "RelayError",
    "ProvisionError",
    "LaunchError",
    "InvocationTimeoutError",
    "ToolFailure",
    "NoArtifactsError",
    "ParseError",
    "StreamError",
]
