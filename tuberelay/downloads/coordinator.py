#!/usr/bin/env python
"""
Per-request job orchestration.

Each job walks ``pending -> provisioning -> invoking -> locating ->
streaming -> completed``; ``failed`` is reachable from every non-terminal
state. Every download job owns a freshly created workspace directory, and
that directory is cleaned up on entry to ``failed`` or once the transfer to
the caller terminates.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from ..errors import RelayError, StreamError, ToolFailure
from ..observability.metrics import (
    record_job_attempt,
    record_job_failure,
    record_job_finished,
    record_job_success,
)
from ..settings import AppSettings
from ..tooling.arguments import build_download_request, build_probe_request
from ..tooling.invoker import InvocationResult, ToolInvoker
from ..tooling.provisioner import ToolProvisioner
from . import artifacts
from .metadata import VideoMetadata, parse_probe_output
from .streaming import TransferPayload, TransferStreamer
from .workspace import TransientWorkspace, WorkspaceManager

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    PENDING = "pending"
    PROVISIONING = "provisioning"
    INVOKING = "invoking"
    LOCATING = "locating"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED})

_NEXT_STATE = {
    JobState.PENDING: JobState.PROVISIONING,
    JobState.PROVISIONING: JobState.INVOKING,
    JobState.INVOKING: JobState.LOCATING,
    JobState.LOCATING: JobState.STREAMING,
    JobState.STREAMING: JobState.COMPLETED,
}


class JobKind(str, Enum):
    PROBE = "probe"
    SINGLE = "single"
    PLAYLIST = "playlist"


@dataclass
class Job:
    id: str
    kind: JobKind
    url: str
    format: Optional[str] = None
    state: JobState = JobState.PENDING
    error: Optional[RelayError] = None
    workspace: Optional[TransientWorkspace] = None
    started_at: float = field(default_factory=time.monotonic)
    history: List[JobState] = field(default_factory=lambda: [JobState.PENDING])

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def advance(self, state: JobState) -> None:
        allowed = _NEXT_STATE.get(self.state)
        # Probes finish straight from invoking
        if self.kind is JobKind.PROBE and self.state is JobState.INVOKING:
            allowed = JobState.COMPLETED
        if state is not allowed:
            raise ValueError(f"Illegal job transition {self.state.value} -> {state.value}")
        self._enter(state)

    def fail(self, error: RelayError) -> None:
        if self.state in TERMINAL_STATES:
            return
        self.error = error
        self._enter(JobState.FAILED)

    def _enter(self, state: JobState) -> None:
        logger.info(
            "Job %s [%s]: %s -> %s",
            self.id,
            self.kind.value,
            self.state.value,
            state.value,
            extra={"job_id": self.id, "job_kind": self.kind.value, "job_state": state.value},
        )
        self.state = state
        self.history.append(state)


InvokerFactory = Callable[[str], ToolInvoker]


class JobCoordinator:
    """Composes provisioning, invocation, artifact lookup and transfer per request."""

    def __init__(
        self,
        settings: AppSettings,
        provisioner: ToolProvisioner,
        workspaces: WorkspaceManager,
        streamer: Optional[TransferStreamer] = None,
        invoker_factory: Optional[InvokerFactory] = None,
    ) -> None:
        self.settings = settings
        self.provisioner = provisioner
        self.workspaces = workspaces
        self.streamer = streamer or TransferStreamer(
            chunk_size=settings.stream_chunk_size,
            archive_filename=settings.archive_filename,
        )
        self._invoker_factory = invoker_factory or (
            lambda path: ToolInvoker(path, timeout_seconds=settings.invocation_timeout_seconds)
        )

    # --- Public operations ---
    def probe(self, url: str, job_id: Optional[str] = None) -> VideoMetadata:
        job = self._new_job(JobKind.PROBE, url, None, job_id)
        logger.info("[PROBE] Fetching metadata for: %s", url)
        try:
            request = build_probe_request(url, self.settings.user_agent)
            result = self._invoke(job, self._provision(job), request.args)
            self._raise_for_tool_failure(result, "Failed to probe video")
            metadata = parse_probe_output(result.stdout)
        except RelayError as exc:
            self._fail(job, exc)
            raise
        except Exception as exc:
            self._fail(job, RelayError(str(exc)))
            raise
        job.advance(JobState.COMPLETED)
        record_job_success(job.kind.value, job.elapsed)
        record_job_finished()
        logger.info("Probe successful: %s", metadata.title)
        return metadata

    def download(self, url: str, format_selector: Optional[str] = None, job_id: Optional[str] = None) -> TransferPayload:
        return self._download(JobKind.SINGLE, url, format_selector, job_id)

    def download_playlist(
        self, url: str, format_selector: Optional[str] = None, job_id: Optional[str] = None
    ) -> TransferPayload:
        return self._download(JobKind.PLAYLIST, url, format_selector, job_id)

    # --- Pipeline ---
    def _download(
        self,
        kind: JobKind,
        url: str,
        format_selector: Optional[str],
        job_id: Optional[str],
    ) -> TransferPayload:
        fmt = (format_selector or "").strip() or self.settings.default_format
        job = self._new_job(kind, url, fmt, job_id)
        playlist = kind is JobKind.PLAYLIST
        logger.info("[%s] Starting download: %s (format=%s)", "PLAYLIST" if playlist else "DOWNLOAD", url, fmt)
        try:
            binary_path = self._provision(job)
            job.workspace = self.workspaces.create("playlist" if playlist else "job")
            request = build_download_request(
                url,
                job.workspace.path,
                user_agent=self.settings.user_agent,
                format_selector=fmt,
                playlist=playlist,
            )
            result = self._invoke(job, binary_path, request.args)
            self._raise_for_tool_failure(
                result, "Playlist download failed" if playlist else "Download failed"
            )

            job.advance(JobState.LOCATING)
            if playlist:
                paths = artifacts.locate(job.workspace.path)
                logger.info("Playlist download complete: %d files", len(paths))
            else:
                paths = [artifacts.locate_single(job.workspace.path)]
                logger.info("Download complete: %s", paths[0])

            job.advance(JobState.STREAMING)
            on_complete = self._completion_callback(job)
            if playlist:
                return self.streamer.stream_archive(paths, job.workspace, on_complete=on_complete)
            return self.streamer.stream_file(paths[0], job.workspace, on_complete=on_complete)
        except RelayError as exc:
            self._fail(job, exc)
            raise
        except Exception as exc:
            self._fail(job, RelayError(str(exc)))
            raise

    def _provision(self, job: Job) -> str:
        job.advance(JobState.PROVISIONING)
        return self.provisioner.ensure().path

    def _invoke(self, job: Job, binary_path: str, args) -> InvocationResult:
        job.advance(JobState.INVOKING)
        return self._invoker_factory(binary_path).invoke(args)

    @staticmethod
    def _raise_for_tool_failure(result: InvocationResult, headline: str) -> None:
        if result.error:
            raise ToolFailure(result.stderr.strip() or headline, stderr=result.stderr)

    def _completion_callback(self, job: Job):
        def _on_complete(completed: bool) -> None:
            if completed:
                job.advance(JobState.COMPLETED)
                record_job_success(job.kind.value, job.elapsed)
                record_job_finished()
                logger.info("Job %s finished in %.1fs", job.id, job.elapsed)
                return
            # Body was abandoned or raised; the streamer already cleaned up
            self._fail(job, StreamError("Transfer did not complete"))

        return _on_complete

    # --- Helpers ---
    def _new_job(self, kind: JobKind, url: str, fmt: Optional[str], job_id: Optional[str]) -> Job:
        job = Job(id=job_id or uuid.uuid4().hex, kind=kind, url=url, format=fmt)
        record_job_attempt(kind.value)
        return job

    def _fail(self, job: Job, error: RelayError) -> None:
        if job.state in TERMINAL_STATES:
            return
        failed_in = job.state
        job.fail(error)
        if job.workspace is not None:
            job.workspace.cleanup()
        record_job_failure(job.kind.value, error.error_code, job.elapsed)
        record_job_finished()
        logger.error(
            "Job %s failed during %s (%s): %s",
            job.id,
            failed_in.value,
            error.error_code,
            error.message,
        )


__all__ = ["Job", "JobCoordinator", "JobKind", "JobState", "TERMINAL_STATES"]
