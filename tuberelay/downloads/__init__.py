"""Download orchestration: workspaces, artifact lookup, transfers and jobs."""

from .artifacts import locate, locate_single
from .coordinator import Job, JobCoordinator, JobKind, JobState
from .metadata import FormatInfo, VideoMetadata, parse_probe_output
from .streaming import TransferPayload, TransferStreamer
from .workspace import TransientWorkspace, WorkspaceManager

__all__ = [
    "FormatInfo",
    "Job",
    "JobCoordinator",
    "JobKind",
    "JobState",
    "TransferPayload",
    "TransferStreamer",
    "TransientWorkspace",
    "VideoMetadata",
    "WorkspaceManager",
    "locate",
    "locate_single",
    "parse_probe_output",
]
