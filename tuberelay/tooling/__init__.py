"""yt-dlp binary lifecycle and invocation."""

from .arguments import InvocationRequest, build_download_request, build_probe_request
from .invoker import InvocationResult, ToolInvoker
from .provisioner import ToolBinary, ToolProvisioner

__all__ = [
    "InvocationRequest",
    "InvocationResult",
    "ToolBinary",
    "ToolInvoker",
    "ToolProvisioner",
    "build_download_request",
    "build_probe_request",
]
