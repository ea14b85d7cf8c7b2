#!/usr/bin/env python
"""
Transport-agnostic transfer of artifacts to the caller.

A TransferPayload bundles response headers with a lazy byte iterator. The
HTTP layer only has to iterate it and call ``close()``; workspace cleanup is
tied to the end of the iteration (success, failure or early close) and
happens exactly once.

Playlists are packaged as a ZIP written into a small in-memory sink that is
drained after every chunk, so the archive never sits in memory as a whole.
"""

from __future__ import annotations

import logging
import os
import threading
import unicodedata
import zipfile
from typing import Callable, Dict, Iterator, List, Optional, Sequence
from urllib.parse import quote

from ..errors import StreamError
from .workspace import TransientWorkspace

logger = logging.getLogger(__name__)

OCTET_STREAM = "application/octet-stream"
ZIP_MIMETYPE = "application/zip"
ZIP_COMPRESSION_LEVEL = 9
# Entries above this size get ZIP64 headers; deflate can slightly grow incompressible data
_ZIP64_THRESHOLD = 1 << 30


def attachment_disposition(filename: str) -> str:
    """Build a Content-Disposition value, adding ``filename*`` for non-ASCII names."""
    try:
        filename.encode("ascii")
    except UnicodeEncodeError:
        simple = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
        quoted = quote(filename, safe="!#$&+-.^_`|~")
        return f"attachment; filename=\"{_escape(simple)}\"; filename*=UTF-8''{quoted}"
    return f'attachment; filename="{_escape(filename)}"'


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


CompletionCallback = Callable[[bool], None]


class _Once:
    """Run a finalizer at most once across threads.

    The argument says whether the body was sent in full.
    """

    def __init__(self, fn: Callable[[bool], None]) -> None:
        self._fn = fn
        self._lock = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def __call__(self, completed: bool = False) -> None:
        with self._lock:
            if self._done:
                return
            self._done = True
        self._fn(completed)


class TransferPayload:
    """Headers plus a body iterator whose completion releases the workspace."""

    def __init__(
        self,
        headers: Dict[str, str],
        mimetype: str,
        chunks: Iterator[bytes],
        on_close: Callable[[bool], None],
        filenames: Optional[List[str]] = None,
    ) -> None:
        self.headers = headers
        self.mimetype = mimetype
        self.filenames = filenames or []
        self._chunks = chunks
        self._on_close = on_close

    @property
    def content_length(self) -> Optional[int]:
        value = self.headers.get("Content-Length")
        return int(value) if value is not None else None

    def __iter__(self) -> Iterator[bytes]:
        return self._chunks

    def close(self) -> None:
        close_chunks = getattr(self._chunks, "close", None)
        try:
            if close_chunks is not None:
                close_chunks()
        finally:
            # No-op when the body already ran to completion
            self._on_close(False)


class _ChunkSink:
    """Write-only, non-seekable buffer that zipfile streams into."""

    def __init__(self) -> None:
        self._parts: List[bytes] = []

    def write(self, data) -> int:
        self._parts.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._parts)
        self._parts.clear()
        return data


class TransferStreamer:
    def __init__(self, chunk_size: int = 64 * 1024, archive_filename: str = "playlist.zip") -> None:
        self.chunk_size = chunk_size
        self.archive_filename = archive_filename

    def stream_file(
        self,
        path: str,
        workspace: TransientWorkspace,
        on_complete: Optional[CompletionCallback] = None,
    ) -> TransferPayload:
        """Prepare a single artifact for transfer.

        The file is opened and sized up front so failures surface before any
        bytes are sent; the caller still owns workspace cleanup in that case.
        """
        filename = os.path.basename(path)
        try:
            handle = open(path, "rb")
        except OSError as exc:
            raise StreamError(f"Failed to open {filename}: {exc}") from exc
        try:
            size = os.fstat(handle.fileno()).st_size
        except OSError as exc:
            handle.close()
            raise StreamError(f"Failed to stat {filename}: {exc}") from exc

        def _release(completed: bool) -> None:
            handle.close()
            workspace.cleanup()
            if on_complete is not None:
                on_complete(completed)

        finalize = _Once(_release)

        def _chunks() -> Iterator[bytes]:
            sent = 0
            completed = False
            try:
                while True:
                    chunk = handle.read(self.chunk_size)
                    if not chunk:
                        break
                    sent += len(chunk)
                    yield chunk
                completed = True
                logger.info("Streamed %s (%d bytes)", filename, sent)
            except OSError as exc:
                logger.error("Stream error for %s after %d bytes: %s", filename, sent, exc)
                raise StreamError(f"Failed while streaming {filename}: {exc}") from exc
            finally:
                finalize(completed)

        headers = {
            "Content-Type": OCTET_STREAM,
            "Content-Disposition": attachment_disposition(filename),
            "Content-Length": str(size),
        }
        return TransferPayload(headers, OCTET_STREAM, _chunks(), finalize, filenames=[filename])

    def stream_archive(
        self,
        paths: Sequence[str],
        workspace: TransientWorkspace,
        on_complete: Optional[CompletionCallback] = None,
    ) -> TransferPayload:
        """Prepare a ZIP (maximum compression) of ``paths`` under their base names."""
        sources = list(paths)

        def _release(completed: bool) -> None:
            workspace.cleanup(extra_files=sources)
            if on_complete is not None:
                on_complete(completed)

        finalize = _Once(_release)

        def _chunks() -> Iterator[bytes]:
            sink = _ChunkSink()
            completed = False
            try:
                with zipfile.ZipFile(
                    sink,
                    mode="w",
                    compression=zipfile.ZIP_DEFLATED,
                    compresslevel=ZIP_COMPRESSION_LEVEL,
                ) as archive:
                    for path in sources:
                        arcname = os.path.basename(path)
                        large = os.path.getsize(path) >= _ZIP64_THRESHOLD
                        with open(path, "rb") as src, archive.open(arcname, "w", force_zip64=large) as dest:
                            while True:
                                block = src.read(self.chunk_size)
                                if not block:
                                    break
                                dest.write(block)
                                data = sink.drain()
                                if data:
                                    yield data
                        data = sink.drain()
                        if data:
                            yield data
                # Central directory is written when the archive closes
                data = sink.drain()
                if data:
                    yield data
                completed = True
                logger.info("ZIP streaming complete: %d entries", len(sources))
            except (OSError, RuntimeError, zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
                logger.error("Archive stream aborted: %s", exc)
                raise StreamError(f"Failed while building archive: {exc}") from exc
            finally:
                finalize(completed)

        headers = {
            "Content-Type": ZIP_MIMETYPE,
            "Content-Disposition": attachment_disposition(self.archive_filename),
        }
        return TransferPayload(
            headers,
            ZIP_MIMETYPE,
            _chunks(),
            finalize,
            filenames=[os.path.basename(p) for p in sources],
        )


__all__ = [
    "OCTET_STREAM",
    "TransferPayload",
    "TransferStreamer",
    "ZIP_COMPRESSION_LEVEL",
    "ZIP_MIMETYPE",
    "attachment_disposition",
]
