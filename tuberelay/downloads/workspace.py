import os
import re
import time
import uuid
import logging
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


class TransientWorkspace:
    """A per-job directory under the shared download root.

    Created before the tool runs and removed (files first, directory second)
    once the job ends. Cleanup is best-effort and runs at most once.
    """

    def __init__(self, root: str, path: str, created: bool) -> None:
        self.root = os.path.abspath(root)
        self.path = os.path.abspath(path)
        self.created = created
        self._cleaned = False

    @property
    def cleaned(self) -> bool:
        return self._cleaned

    def list_files(self) -> List[str]:
        try:
            names = os.listdir(self.path)
        except FileNotFoundError:
            return []
        return [os.path.join(self.path, n) for n in names if os.path.isfile(os.path.join(self.path, n))]

    def cleanup(self, extra_files: Optional[Iterable[str]] = None) -> None:
        """Remove the job's files and, if this job created it, its directory.

        Each removal is attempted independently; failures are logged only.
        """
        if self._cleaned:
            return
        self._cleaned = True

        targets = list(extra_files or [])
        for path in self.list_files():
            if path not in targets:
                targets.append(path)
        for path in targets:
            try:
                os.remove(path)
                logger.info(f"Cleaned up: {path}")
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to cleanup {path}: {e}")

        if not self.created or self.path == self.root:
            return
        try:
            os.rmdir(self.path)
            logger.info(f"Removed workspace directory: {self.path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove workspace directory {self.path}: {e}")


class WorkspaceManager:
    def __init__(self, base_output_dir):
        """Initializes the WorkspaceManager.

        :param base_output_dir: The shared root for all per-job directories.
        """
        self.base_output_dir = os.path.abspath(base_output_dir)
        os.makedirs(self.base_output_dir, exist_ok=True)
        logger.info(f"WorkspaceManager initialized with base output directory: {self.base_output_dir}")

    def sanitize_token(self, name):
        """
        Sanitizes a string to be used inside a directory name.
        """
        name = re.sub(r'[\\/:*?"<>|\s]', '_', name)
        name = name.strip('_')
        name = re.sub(r'_{2,}', '_', name)
        return name

    def create(self, kind: str = "job") -> TransientWorkspace:
        # Millisecond timestamp keeps listings ordered; the uuid keeps concurrent jobs apart
        token = f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"
        prefix = self.sanitize_token(kind) or "job"
        path = os.path.join(self.base_output_dir, f"{prefix}_{token}")
        os.makedirs(path)
        logger.info(f"Created workspace: {path}")
        return TransientWorkspace(root=self.base_output_dir, path=path, created=True)
