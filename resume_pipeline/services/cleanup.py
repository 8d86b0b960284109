import os
import shutil
from typing import Dict, Iterable, List, Optional

from resume_pipeline.models.schemas import UploadedFile
from resume_pipeline.utils.logging_config import get_logger

logger = get_logger(__name__)


class TempFileJanitor:
    """Tracks spooled uploads and deletes each one exactly once."""

    def __init__(self, files: Iterable[UploadedFile] = (), run_dir: Optional[str] = None):
        self._pending: Dict[str, UploadedFile] = {}
        self.released: List[str] = []
        self.run_dir = run_dir
        for f in files:
            self.track(f)

    def track(self, f: UploadedFile) -> None:
        if f.path not in self.released:
            self._pending.setdefault(f.path, f)

    @property
    def pending(self) -> List[str]:
        return list(self._pending)

    def release(self, f: UploadedFile) -> bool:
        """Delete one file. Returns False when it was already released."""
        if self._pending.pop(f.path, None) is None:
            return False
        self.released.append(f.path)
        try:
            os.remove(f.path)
        except FileNotFoundError:
            logger.debug(f"Temp file already gone: {f.path}")
        except OSError as e:
            logger.warning(f"Could not delete temp file {f.path}: {e}")
        return True

    def release_all(self) -> int:
        count = 0
        for f in list(self._pending.values()):
            if self.release(f):
                count += 1
        if self.run_dir:
            shutil.rmtree(self.run_dir, ignore_errors=True)
            self.run_dir = None
        if count:
            logger.debug(f"Released {count} remaining temp files")
        return count
