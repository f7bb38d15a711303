"""
Local-disk implementation of FileSystemProtocol.
Writes go through a uniquely named sibling temp file and an atomic rename.
"""

import logging
import os
import tempfile
import threading
from pathlib import Path

logger = logging.getLogger(__name__)


class FileSystem:
    """Plain local filesystem access for store backing files."""

    # shared by every instance so stores on the same path in one process never interleave
    _lock = threading.Lock()

    def read_bytes(self, path: Path) -> bytes:
        with open(path, "rb") as f:
            return f.read()

    def write_atomically(self, path: Path, data: bytes) -> None:
        path = Path(path)
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            tmp = Path(tmp_name)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                tmp.replace(path)
            except OSError:
                tmp.unlink(missing_ok=True)
                raise

    def remove(self, path: Path) -> None:
        with self._lock:
            Path(path).unlink()

    def create_directory(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)
        logger.debug("Ensured directory %s", path)

    def is_accessible_directory(self, path: Path) -> bool:
        return Path(path).is_dir() and os.access(path, os.R_OK | os.W_OK)
