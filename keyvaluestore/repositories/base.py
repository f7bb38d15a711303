"""Filesystem interface consumed by the store."""

from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class FileSystemProtocol(Protocol):
    """Operations the store needs from the disk. Paths are absolute or cwd-relative."""

    def read_bytes(self, path: Path) -> bytes:
        """Return file contents. Raises OSError (FileNotFoundError when missing)."""
        ...

    def write_atomically(self, path: Path, data: bytes) -> None:
        """Replace the file contents in one step (temp file + rename)."""
        ...

    def remove(self, path: Path) -> None:
        """Delete the file. Raises OSError when it cannot be removed."""
        ...

    def create_directory(self, path: Path) -> None:
        ...

    def is_accessible_directory(self, path: Path) -> bool:
        """True when path is an existing directory we can read and write."""
        ...
