"""Filesystem layer: abstract interface and the local implementation."""

from .base import FileSystemProtocol
from .file_system import FileSystem

__all__ = ["FileSystemProtocol", "FileSystem"]
