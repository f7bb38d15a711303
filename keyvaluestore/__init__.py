"""Small file-backed key-value store for preference-style data."""

from .errors import DecodeError, InvalidFilePath, KeyValueStoreError, UnsupportedValueType
from .schemas import LoadResult
from .store import KeyValueStore, get_default_store, reset_default_store

__all__ = [
    "DecodeError",
    "InvalidFilePath",
    "KeyValueStore",
    "KeyValueStoreError",
    "LoadResult",
    "UnsupportedValueType",
    "get_default_store",
    "reset_default_store",
]

__version__ = "1.0.0"
