"""
keyvaluestore persistence core.
An in-memory dict of preference values mirrored to one backing file. Reads and
writes are synchronous on the caller's thread; the file is rewritten in full on
a single background worker after every mutation.

Intended for small data only: every write serializes the whole mapping.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from . import codec
from .config import Settings, get_settings
from .errors import DecodeError, InvalidFilePath
from .repositories import FileSystem, FileSystemProtocol
from .schemas import LoadResult
from .worker import SerialWorker

logger = logging.getLogger(__name__)

LoadCompletion = Callable[[LoadResult], None]
Dispatch = Callable[[Callable[[], None]], None]


def _call_inline(fn: Callable[[], None]) -> None:
    fn()


class KeyValueStore:
    """
    Key-value store backed by a single file.

    `entries` is None while unloaded and a dict once loaded; every getter and
    setter is a no-op until load() or load_async() succeeds.

    `dispatch` decides where load/unload completions run. It receives a
    callable that applies the new state and then calls the completion, so the
    two are never observed apart. The default runs it on the worker thread;
    pass e.g. `loop.call_soon_threadsafe` to land on an event loop instead.
    """

    def __init__(
        self,
        file_path,
        log_output: bool = False,
        file_format: Optional[str] = None,
        file_system: Optional[FileSystemProtocol] = None,
        dispatch: Optional[Dispatch] = None,
    ):
        self._file_path = Path(file_path)
        self._file_format = file_format or codec.format_for_path(self._file_path)
        codec.check_format(self._file_format)
        self._fs = file_system or FileSystem()
        self._dispatch = dispatch or _call_inline
        self.log_output = log_output

        self._entries: Optional[dict] = None
        self._lock = threading.RLock()
        self._worker = SerialWorker(name=f"keyvaluestore:{self._file_path.name}")

    @classmethod
    def from_directory(
        cls,
        directory,
        name: str,
        log_output: bool = False,
        file_format: str = "json",
        file_system: Optional[FileSystemProtocol] = None,
        dispatch: Optional[Dispatch] = None,
    ) -> "KeyValueStore":
        """Store at <directory>/<name>.<ext>. Raises InvalidFilePath unless the directory is readable and writable."""
        fs = file_system or FileSystem()
        directory = Path(directory)
        if not name or not fs.is_accessible_directory(directory):
            raise InvalidFilePath(directory)
        path = directory / f"{name}{codec.FORMAT_EXTENSIONS.get(file_format, '')}"
        return cls(path, log_output=log_output, file_format=file_format, file_system=fs, dispatch=dispatch)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "KeyValueStore":
        """Build the store described by KVSTORE_* settings, creating the data directory if needed."""
        settings = settings or get_settings()
        fs = kwargs.pop("file_system", None) or FileSystem()
        try:
            fs.create_directory(settings.KVSTORE_DATA_DIR)
        except OSError as e:
            raise InvalidFilePath(settings.KVSTORE_DATA_DIR) from e
        return cls.from_directory(
            settings.KVSTORE_DATA_DIR,
            settings.KVSTORE_NAME,
            log_output=settings.KVSTORE_LOG_OUTPUT,
            file_format=settings.KVSTORE_FORMAT,
            file_system=fs,
            **kwargs,
        )

    # ── State ──────────────────────────────────────────────────────────

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def file_format(self) -> str:
        return self._file_format

    @property
    def is_loaded(self) -> bool:
        return self._entries is not None

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries) if self._entries is not None else []

    def to_dict(self) -> dict:
        with self._lock:
            return dict(self._entries) if self._entries is not None else {}

    def __contains__(self, key) -> bool:
        with self._lock:
            return self._entries is not None and key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries) if self._entries is not None else 0

    def __repr__(self) -> str:
        state = "loaded" if self.is_loaded else "unloaded"
        return f"<KeyValueStore {self._file_path} ({self._file_format}, {state})>"

    # ── Load / unload / delete ─────────────────────────────────────────

    def load(self) -> bool:
        """Synchronously read (or create) the backing file. Returns whether the store is loaded."""
        return self.load_result().loaded

    def load_result(self) -> LoadResult:
        """Like load(), but returns the full LoadResult including any error."""
        with self._lock:
            if self._entries is not None:
                return LoadResult(loaded=True, entries=self._entries)
        result = self._read_or_create()
        with self._lock:
            self._apply_load(result)
            if self._entries is not None:
                return LoadResult(loaded=True, entries=self._entries)
        return result

    def load_async(self, completion: Optional[LoadCompletion] = None) -> None:
        """Load on the background worker, then deliver a LoadResult to completion exactly once."""
        with self._lock:
            current = LoadResult(loaded=True, entries=self._entries) if self._entries is not None else None
        if current is not None:
            self._dispatch(lambda: completion(current) if completion else None)
            return

        def job():
            result = self._read_or_create()

            def deliver():
                with self._lock:
                    self._apply_load(result)
                    final = LoadResult(loaded=True, entries=self._entries) if self._entries is not None else result
                if completion:
                    completion(final)

            self._dispatch(deliver)

        self._worker.submit(job)

    def unload(self) -> None:
        """
        Drop the in-memory entries. The backing file is left as it is.
        Writes still queued are skipped once unloaded; flush() first or use
        unload_async() to keep them.
        """
        with self._lock:
            self._entries = None
        self._log("Store unloaded")

    def unload_async(self, completion: Optional[Callable[[], None]] = None) -> None:
        """Unload once every write queued before this call has run."""
        def job():
            def deliver():
                self.unload()
                if completion:
                    completion()

            self._dispatch(deliver)

        self._worker.submit(job)

    def delete(self) -> None:
        """
        Cancel queued writes, unload, and remove the backing file.
        Raises OSError if the file cannot be removed; memory is cleared regardless.
        """
        dropped = self._worker.cancel_pending(lambda job: job == self._write_entries)
        if dropped:
            self._log(f"Cancelled {dropped} pending write(s)")
        with self._lock:
            self._entries = None
        self._fs.remove(self._file_path)
        self._log("Backing file deleted")

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until every queued write has reached disk. False on timeout."""
        return self._worker.wait_idle(timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        """Flush pending writes and stop the worker thread. The store stays loaded."""
        self._worker.shutdown(wait=True, timeout=timeout)

    def __enter__(self) -> "KeyValueStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Values ─────────────────────────────────────────────────────────

    def set_value(self, key: str, value) -> None:
        """Set key to value in memory and schedule a write. None removes the key."""
        if value is not None:
            codec.check_value(key, value)
        with self._lock:
            if self._entries is None:
                self._log(f"Set for key '{key}' ignored because the store is not loaded")
                return
            if value is None:
                self._entries.pop(key, None)
            else:
                self._entries[key] = value
        self._save_to_disk()

    def remove_value(self, key: str) -> None:
        self.set_value(key, None)

    def value_for_key(self, key: str):
        with self._lock:
            if self._entries is None:
                return None
            return self._entries.get(key)

    def get_value(self, key: str, default=None):
        value = self.value_for_key(key)
        return default if value is None else value

    # Typed accessors

    def set_string(self, key: str, value: Optional[str]) -> None:
        self.set_value(key, value)

    def string_for_key(self, key: str) -> Optional[str]:
        return self._typed(key, str)

    def set_int(self, key: str, value: Optional[int]) -> None:
        self.set_value(key, value)

    def int_for_key(self, key: str) -> Optional[int]:
        value = self.value_for_key(key)
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value

    def set_float(self, key: str, value: Optional[float]) -> None:
        self.set_value(key, None if value is None else float(value))

    def float_for_key(self, key: str) -> Optional[float]:
        value = self.value_for_key(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    # float is already double precision
    set_double = set_float
    double_for_key = float_for_key

    def set_bool(self, key: str, value: Optional[bool]) -> None:
        self.set_value(key, None if value is None else bool(value))

    def bool_for_key(self, key: str) -> Optional[bool]:
        return self._typed(key, bool)

    def set_date(self, key: str, value: Optional[datetime]) -> None:
        self.set_value(key, value)

    def date_for_key(self, key: str) -> Optional[datetime]:
        return self._typed(key, datetime)

    def set_data(self, key: str, value: Optional[bytes]) -> None:
        self.set_value(key, None if value is None else bytes(value))

    def data_for_key(self, key: str) -> Optional[bytes]:
        return self._typed(key, bytes)

    def _typed(self, key: str, kind: type):
        value = self.value_for_key(key)
        return value if isinstance(value, kind) else None

    # ── Internals ──────────────────────────────────────────────────────

    def _read_or_create(self) -> LoadResult:
        try:
            raw = self._fs.read_bytes(self._file_path)
            entries = codec.decode(raw, self._file_format)
            self._log(f"Loaded {len(entries)} entries")
            return LoadResult(loaded=True, entries=entries)
        except (OSError, DecodeError) as e:
            self._log(f"Backing file unreadable ({e}); creating an empty one")

        try:
            self._fs.write_atomically(self._file_path, codec.encode({}, self._file_format))
        except (OSError, ValueError) as e:
            error = InvalidFilePath(self._file_path)
            self._log(f"{error.message} ({e})")
            return LoadResult(loaded=False, error=error)
        return LoadResult(loaded=True)

    def _apply_load(self, result: LoadResult) -> None:
        # a concurrent load may have won already; keep its entries
        if self._entries is None and result.loaded:
            self._entries = dict(result.entries)

    def _save_to_disk(self) -> None:
        self._worker.submit(self._write_entries)

    def _write_entries(self) -> None:
        with self._lock:
            if self._entries is None:
                self._log("Save to disk aborted because there is no data to save")
                return
            raw = codec.encode(self._entries, self._file_format)
        try:
            self._fs.write_atomically(self._file_path, raw)
        except OSError as e:
            logger.warning("Write to %s failed: %s", self._file_path, e, exc_info=True)

    def _log(self, message: str) -> None:
        if self.log_output:
            logger.info("KeyValueStore[%s]: %s", self._file_path, message, stacklevel=2)


# ── Process-wide default store ─────────────────────────────────────────

_default_store: Optional[KeyValueStore] = None
_default_lock = threading.Lock()


def get_default_store() -> KeyValueStore:
    """
    Return the shared store built from settings, loading it on first use.
    Raises InvalidFilePath if it cannot be loaded; nothing is cached then, so a
    later call builds a fresh store.
    """
    global _default_store
    with _default_lock:
        if _default_store is None:
            store = KeyValueStore.from_settings()
            result = store.load_result()
            if not result.loaded:
                store.close()
                raise result.error or InvalidFilePath(store.file_path)
            _default_store = store
        return _default_store


def reset_default_store() -> None:
    """Close and forget the shared store (next get_default_store() builds a new one)."""
    global _default_store
    with _default_lock:
        store, _default_store = _default_store, None
    if store is not None:
        store.close()
