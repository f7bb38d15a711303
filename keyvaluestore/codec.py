"""
Backing file formats.

Both formats serialize a flat mapping of string keys to the closed value type
str | int | float | bool | datetime | bytes and preserve the type on read.

  json   UTF-8 JSON object. Dates and blobs are tagged objects:
           {"$date": "2016-04-11T09:30:00+00:00"}, {"$data": "aGVsbG8="}
  plist  binary property list (plistlib). Dates are stored as UTC and come
         back as UTC-aware datetimes.
"""

import base64
import json
import plistlib
from datetime import datetime, timezone
from typing import Union

from .errors import DecodeError, UnsupportedValueType

Value = Union[str, int, float, bool, datetime, bytes]

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_DATE_TAG = "$date"
_DATA_TAG = "$data"

FORMAT_EXTENSIONS = {"json": ".json", "plist": ".plist"}


def check_value(key: str, value) -> Value:
    """Return value unchanged if it belongs to the closed value type, else raise."""
    if not isinstance(key, str):
        raise TypeError(f"Keys must be str, got {type(key).__name__}")
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(f"Integer for key '{key}' does not fit in 64 bits")
        return value
    if isinstance(value, (str, float, datetime, bytes)):
        return value
    raise UnsupportedValueType(key, value)


def format_for_path(path) -> str:
    suffix = str(path).lower()
    return "plist" if suffix.endswith(".plist") else "json"


# ── JSON ───────────────────────────────────────────────────────────────

def _json_default(obj):
    if isinstance(obj, datetime):
        return {_DATE_TAG: obj.isoformat()}
    if isinstance(obj, bytes):
        return {_DATA_TAG: base64.b64encode(obj).decode("ascii")}
    raise TypeError(f"Object of type {type(obj).__name__} is not serializable")


def _from_json_value(value):
    # tags are only unwrapped on values, never on the root mapping
    if isinstance(value, dict) and len(value) == 1:
        if _DATE_TAG in value:
            return datetime.fromisoformat(value[_DATE_TAG])
        if _DATA_TAG in value:
            return base64.b64decode(value[_DATA_TAG], validate=True)
    return value


def encode_json(entries: dict) -> bytes:
    text = json.dumps(entries, default=_json_default, ensure_ascii=False, indent=2)
    return text.encode("utf-8")


def decode_json(raw: bytes) -> dict:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"Invalid JSON store file: {e}") from e
    if isinstance(data, dict):
        try:
            data = {k: _from_json_value(v) for k, v in data.items()}
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Invalid tagged value in JSON store file: {e}") from e
    return _checked_mapping(data)


# ── Property list ──────────────────────────────────────────────────────

def _to_plist_value(value):
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_plist_value(value):
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def encode_plist(entries: dict) -> bytes:
    data = {k: _to_plist_value(v) for k, v in entries.items()}
    return plistlib.dumps(data, fmt=plistlib.FMT_BINARY, sort_keys=True)


def decode_plist(raw: bytes) -> dict:
    try:
        data = plistlib.loads(raw)
    except (plistlib.InvalidFileException, ValueError, TypeError, OverflowError) as e:
        raise DecodeError(f"Invalid property list store file: {e}") from e
    if isinstance(data, dict):
        data = {k: _from_plist_value(v) for k, v in data.items()}
    return _checked_mapping(data)


def _checked_mapping(data) -> dict:
    if not isinstance(data, dict):
        raise DecodeError(f"Store file must hold a mapping, got {type(data).__name__}")
    try:
        for key, value in data.items():
            check_value(key, value)
    except (TypeError, ValueError) as e:
        raise DecodeError(str(e)) from e
    return data


_CODECS = {
    "json": (encode_json, decode_json),
    "plist": (encode_plist, decode_plist),
}


def encode(entries: dict, file_format: str = "json") -> bytes:
    return _codec(file_format)[0](entries)


def decode(raw: bytes, file_format: str = "json") -> dict:
    return _codec(file_format)[1](raw)


def _codec(file_format: str):
    try:
        return _CODECS[file_format]
    except KeyError:
        raise ValueError(f"Unsupported store format: {file_format}. Use: json, plist") from None


def check_format(file_format: str) -> str:
    _codec(file_format)
    return file_format
