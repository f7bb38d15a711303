"""Errors raised by the key-value store."""


class KeyValueStoreError(Exception):
    """Base for store failures with a machine-readable code."""
    def __init__(self, message: str, code: str = "kvstore_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidFilePath(KeyValueStoreError):
    """The backing file cannot be read or created at the configured path."""
    def __init__(self, path):
        self.path = str(path)
        super().__init__(
            f"Archived data cannot be found at file path: {self.path}",
            code="invalid_file_path",
        )


class UnsupportedValueType(KeyValueStoreError, TypeError):
    def __init__(self, key: str, value):
        self.key = key
        super().__init__(
            f"Cannot store {type(value).__name__} for key '{key}'. "
            "Use str, int, float, bool, datetime or bytes.",
            code="unsupported_value_type",
        )


class DecodeError(KeyValueStoreError):
    def __init__(self, message: str):
        super().__init__(message, code="decode_error")
