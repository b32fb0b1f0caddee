"""Error hierarchy for the treeconf configuration store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

__all__ = [
    "TreeConfError",
    "InvalidPathError",
    "TypeMismatchError",
    "ConfigIOError",
    "DocumentParseError",
    "CodecError",
    "ErrorCodes",
]


class TreeConfError(Exception):
    """Base error for all treeconf errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details: dict[str, Any] = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class InvalidPathError(TreeConfError, ValueError):
    """Raised for a missing or empty path, or traversal through a non-section node."""

    def __init__(self, path: Any, reason: str = "Invalid path", **kwargs: Any) -> None:
        super().__init__(
            code="INVALID_PATH",
            message=f"{reason}: {path!r}",
            details={"path": path, "reason": reason},
            **kwargs,
        )

    @property
    def path(self) -> Any:
        """The offending path argument."""
        return self.details["path"]


class TypeMismatchError(TreeConfError, TypeError):
    """Raised when a stored value does not have the type the caller asked for."""

    def __init__(self, path: str, expected: str, actual: str, **kwargs: Any) -> None:
        super().__init__(
            code="TYPE_MISMATCH",
            message=f"Value at '{path}' is {actual}, expected {expected}",
            details={"path": path, "expected": expected, "actual": actual},
            **kwargs,
        )

    @property
    def path(self) -> str:
        """The path whose value had the wrong type."""
        return self.details["path"]

    @property
    def expected(self) -> str:
        """Name of the requested type."""
        return self.details["expected"]

    @property
    def actual(self) -> str:
        """Name of the stored value's type."""
        return self.details["actual"]


class ConfigIOError(TreeConfError, OSError):
    """Raised when the backing file cannot be read or written."""

    def __init__(self, file_path: str, operation: str, reason: str, **kwargs: Any) -> None:
        super().__init__(
            code="CONFIG_IO_ERROR",
            message=f"Cannot {operation} configuration file '{file_path}': {reason}",
            details={"file_path": file_path, "operation": operation, "reason": reason},
            **kwargs,
        )

    # OSError.__str__ would otherwise take precedence through the MRO
    def __str__(self) -> str:
        return TreeConfError.__str__(self)

    @property
    def file_path(self) -> str:
        """The file that could not be accessed."""
        return self.details["file_path"]

    @property
    def operation(self) -> str:
        """Either 'read' or 'write'."""
        return self.details["operation"]


class DocumentParseError(TreeConfError):
    """Raised when the backing document is not valid YAML or not a mapping."""

    def __init__(self, message: str, source: str | None = None, **kwargs: Any) -> None:
        super().__init__(
            code="DOCUMENT_PARSE_ERROR",
            message=message,
            details={"source": source},
            **kwargs,
        )


class CodecError(TreeConfError):
    """Raised when a value codec cannot be registered or cannot encode a value."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(code="CODEC_ERROR", message=message, **kwargs)


class ErrorCodes:
    """All treeconf error codes as constants.

    Example:
        if error.code == ErrorCodes.CONFIG_IO_ERROR:
            retry_later()
    """

    INVALID_PATH = "INVALID_PATH"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    CONFIG_IO_ERROR = "CONFIG_IO_ERROR"
    DOCUMENT_PARSE_ERROR = "DOCUMENT_PARSE_ERROR"
    CODEC_ERROR = "CODEC_ERROR"

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("ErrorCodes is immutable")
