"""
Custom Exception Classes for squisher.

Provides a hierarchy of exceptions for the ways a texture rewrite can fail,
each carrying structured context (which image, which material slot, which
external tool) and the process exit code the CLI reports for it.
"""

from __future__ import annotations

import json
import os
import re
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_FORMAT_ERROR = 3
EXIT_UNSUPPORTED_IMAGE = 4
EXIT_TOOL_NOT_FOUND = 5
EXIT_TOOL_FAILED = 6
EXIT_IO_ERROR = 7

# Captured stderr is truncated to this many characters in serialized errors.
MAX_STDERR_CHARS = 2000


class ErrorSeverity(str, Enum):
    """Severity levels for squisher errors."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Categories of squisher errors."""
    FORMAT = "format"
    UNSUPPORTED = "unsupported"
    EXTERNAL_TOOL = "external_tool"
    IO = "io"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Identifies where in the asset an error happened."""
    input_path: Optional[str] = None
    image_index: Optional[int] = None
    material_index: Optional[int] = None
    texture_slot: Optional[str] = None
    tool: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )
    additional: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        """Short human-readable location, e.g. ``image 2 (material 0, normal)``."""
        parts = []
        if self.image_index is not None:
            where = f"image {self.image_index}"
            details = []
            if self.material_index is not None:
                details.append(f"material {self.material_index}")
            if self.texture_slot:
                details.append(self.texture_slot)
            if details:
                where += f" ({', '.join(details)})"
            parts.append(where)
        if self.input_path:
            parts.append(f"in {self.input_path}")
        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_path": self.input_path,
            "image_index": self.image_index,
            "material_index": self.material_index,
            "texture_slot": self.texture_slot,
            "tool": self.tool,
            "timestamp": self.timestamp,
            "additional": self.additional,
        }


class SquishError(Exception):
    """
    Base exception for all squisher errors.

    Every error is terminal for the current run; ``exit_code`` is the
    status the CLI exits with when this error aborts a run.
    """

    exit_code = EXIT_FAILURE

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self._debug_enabled = os.getenv("SQUISHER_DEBUG", "0").strip().lower() in {"1", "true", "yes", "y", "on"}
        self._path_redaction_regex = re.compile(r"(?:[A-Za-z]:\\\\|/)[^\s]+")
        self.traceback_str = traceback.format_exc() if cause and self._debug_enabled else None

    def __str__(self) -> str:
        where = self.context.describe()
        return f"{self.message} [{where}]" if where else self.message

    def with_context(self, **values: Any) -> "SquishError":
        """Fill in context fields that are still unset and return ``self``."""
        for key, value in values.items():
            if value is not None and getattr(self.context, key, None) is None:
                setattr(self.context, key, value)
        return self

    def _sanitize_message(self, message: str) -> str:
        if not message or self._debug_enabled:
            return message
        return self._path_redaction_regex.sub("<redacted-path>", message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self._sanitize_message(self.message),
            "category": self.category.value,
            "severity": self.severity.value,
            "exit_code": self.exit_code,
            "context": self.context.to_dict(),
            "cause": self._sanitize_message(str(self.cause)) if self.cause else None,
            "traceback": self.traceback_str if self._debug_enabled else None,
        }

    def to_json(self) -> str:
        """Serialize error to JSON string."""
        return json.dumps(self.to_dict(), indent=2)


class FormatError(SquishError):
    """Malformed container: bad GLB framing, invalid JSON, dangling indices."""

    exit_code = EXIT_FORMAT_ERROR

    def __init__(self, message: str, file_path: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", None) or ErrorContext()
        if file_path is not None:
            context.input_path = str(file_path)
        super().__init__(
            message,
            category=ErrorCategory.FORMAT,
            context=context,
            **kwargs,
        )


class UnsupportedImageFormat(SquishError):
    """An image the rewriter must process is neither PNG nor JPEG."""

    exit_code = EXIT_UNSUPPORTED_IMAGE

    def __init__(
        self,
        message: str,
        mime_type: Optional[str] = None,
        image_index: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", None) or ErrorContext()
        context.image_index = image_index
        context.additional["mime_type"] = mime_type
        super().__init__(
            message,
            category=ErrorCategory.UNSUPPORTED,
            context=context,
            **kwargs,
        )
        self.mime_type = mime_type


class ExternalToolError(SquishError):
    """An external encoder or packager failed."""

    exit_code = EXIT_TOOL_FAILED

    def __init__(
        self,
        message: str,
        tool: str,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        command: Optional[list] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", None) or ErrorContext()
        context.tool = tool
        context.additional["returncode"] = returncode
        context.additional["stderr"] = stderr[-MAX_STDERR_CHARS:] if stderr else None
        context.additional["command"] = [str(arg) for arg in command] if command else None
        super().__init__(
            message,
            category=ErrorCategory.EXTERNAL_TOOL,
            context=context,
            **kwargs,
        )
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr
        self.command = command


class ExternalToolNotFound(ExternalToolError):
    """The external binary is not on the search path or configured location."""

    exit_code = EXIT_TOOL_NOT_FOUND

    def __init__(self, message: str, tool: str, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.CRITICAL)
        super().__init__(message, tool=tool, **kwargs)


class ExternalToolTimeout(ExternalToolError):
    """The external binary ran longer than the configured timeout."""

    def __init__(self, message: str, tool: str, timeout: float, **kwargs):
        super().__init__(message, tool=tool, **kwargs)
        self.timeout = timeout
        self.context.additional["timeout"] = timeout


class AssetIOError(SquishError):
    """Reading the input, writing the output, or temp-file handling failed."""

    exit_code = EXIT_IO_ERROR

    def __init__(self, message: str, file_path: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", None) or ErrorContext()
        context.additional["file_path"] = str(file_path) if file_path is not None else None
        super().__init__(
            message,
            category=ErrorCategory.IO,
            context=context,
            **kwargs,
        )
        self.file_path = file_path


class ConfigurationError(SquishError):
    """Error in configuration (invalid env vars, bad config file, bad flags)."""

    exit_code = EXIT_USAGE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", None) or ErrorContext()
        context.additional["config_key"] = config_key
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            context=context,
            **kwargs,
        )
        self.config_key = config_key
