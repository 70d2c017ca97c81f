"""
squisher Error Handling Module.

Usage:
    from squisher.error_handling import FormatError, ExternalToolError

    try:
        squish(input_path, output_path, config)
    except SquishError as exc:
        logger.error("Squish failed: %s", exc, extra={"squish_error": exc})
        sys.exit(exc.exit_code)
"""

from .errors import (
    EXIT_FAILURE,
    EXIT_FORMAT_ERROR,
    EXIT_IO_ERROR,
    EXIT_OK,
    EXIT_TOOL_FAILED,
    EXIT_TOOL_NOT_FOUND,
    EXIT_UNSUPPORTED_IMAGE,
    EXIT_USAGE,
    AssetIOError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    ExternalToolError,
    ExternalToolNotFound,
    ExternalToolTimeout,
    FormatError,
    SquishError,
    UnsupportedImageFormat,
)

__all__ = [
    "EXIT_FAILURE",
    "EXIT_FORMAT_ERROR",
    "EXIT_IO_ERROR",
    "EXIT_OK",
    "EXIT_TOOL_FAILED",
    "EXIT_TOOL_NOT_FOUND",
    "EXIT_UNSUPPORTED_IMAGE",
    "EXIT_USAGE",
    "AssetIOError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "ExternalToolError",
    "ExternalToolNotFound",
    "ExternalToolTimeout",
    "FormatError",
    "SquishError",
    "UnsupportedImageFormat",
]
