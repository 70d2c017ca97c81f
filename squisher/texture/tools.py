"""Locating and running the external texture tools."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Sequence

from squisher.error_handling import (
    ExternalToolError,
    ExternalToolNotFound,
    ExternalToolTimeout,
)

logger = logging.getLogger(__name__)


def resolve_tool(tool: str) -> str:
    """Return an executable path for ``tool``.

    ``tool`` is either a bare program name looked up on ``PATH`` or an
    explicit path to the binary.
    """
    candidate = Path(tool).expanduser()
    if candidate.parent != Path(".") or os.sep in tool:
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return str(candidate)
        raise ExternalToolNotFound(f"{tool} does not exist or is not executable", tool=tool)

    found = shutil.which(tool)
    if found is None:
        raise ExternalToolNotFound(
            f"{tool} was not found on PATH; install it or configure its location",
            tool=tool,
        )
    return found


def run_tool(command: Sequence[object], timeout: float) -> subprocess.CompletedProcess:
    """Run an external tool to completion, raising on any failure."""
    args: List[str] = [str(arg) for arg in command]
    tool = Path(args[0]).name
    logger.debug("Running %s with args %s", tool, args[1:])

    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as exc:
        raise ExternalToolNotFound(
            f"{tool} could not be started: {exc}", tool=tool, command=args, cause=exc
        ) from exc
    except subprocess.TimeoutExpired as exc:
        stderr = exc.stderr.decode(errors="replace") if isinstance(exc.stderr, bytes) else exc.stderr
        raise ExternalToolTimeout(
            f"{tool} did not finish within {timeout}s",
            tool=tool,
            timeout=timeout,
            stderr=stderr,
            command=args,
            cause=exc,
        ) from exc
    except OSError as exc:
        raise ExternalToolError(
            f"{tool} could not be started: {exc}", tool=tool, command=args, cause=exc
        ) from exc

    if result.returncode != 0:
        logger.error("Error running %s with args %s", tool, args[1:])
        stderr = (result.stderr or "").strip() or (result.stdout or "").strip()
        raise ExternalToolError(
            f"{tool} exited with code {result.returncode}: {stderr or 'no output'}",
            tool=tool,
            returncode=result.returncode,
            stderr=stderr,
            command=args,
        )
    return result
