"""Scoped temporary directories for external tool runs."""

from __future__ import annotations

import logging
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from squisher.error_handling import AssetIOError

logger = logging.getLogger(__name__)


@contextmanager
def scoped_workdir(prefix: str = "squisher_", parent: Optional[Path] = None) -> Iterator[Path]:
    """Yield a fresh directory that is removed on every exit path.

    Example:
        with scoped_workdir() as workdir:
            (workdir / "level0.png").write_bytes(png_bytes)
            run_tool([...])
    """
    try:
        handle = tempfile.TemporaryDirectory(prefix=prefix, dir=parent)
    except OSError as exc:
        raise AssetIOError(
            f"Unable to create temporary directory: {exc.strerror or exc}",
            file_path=parent,
            cause=exc,
        ) from exc

    try:
        logger.debug("Created work directory %s", handle.name)
        yield Path(handle.name)
    finally:
        try:
            handle.cleanup()
        except OSError as exc:
            logger.warning("Failed to remove work directory %s: %s", handle.name, exc)
