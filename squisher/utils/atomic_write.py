from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from squisher.error_handling import AssetIOError


def write_bytes_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` via a sibling temp file and a rename.

    Either the complete file appears at ``path`` or nothing changes there.
    """
    path = Path(path)
    tmp_path: Optional[Path] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            tmp_path = Path(handle.name)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except OSError as exc:
        raise AssetIOError(
            f"Unable to write {path}: {exc.strerror or exc}",
            file_path=path,
            cause=exc,
        ) from exc
    finally:
        if tmp_path and tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError:
                pass


def write_json_atomic(
    path: Path,
    payload: Any,
    *,
    indent: Optional[int] = 2,
    ensure_ascii: bool = False,
) -> None:
    text = json.dumps(payload, indent=indent, ensure_ascii=ensure_ascii)
    write_bytes_atomic(path, text.encode("utf-8"))
