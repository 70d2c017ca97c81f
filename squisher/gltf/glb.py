"""
glTF/GLB decoding and GLB encoding through pygltflib.

pygltflib walks the GLB chunks on load and lays out the BIN buffer on save.
It only keeps the members it has dataclass fields for, so
:class:`SourceGLTF2` also holds the JSON mapping each document was decoded
from; that mapping is what gets written back out.
"""

from __future__ import annotations

import json
import logging
import struct
import warnings
from typing import Any, Dict, Optional

from pygltflib import GLTF2, GLTF_VERSION, MAGIC

from squisher.error_handling import FormatError

logger = logging.getLogger(__name__)


GLB_HEADER_SIZE = 12


def is_glb(data: bytes) -> bool:
    return data[:4] == MAGIC


class SourceGLTF2(GLTF2):
    """GLTF2 that carries the JSON mapping it was decoded from.

    ``to_json`` emits that mapping instead of the dataclass fields, with the
    buffer views and buffers pygltflib laid out while saving.
    """

    @classmethod
    def from_json(cls, s, **kwargs):
        payload = json.loads(s)
        if not isinstance(payload, dict):
            raise ValueError("glTF JSON root must be an object")
        gltf = super().from_json(s, **kwargs)
        gltf.source_json = payload
        return gltf

    @classmethod
    def from_mapping(cls, payload: Dict[str, Any]) -> "SourceGLTF2":
        return cls.gltf_from_json(json.dumps(payload))

    def to_json(self, **kwargs) -> str:
        payload = dict(self.source_json)
        raw_views = payload.get("bufferViews") or []
        if raw_views:
            payload["bufferViews"] = [
                dict(raw, buffer=view.buffer, byteOffset=view.byteOffset, byteLength=view.byteLength)
                for raw, view in zip(raw_views, self.bufferViews)
            ]
            payload["buffers"] = [{"byteLength": buffer.byteLength} for buffer in self.buffers]
        else:
            payload.pop("buffers", None)
        return json.dumps(payload, **kwargs)


def _decode(loader, data, source: Optional[str], kind: str) -> SourceGLTF2:
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            gltf = loader(data)
    except (ValueError, KeyError, TypeError, AttributeError, IndexError, struct.error) as exc:
        raise FormatError(f"Unable to parse {kind}: {exc}", file_path=source, cause=exc) from exc
    for warning in caught:
        logger.debug("pygltflib: %s", warning.message)
    return gltf


def load_glb(data: bytes, source: Optional[str] = None) -> SourceGLTF2:
    """Decode a GLB file; its BIN chunk is available as ``binary_blob()``."""
    if len(data) < GLB_HEADER_SIZE:
        raise FormatError(
            f"GLB too small ({len(data)} bytes, header needs {GLB_HEADER_SIZE})",
            file_path=source,
        )
    if not is_glb(data):
        raise FormatError(f"Not a GLB file (magic {data[:4]!r})", file_path=source)
    version = int.from_bytes(data[4:8], "little")
    if version != GLTF_VERSION:
        raise FormatError(f"Unsupported GLB version {version}", file_path=source)
    length = int.from_bytes(data[8:12], "little")
    if length > len(data):
        raise FormatError(
            f"GLB header declares {length} bytes but file has {len(data)}",
            file_path=source,
        )

    gltf = _decode(SourceGLTF2.load_from_bytes, data[:length], source, "GLB")
    if gltf is None:
        raise FormatError("GLB has no JSON chunk", file_path=source)
    return gltf


def load_gltf_json(data: bytes, source: Optional[str] = None) -> SourceGLTF2:
    """Decode a ``.gltf`` JSON document."""
    return _decode(
        lambda raw: SourceGLTF2.gltf_from_json(raw.decode("utf-8")),
        data,
        source,
        "glTF JSON",
    )


def save_glb(payload: Dict[str, Any], blob: bytes) -> bytes:
    """Encode ``payload`` and its single buffer ``blob`` as a GLB file.

    Every buffer view in ``payload`` must address ``blob`` (buffer 0);
    pygltflib repacks them in order, each on a 4-byte boundary.
    """
    gltf = _decode(SourceGLTF2.from_mapping, payload, None, "glTF document")
    gltf.set_binary_blob(blob)
    return b"".join(gltf.save_to_bytes())
