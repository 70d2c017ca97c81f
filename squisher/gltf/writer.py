"""Serialize an :class:`AssetDocument` into a single self-contained GLB."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Set

from .document import AssetDocument
from .glb import save_glb

logger = logging.getLogger(__name__)


def _accessor_views(payload: Dict[str, Any]) -> Set[int]:
    """bufferView indices that accessors (including sparse storage) read from."""
    views: Set[int] = set()
    for accessor in payload.get("accessors") or []:
        if accessor.get("bufferView") is not None:
            views.add(accessor["bufferView"])
        sparse = accessor.get("sparse") or {}
        for part in ("indices", "values"):
            view = (sparse.get(part) or {}).get("bufferView")
            if view is not None:
                views.add(view)
    return views


def build_glb(document: AssetDocument) -> bytes:
    """Collect every buffer view and image into one buffer and encode the GLB.

    Image buffer views owned by a single image are replaced in place; images
    that share a view, or that came from a URI, get a new view appended.
    All non-image JSON is carried over untouched.
    """
    payload = copy.deepcopy(document.json)
    views: List[Dict[str, Any]] = payload.get("bufferViews") or []
    images: List[Dict[str, Any]] = payload.get("images") or []

    image_views: Dict[int, List[int]] = {}
    for entry in document.images:
        if entry.buffer_view is not None:
            image_views.setdefault(entry.buffer_view, []).append(entry.index)
    shared_with_accessors = _accessor_views(payload)

    # Views are staged back to back; save_glb aligns them.
    staging = bytearray()

    def stage(data: bytes) -> int:
        offset = len(staging)
        staging.extend(data)
        return offset

    owned_view: Dict[int, int] = {}
    for view_index, view in enumerate(views):
        owners = image_views.get(view_index, [])
        if len(owners) == 1 and view_index not in shared_with_accessors:
            image_index = owners[0]
            data = document.images[image_index].data
            owned_view[image_index] = view_index
            view.pop("byteStride", None)
            view.pop("target", None)
        else:
            data = document.buffer_view_bytes(view_index)
        view["buffer"] = 0
        view["byteOffset"] = stage(data)
        view["byteLength"] = len(data)

    for entry in document.images:
        image = images[entry.index]
        if entry.index in owned_view:
            view_index = owned_view[entry.index]
        else:
            view_index = len(views)
            views.append({
                "buffer": 0,
                "byteOffset": stage(entry.data),
                "byteLength": len(entry.data),
            })
            logger.debug("image %d moved to new bufferView %d", entry.index, view_index)
        image.pop("uri", None)
        image["bufferView"] = view_index
        if entry.mime_type:
            image["mimeType"] = entry.mime_type

    if views:
        payload["bufferViews"] = views
        payload["buffers"] = [{"byteLength": len(staging)}]
    else:
        payload.pop("buffers", None)
    return save_glb(payload, bytes(staging))
