"""
Asset Document: a parsed glTF/GLB asset with every buffer and image resolved.

Uses pygltflib for the typed view of the glTF JSON (materials, textures,
images, buffer views) and keeps the raw JSON mapping alongside it so the
writer can re-emit everything it does not touch verbatim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from pygltflib import DATA_URI_HEADER, GLTF2

from squisher.config.constants import (
    MIME_JPEG,
    MIME_KTX2,
    MIME_PNG,
    SUPPORTED_SOURCE_MIME_TYPES,
    TextureType,
)
from squisher.error_handling import AssetIOError, FormatError

from .glb import is_glb, load_glb, load_gltf_json

logger = logging.getLogger(__name__)


_MAGIC_MIME_TYPES: Tuple[Tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", MIME_PNG),
    (b"\xff\xd8\xff", MIME_JPEG),
    (b"\xabKTX 20\xbb\r\n\x1a\n", MIME_KTX2),
    (b"RIFF", "image/webp"),
)

_MIME_ALIASES = {"image/jpg": MIME_JPEG}


def sniff_mime_type(data: bytes) -> Optional[str]:
    """Guess an image MIME type from its leading bytes."""
    for magic, mime_type in _MAGIC_MIME_TYPES:
        if data.startswith(magic):
            if mime_type == "image/webp" and data[8:12] != b"WEBP":
                continue
            return mime_type
    return None


@dataclass
class TextureUsage:
    """First material slot found referencing an image."""
    texture_type: TextureType
    material_index: Optional[int] = None

    @property
    def slot(self) -> str:
        return self.texture_type.value


@dataclass
class ImageEntry:
    """One ``images[]`` element with its resolved payload."""
    index: int
    mime_type: Optional[str]
    data: bytes
    uri: Optional[str] = None
    buffer_view: Optional[int] = None
    name: Optional[str] = None
    usage: Optional[TextureUsage] = None

    @property
    def is_supported_source(self) -> bool:
        return self.mime_type in SUPPORTED_SOURCE_MIME_TYPES

    @property
    def texture_type(self) -> TextureType:
        return self.usage.texture_type if self.usage else TextureType.BASE_COLOR

    @property
    def material_index(self) -> Optional[int]:
        return self.usage.material_index if self.usage else None

    def describe(self) -> str:
        label = f"image {self.index}"
        if self.name:
            label += f" '{self.name}'"
        if self.usage is not None:
            if self.usage.material_index is not None:
                label += f" (material {self.usage.material_index}, {self.usage.slot})"
            else:
                label += f" ({self.usage.slot})"
        return label


@dataclass
class AssetDocument:
    """In-memory glTF asset ready for image replacement."""
    gltf: GLTF2
    json: Dict[str, Any]
    buffers: List[bytes]
    images: List[ImageEntry] = field(default_factory=list)
    source_path: Optional[Path] = None

    def buffer_view_bytes(self, view_index: int) -> bytes:
        views = self.json.get("bufferViews") or []
        if not 0 <= view_index < len(views):
            raise FormatError(f"bufferView {view_index} out of range", file_path=self.source_path)
        view = views[view_index]
        buffer_index = view.get("buffer", 0)
        if not 0 <= buffer_index < len(self.buffers):
            raise FormatError(
                f"bufferView {view_index} references missing buffer {buffer_index}",
                file_path=self.source_path,
            )
        start = view.get("byteOffset", 0) or 0
        length = view.get("byteLength", 0) or 0
        buffer = self.buffers[buffer_index]
        if start < 0 or length < 0 or start + length > len(buffer):
            raise FormatError(
                f"bufferView {view_index} range [{start}, {start + length}) exceeds "
                f"buffer {buffer_index} of {len(buffer)} bytes",
                file_path=self.source_path,
            )
        return buffer[start:start + length]


def load_asset(path: Path) -> AssetDocument:
    """Read a ``.gltf`` or ``.glb`` file into an :class:`AssetDocument`."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise AssetIOError(
            f"Unable to read {path}: {exc.strerror or exc}",
            file_path=path,
            cause=exc,
        ) from exc
    return parse_asset(data, path)


def parse_asset(data: bytes, path: Optional[Path] = None) -> AssetDocument:
    """Parse GLB or glTF JSON bytes; external resources resolve against ``path``."""
    source = str(path) if path is not None else None
    if is_glb(data):
        gltf = load_glb(data, source)
    elif path is not None and path.suffix.lower() == ".glb":
        raise FormatError("File has a .glb extension but no GLB header", file_path=source)
    else:
        gltf = load_gltf_json(data, source)

    payload = gltf.source_json
    asset = payload.get("asset")
    if not isinstance(asset, dict) or not str(asset.get("version", "")).startswith("2"):
        raise FormatError("Missing or unsupported glTF asset version (need 2.x)", file_path=source)

    base_dir = path.parent if path is not None else Path.cwd()
    buffers = _resolve_buffers(payload, gltf.binary_blob(), base_dir, source)
    document = AssetDocument(gltf=gltf, json=payload, buffers=buffers, source_path=path)
    usages = _collect_texture_usages(gltf, source)
    document.images = _resolve_images(document, usages, base_dir, source)
    logger.debug(
        "Parsed %s: %d buffers, %d images, %d materials",
        source or "<bytes>",
        len(buffers),
        len(document.images),
        len(gltf.materials),
    )
    return document


def _read_uri(uri: str, base_dir: Path, source: Optional[str], what: str) -> bytes:
    if uri.startswith("data:"):
        header, sep, encoded = uri.partition(",")
        if not sep or not header.endswith(";base64"):
            raise FormatError(f"{what} has a non-base64 data URI", file_path=source)
        # decode_data_uri only splits on the octet-stream header.
        try:
            return GLTF2.decode_data_uri(DATA_URI_HEADER + encoded)
        except ValueError as exc:
            raise FormatError(f"{what} has an invalid base64 data URI", file_path=source, cause=exc) from exc

    parsed = urlparse(uri)
    # Single-letter schemes are Windows drive letters.
    if parsed.scheme and len(parsed.scheme) > 1 and parsed.scheme != "file":
        raise FormatError(f"{what} uses unsupported URI scheme {parsed.scheme!r}", file_path=source)

    relative = unquote(parsed.path if parsed.scheme == "file" else uri)
    resource = base_dir / relative
    if not resource.is_file():
        raise FormatError(
            f"{what} references missing file {relative!r}",
            file_path=source,
        )
    try:
        return resource.read_bytes()
    except OSError as exc:
        raise AssetIOError(
            f"Unable to read {resource}: {exc.strerror or exc}",
            file_path=resource,
            cause=exc,
        ) from exc


def _resolve_buffers(
    payload: Dict[str, Any],
    glb_bin: Optional[bytes],
    base_dir: Path,
    source: Optional[str],
) -> List[bytes]:
    buffers: List[bytes] = []
    for index, buffer in enumerate(payload.get("buffers") or []):
        if not isinstance(buffer, dict):
            raise FormatError(f"buffer {index} is not an object", file_path=source)
        uri = buffer.get("uri")
        if uri is None:
            if index != 0 or glb_bin is None:
                raise FormatError(
                    f"buffer {index} has no uri and there is no GLB BIN chunk for it",
                    file_path=source,
                )
            data = glb_bin
        else:
            data = _read_uri(uri, base_dir, source, f"buffer {index}")

        declared = buffer.get("byteLength", 0)
        if len(data) < declared:
            raise FormatError(
                f"buffer {index} declares {declared} bytes but only {len(data)} are available",
                file_path=source,
            )
        buffers.append(bytes(data))
    return buffers


def _collect_texture_usages(gltf: GLTF2, source: Optional[str]) -> Dict[int, TextureUsage]:
    """Map image index to the first material slot that samples it."""
    usages: Dict[int, TextureUsage] = {}

    def record(texture_info: Any, texture_type: TextureType, material_index: int) -> None:
        if texture_info is None or texture_info.index is None:
            return
        texture_index = texture_info.index
        if not 0 <= texture_index < len(gltf.textures):
            raise FormatError(
                f"material {material_index} references missing texture {texture_index}",
                file_path=source,
            )
        image_index = gltf.textures[texture_index].source
        if image_index is None:
            return
        if not 0 <= image_index < len(gltf.images):
            raise FormatError(
                f"texture {texture_index} references missing image {image_index}",
                file_path=source,
            )
        existing = usages.get(image_index)
        if existing is None:
            usages[image_index] = TextureUsage(texture_type, material_index)
        elif existing.texture_type is not texture_type:
            logger.debug(
                "image %d used as both %s and %s; encoding as %s",
                image_index,
                existing.slot,
                texture_type.value,
                existing.slot,
            )

    for material_index, material in enumerate(gltf.materials):
        pbr = material.pbrMetallicRoughness
        if pbr is not None:
            record(pbr.baseColorTexture, TextureType.BASE_COLOR, material_index)
            record(pbr.metallicRoughnessTexture, TextureType.METALLIC_ROUGHNESS, material_index)
        record(material.normalTexture, TextureType.NORMAL, material_index)
        record(material.emissiveTexture, TextureType.EMISSIVE, material_index)
        record(material.occlusionTexture, TextureType.OCCLUSION, material_index)
    return usages


def _resolve_images(
    document: AssetDocument,
    usages: Dict[int, TextureUsage],
    base_dir: Path,
    source: Optional[str],
) -> List[ImageEntry]:
    entries: List[ImageEntry] = []
    for index, image in enumerate(document.json.get("images") or []):
        if not isinstance(image, dict):
            raise FormatError(f"image {index} is not an object", file_path=source)
        buffer_view = image.get("bufferView")
        uri = image.get("uri")
        if buffer_view is not None:
            data = document.buffer_view_bytes(buffer_view)
        elif uri is not None:
            data = _read_uri(uri, base_dir, source, f"image {index}")
        else:
            raise FormatError(f"image {index} has neither bufferView nor uri", file_path=source)

        declared = image.get("mimeType")
        mime_type = _MIME_ALIASES.get(declared, declared) if declared else sniff_mime_type(data)
        entries.append(
            ImageEntry(
                index=index,
                mime_type=mime_type,
                data=data,
                uri=uri,
                buffer_view=buffer_view,
                name=image.get("name"),
                usage=usages.get(index),
            )
        )
    return entries
