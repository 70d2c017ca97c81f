"""
glTF / GLB container handling.

Provides:
- glTF/GLB decoding and GLB encoding through pygltflib
- Asset Document loading with buffer and image resolution
- GLB serialization after image replacement
"""

from squisher.gltf.document import (
    AssetDocument,
    ImageEntry,
    TextureUsage,
    load_asset,
    parse_asset,
    sniff_mime_type,
)
from squisher.gltf.glb import SourceGLTF2, load_glb, load_gltf_json, save_glb
from squisher.gltf.writer import build_glb

__all__ = [
    "AssetDocument",
    "ImageEntry",
    "SourceGLTF2",
    "TextureUsage",
    "build_glb",
    "load_asset",
    "load_glb",
    "load_gltf_json",
    "parse_asset",
    "save_glb",
    "sniff_mime_type",
]
