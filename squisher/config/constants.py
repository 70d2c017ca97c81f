"""Shared constants for squisher."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple


DEFAULT_MAX_SIZE = 4096
DEFAULT_TOOL_TIMEOUT_S = 300.0
DEFAULT_ASTCENC = "astcenc"
DEFAULT_KTX = "ktx"
DEFAULT_ASTC_QUALITY = "thorough"
CACHE_DIR_NAME = "squisher-cache"

MIME_PNG = "image/png"
MIME_JPEG = "image/jpeg"
MIME_KTX2 = "image/ktx2"
SUPPORTED_SOURCE_MIME_TYPES = (MIME_PNG, MIME_JPEG)

ASTC_QUALITY_PRESETS = ("fastest", "fast", "medium", "thorough", "verythorough", "exhaustive")


class TextureFormat(str, Enum):
    """Output texture format selector."""
    ASTC = "astc"
    RGBA8 = "rgba8"

    @classmethod
    def parse(cls, value: str) -> "TextureFormat":
        normalized = str(value).strip().lower()
        if normalized == "raw":
            return cls.RGBA8
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"unknown texture format {value!r}, expected 'astc' or 'rgba8'"
            ) from None


class TextureType(str, Enum):
    """Which part of the glTF material model a texture feeds."""
    BASE_COLOR = "base_color"
    NORMAL = "normal"
    METALLIC_ROUGHNESS = "metallic_roughness"
    OCCLUSION = "occlusion"
    EMISSIVE = "emissive"

    @property
    def is_srgb(self) -> bool:
        return self in (TextureType.BASE_COLOR, TextureType.EMISSIVE)

    @property
    def is_normal_map(self) -> bool:
        return self is TextureType.NORMAL

    @property
    def astc_block_size(self) -> Tuple[int, int]:
        if self in (TextureType.BASE_COLOR, TextureType.EMISSIVE):
            return (6, 6)
        return (4, 4)


# VkFormat values as they appear in a KTX2 header, keyed by the names
# `ktx create --format` accepts.
VK_FORMATS: Dict[str, int] = {
    "R8G8B8A8_UNORM": 37,
    "R8G8B8A8_SRGB": 43,
    "ASTC_4x4_UNORM_BLOCK": 157,
    "ASTC_4x4_SRGB_BLOCK": 158,
    "ASTC_6x6_UNORM_BLOCK": 165,
    "ASTC_6x6_SRGB_BLOCK": 166,
    "ASTC_8x8_UNORM_BLOCK": 171,
    "ASTC_8x8_SRGB_BLOCK": 172,
}


def vk_format_name(texture_format: TextureFormat, texture_type: TextureType) -> str:
    """Name of the VkFormat the packager should declare for a texture."""
    suffix = "SRGB" if texture_type.is_srgb else "UNORM"
    if texture_format is TextureFormat.RGBA8:
        return f"R8G8B8A8_{suffix}"
    block_w, block_h = texture_type.astc_block_size
    return f"ASTC_{block_w}x{block_h}_{suffix}_BLOCK"
