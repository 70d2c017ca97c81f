"""KTX2 header sniffing, enough to check what the packager produced."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import List, Tuple

KTX2_IDENTIFIER = b"\xabKTX 20\xbb\r\n\x1a\n"
# vkFormat, typeSize, pixelWidth, pixelHeight, pixelDepth, layerCount,
# faceCount, levelCount, supercompressionScheme
_HEADER = struct.Struct("<9I")
# dfdByteOffset, dfdByteLength, kvdByteOffset, kvdByteLength,
# sgdByteOffset, sgdByteLength
_INDEX = struct.Struct("<4I2Q")
_LEVEL = struct.Struct("<3Q")
HEADER_SIZE = len(KTX2_IDENTIFIER) + _HEADER.size + _INDEX.size


@dataclass(frozen=True)
class Ktx2Header:
    vk_format: int
    type_size: int
    width: int
    height: int
    depth: int
    layer_count: int
    face_count: int
    level_count: int
    supercompression_scheme: int
    levels: Tuple[Tuple[int, int, int], ...] = ()


def is_ktx2(data: bytes) -> bool:
    return data[:len(KTX2_IDENTIFIER)] == KTX2_IDENTIFIER


def read_ktx2_header(data: bytes) -> Ktx2Header:
    """Parse the fixed header and level index of a KTX2 file.

    Raises:
        ValueError: if the identifier is wrong or the level index points
            outside the file.
    """
    if not is_ktx2(data):
        raise ValueError("missing KTX2 identifier")
    if len(data) < HEADER_SIZE:
        raise ValueError(f"KTX2 data too small ({len(data)} bytes)")

    fields = _HEADER.unpack_from(data, len(KTX2_IDENTIFIER))
    level_count = fields[7]
    index_offset = len(KTX2_IDENTIFIER) + _HEADER.size + _INDEX.size
    stored_levels = max(1, level_count)
    if len(data) < index_offset + stored_levels * _LEVEL.size:
        raise ValueError("KTX2 level index is truncated")

    levels: List[Tuple[int, int, int]] = []
    for level in range(stored_levels):
        byte_offset, byte_length, uncompressed = _LEVEL.unpack_from(
            data, index_offset + level * _LEVEL.size
        )
        if byte_offset + byte_length > len(data):
            raise ValueError(f"KTX2 level {level} runs past end of data")
        levels.append((byte_offset, byte_length, uncompressed))

    return Ktx2Header(*fields, levels=tuple(levels))
