# astc.py
#
# Reader for the .astc files astcenc writes: a 16-byte header followed by
# the raw 16-byte blocks in row-major order. The packager wants the blocks
# alone, so the header is validated and stripped here.

from __future__ import annotations

from dataclasses import dataclass

ASTC_MAGIC = bytes([0x13, 0xAB, 0xA1, 0x5C])
ASTC_HEADER_SIZE = 16
ASTC_BLOCK_BYTES = 16


@dataclass(frozen=True)
class AstcImage:
    block_width: int
    block_height: int
    width: int
    height: int
    blocks: bytes


def _read_24bit_le(data: bytes, offset: int) -> int:
    return data[offset] | (data[offset + 1] << 8) | (data[offset + 2] << 16)


def expected_block_bytes(width: int, height: int, block_width: int, block_height: int) -> int:
    blocks_x = (width + block_width - 1) // block_width
    blocks_y = (height + block_height - 1) // block_height
    return blocks_x * blocks_y * ASTC_BLOCK_BYTES


def read_astc(data: bytes) -> AstcImage:
    """
    Parse an .astc file.

    Raises:
        ValueError: if the magic, dimensions or payload size are wrong.
    """
    if len(data) < ASTC_HEADER_SIZE:
        raise ValueError(f"ASTC file too small ({len(data)} bytes)")
    if data[:4] != ASTC_MAGIC:
        raise ValueError(f"bad ASTC magic {data[:4].hex()}")

    block_width, block_height, block_depth = data[4], data[5], data[6]
    if not (4 <= block_width <= 12 and 4 <= block_height <= 12):
        raise ValueError(f"ASTC block size {block_width}x{block_height} out of range (4-12)")
    if block_depth != 1:
        raise ValueError("3D ASTC blocks are not supported")

    width = _read_24bit_le(data, 7)
    height = _read_24bit_le(data, 10)
    depth = _read_24bit_le(data, 13)
    if depth != 1:
        raise ValueError(f"ASTC depth {depth} is not supported")

    blocks = data[ASTC_HEADER_SIZE:]
    expected = expected_block_bytes(width, height, block_width, block_height)
    if len(blocks) != expected:
        raise ValueError(
            f"ASTC block payload has {len(blocks)} bytes, expected {expected} "
            f"for {width}x{height} at {block_width}x{block_height}"
        )
    return AstcImage(block_width, block_height, width, height, blocks)
