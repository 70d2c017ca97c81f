"""Tests for the .astc and KTX2 header readers."""

from __future__ import annotations

import pytest

from asset_builders import astc_file, make_ktx2
from squisher.texture.astc import ASTC_HEADER_SIZE, expected_block_bytes, read_astc
from squisher.texture.ktx2 import is_ktx2, read_ktx2_header


class TestAstc:

    @pytest.mark.parametrize(
        ("size", "block", "expected"),
        [
            ((16, 16), (4, 4), 16 * 16),
            ((16, 16), (6, 6), 3 * 3 * 16),
            ((1, 1), (6, 6), 16),
            ((13, 7), (6, 6), 3 * 2 * 16),
        ],
    )
    def test_expected_block_bytes(self, size, block, expected):
        assert expected_block_bytes(*size, *block) == expected

    def test_read_strips_header(self):
        data = astc_file(6, 6, 20, 10)
        image = read_astc(data)
        assert (image.block_width, image.block_height) == (6, 6)
        assert (image.width, image.height) == (20, 10)
        assert image.blocks == data[ASTC_HEADER_SIZE:]

    def test_large_dimensions_use_24_bit_fields(self):
        image = read_astc(astc_file(4, 4, 70000 // 4 * 4, 4))
        assert image.width == 70000 // 4 * 4

    @pytest.mark.parametrize(
        ("data", "message"),
        [
            (b"\x13\xab", "too small"),
            (b"\x00" * 16, "bad ASTC magic"),
            (astc_file(6, 6, 8, 8)[:-1], "expected"),
            (astc_file(6, 6, 8, 8)[:4] + bytes([2, 2, 1]) + astc_file(6, 6, 8, 8)[7:], "out of range"),
        ],
    )
    def test_invalid(self, data, message):
        with pytest.raises(ValueError, match=message):
            read_astc(data)


class TestKtx2:

    def test_header_fields(self):
        data = make_ktx2(166, 64, 32, [b"\x00" * 32, b"\x00" * 16])
        assert is_ktx2(data)
        header = read_ktx2_header(data)
        assert header.vk_format == 166
        assert (header.width, header.height) == (64, 32)
        assert header.level_count == 2
        assert header.face_count == 1
        assert header.supercompression_scheme == 0
        assert [length for _, length, _ in header.levels] == [32, 16]

    def test_missing_identifier(self):
        assert not is_ktx2(b"\x89PNG")
        with pytest.raises(ValueError, match="identifier"):
            read_ktx2_header(b"\x89PNG" + b"\x00" * 100)

    def test_truncated_level_data(self):
        data = make_ktx2(37, 4, 4, [b"\x00" * 64])
        with pytest.raises(ValueError, match="past end"):
            read_ktx2_header(data[:-1])

    def test_truncated_header(self):
        data = make_ktx2(37, 4, 4, [b"\x00" * 64])
        with pytest.raises(ValueError, match="too small"):
            read_ktx2_header(data[:40])
