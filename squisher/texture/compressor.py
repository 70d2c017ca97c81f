"""
Texture compression for glTF images.

The rewriter only sees the narrow :class:`Compressor` interface:
``compress(bytes, format, texture_type) -> KTX2 bytes``. The production
implementation shells out to two tools:

- ``astcenc`` (ARM ASTC encoder) turns each mip level into ASTC blocks
- ``ktx create`` (KTX-Software) packs the raw level payloads into KTX2

For ``rgba8`` the ASTC step is skipped and the raw RGBA8 pixels produced
by Pillow are packed directly.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Tuple

from PIL import Image

from squisher.config import SquishConfig
from squisher.config.constants import (
    VK_FORMATS,
    TextureFormat,
    TextureType,
    vk_format_name,
)
from squisher.error_handling import AssetIOError, ExternalToolError
from squisher.utils.tempfiles import scoped_workdir

from .astc import read_astc
from .images import prepare_levels
from .ktx2 import read_ktx2_header
from .tools import resolve_tool, run_tool

logger = logging.getLogger(__name__)


class Compressor(ABC):
    """Turns one source image into a KTX2 payload."""

    @abstractmethod
    def compress(
        self,
        data: bytes,
        texture_format: TextureFormat,
        texture_type: TextureType = TextureType.BASE_COLOR,
    ) -> bytes:
        """Return KTX2 bytes for PNG/JPEG ``data``."""

    def check_tools(self, texture_format: TextureFormat) -> None:
        """Raise ``ExternalToolNotFound`` if a needed tool is missing."""


class ExternalToolCompressor(Compressor):
    """
    Compressor that runs astcenc and ``ktx create``.

    Usage:
        compressor = ExternalToolCompressor(SquishConfig())
        ktx2_bytes = compressor.compress(png_bytes, TextureFormat.ASTC, TextureType.NORMAL)
    """

    def __init__(self, config: SquishConfig):
        self.config = config
        self._resolved: Dict[str, str] = {}

    def _tool(self, configured: str) -> str:
        if configured not in self._resolved:
            self._resolved[configured] = resolve_tool(configured)
        return self._resolved[configured]

    def check_tools(self, texture_format: TextureFormat) -> None:
        if texture_format is TextureFormat.ASTC:
            self._tool(self.config.astcenc_path)
        self._tool(self.config.ktx_path)

    def compress(
        self,
        data: bytes,
        texture_format: TextureFormat,
        texture_type: TextureType = TextureType.BASE_COLOR,
    ) -> bytes:
        levels = prepare_levels(data, self.config.max_size, self.config.mipmaps)
        base_width, base_height = levels[0].size
        format_name = vk_format_name(texture_format, texture_type)
        logger.debug(
            "Compressing %dx%d %s texture (%d levels) as %s",
            base_width,
            base_height,
            texture_type.value,
            len(levels),
            format_name,
        )

        with scoped_workdir(parent=self.config.temp_dir) as workdir:
            try:
                if texture_format is TextureFormat.ASTC:
                    raw_paths = self._encode_astc_levels(levels, texture_type, workdir)
                else:
                    raw_paths = self._write_rgba8_levels(levels, workdir)
                output_path = workdir / "texture.ktx2"
                self._package(raw_paths, format_name, base_width, base_height, output_path)
                payload = output_path.read_bytes()
            except OSError as exc:
                raise AssetIOError(
                    f"Temporary file handling failed: {exc.strerror or exc}",
                    file_path=getattr(exc, "filename", None),
                    cause=exc,
                ) from exc

        self._verify(payload, format_name, base_width, base_height, len(levels))
        return payload

    def _encode_astc_levels(
        self,
        levels: List[Image.Image],
        texture_type: TextureType,
        workdir: Path,
    ) -> List[Path]:
        astcenc = self._tool(self.config.astcenc_path)
        block_w, block_h = texture_type.astc_block_size
        raw_paths: List[Path] = []
        for level, img in enumerate(levels):
            png_path = workdir / f"level{level}.png"
            astc_path = workdir / f"level{level}.astc"
            img.save(png_path, "PNG")

            command = [
                astcenc,
                "-cs" if texture_type.is_srgb else "-cl",
                png_path,
                astc_path,
                f"{block_w}x{block_h}",
                f"-{self.config.astc_quality}",
                "-silent",
            ]
            if texture_type.is_normal_map:
                command.append("-normal")
            run_tool(command, self.config.tool_timeout)

            try:
                astc = read_astc(astc_path.read_bytes())
            except ValueError as exc:
                raise ExternalToolError(
                    f"astcenc produced an invalid .astc file for level {level}: {exc}",
                    tool="astcenc",
                    cause=exc,
                ) from exc
            if (astc.width, astc.height) != img.size:
                raise ExternalToolError(
                    f"astcenc output for level {level} is {astc.width}x{astc.height}, "
                    f"expected {img.size[0]}x{img.size[1]}",
                    tool="astcenc",
                )

            raw_path = workdir / f"level{level}.raw"
            raw_path.write_bytes(astc.blocks)
            raw_paths.append(raw_path)
        return raw_paths

    def _write_rgba8_levels(self, levels: List[Image.Image], workdir: Path) -> List[Path]:
        raw_paths: List[Path] = []
        for level, img in enumerate(levels):
            raw_path = workdir / f"level{level}.raw"
            raw_path.write_bytes(img.tobytes())
            raw_paths.append(raw_path)
        return raw_paths

    def _package(
        self,
        raw_paths: List[Path],
        format_name: str,
        width: int,
        height: int,
        output_path: Path,
    ) -> None:
        ktx = self._tool(self.config.ktx_path)
        command = [
            ktx,
            "create",
            "--format", format_name,
            "--raw",
            "--width", width,
            "--height", height,
            "--levels", len(raw_paths),
            *raw_paths,
            output_path,
        ]
        run_tool(command, self.config.tool_timeout)
        if not output_path.is_file():
            raise ExternalToolError(f"ktx did not write {output_path.name}", tool="ktx")

    @staticmethod
    def _verify(payload: bytes, format_name: str, width: int, height: int, levels: int) -> None:
        try:
            header = read_ktx2_header(payload)
        except ValueError as exc:
            raise ExternalToolError(f"ktx produced invalid KTX2 data: {exc}", tool="ktx", cause=exc) from exc

        expected: Tuple[int, int, int, int] = (VK_FORMATS[format_name], width, height, levels)
        actual = (header.vk_format, header.width, header.height, header.level_count)
        if actual != expected:
            raise ExternalToolError(
                f"ktx output (vkFormat, width, height, levels) = {actual}, expected {expected}",
                tool="ktx",
            )
