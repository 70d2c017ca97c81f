"""
Container Rewriter.

Reads a glTF/GLB asset, compresses every PNG/JPEG image into KTX2 through a
:class:`~squisher.texture.Compressor`, and writes one new GLB file. Images
are independent, so they may be compressed on a thread pool; the document
is only reassembled once every replacement has finished, and the first
failure aborts the whole run without touching the destination.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from squisher.config import SquishConfig
from squisher.config.constants import MIME_KTX2, TextureFormat
from squisher.error_handling import SquishError, UnsupportedImageFormat
from squisher.gltf import AssetDocument, ImageEntry, build_glb, load_asset
from squisher.texture import CachingCompressor, Compressor, ExternalToolCompressor
from squisher.utils.atomic_write import write_bytes_atomic

logger = logging.getLogger(__name__)


@dataclass
class ImageResult:
    """Outcome for one image of the asset."""
    index: int
    texture_type: str
    material_index: Optional[int]
    source_mime_type: Optional[str]
    original_size: int
    compressed_size: int
    skipped: bool = False
    reason: Optional[str] = None

    @property
    def compression_ratio(self) -> float:
        return self.original_size / max(1, self.compressed_size)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "texture_type": self.texture_type,
            "material_index": self.material_index,
            "source_mime_type": self.source_mime_type,
            "original_size": self.original_size,
            "compressed_size": self.compressed_size,
            "compression_ratio": self.compression_ratio,
            "skipped": self.skipped,
            "reason": self.reason,
        }


@dataclass
class SquishReport:
    """Summary of a completed rewrite."""
    input_path: Path
    output_path: Path
    texture_format: TextureFormat
    output_size: int = 0
    images: List[ImageResult] = field(default_factory=list)

    @property
    def compressed(self) -> List[ImageResult]:
        return [r for r in self.images if not r.skipped]

    def to_dict(self) -> Dict[str, Any]:
        total_original = sum(r.original_size for r in self.compressed)
        total_compressed = sum(r.compressed_size for r in self.compressed)
        return {
            "input": str(self.input_path),
            "output": str(self.output_path),
            "texture_format": self.texture_format.value,
            "output_size": self.output_size,
            "total_images": len(self.images),
            "compressed": len(self.compressed),
            "skipped": len(self.images) - len(self.compressed),
            "total_original_size_mb": total_original / (1024 * 1024),
            "total_compressed_size_mb": total_compressed / (1024 * 1024),
            "images": [r.to_dict() for r in self.images],
        }


def build_compressor(config: SquishConfig) -> Compressor:
    """The production compressor stack for ``config``."""
    compressor: Compressor = ExternalToolCompressor(config)
    if config.use_cache:
        compressor = CachingCompressor(compressor, config)
    return compressor


class ContainerRewriter:
    """
    Rewrites the textures of one asset.

    Usage:
        rewriter = ContainerRewriter(SquishConfig(texture_format=TextureFormat.ASTC))
        report = rewriter.rewrite(Path("cube.glb"), Path("cube_out.glb"))
    """

    def __init__(self, config: SquishConfig, compressor: Optional[Compressor] = None):
        self.config = config
        self.compressor = compressor or build_compressor(config)

    def rewrite(self, input_path: Path, output_path: Path) -> SquishReport:
        input_path = Path(input_path)
        output_path = Path(output_path)
        texture_format = self.config.texture_format

        logger.info("Squishing %s", input_path, extra={"asset": str(input_path)})
        document = load_asset(input_path)
        report = SquishReport(input_path, output_path, texture_format)

        pending = self._select_images(document, report)
        self.compressor.check_tools(texture_format)

        replacements = self._compress_all(document, pending, texture_format)

        for entry in pending:
            payload = replacements[entry.index]
            report.images.append(
                ImageResult(
                    index=entry.index,
                    texture_type=entry.texture_type.value,
                    material_index=entry.material_index,
                    source_mime_type=entry.mime_type,
                    original_size=len(entry.data),
                    compressed_size=len(payload),
                )
            )
            entry.data = payload
            entry.mime_type = MIME_KTX2
        report.images.sort(key=lambda r: r.index)

        glb = build_glb(document)
        write_bytes_atomic(output_path, glb)
        report.output_size = len(glb)

        logger.info("Squished file: %s! Enjoy", output_path, extra={"asset": str(input_path)})
        return report

    def _select_images(self, document: AssetDocument, report: SquishReport) -> List[ImageEntry]:
        """Images to compress; unsupported ones fail the run or are skipped."""
        pending: List[ImageEntry] = []
        for entry in document.images:
            if entry.is_supported_source:
                pending.append(entry)
                continue

            reason = f"unsupported image MIME type {entry.mime_type or 'unknown'}"
            # An embedded image needs a mimeType, so unknown types cannot be kept either.
            if not self.config.skip_unsupported or entry.mime_type is None:
                detail = "only PNG and JPEG can be compressed"
                if self.config.skip_unsupported:
                    detail = "an image without a MIME type cannot be embedded in a GLB"
                raise UnsupportedImageFormat(
                    f"{entry.describe()} has {reason}; {detail}",
                    mime_type=entry.mime_type,
                    image_index=entry.index,
                ).with_context(
                    input_path=str(document.source_path) if document.source_path else None,
                    material_index=entry.material_index,
                    texture_slot=entry.usage.slot if entry.usage else None,
                )

            logger.warning("Skipping %s: %s", entry.describe(), reason, extra={"image_index": entry.index})
            report.images.append(
                ImageResult(
                    index=entry.index,
                    texture_type=entry.texture_type.value,
                    material_index=entry.material_index,
                    source_mime_type=entry.mime_type,
                    original_size=len(entry.data),
                    compressed_size=len(entry.data),
                    skipped=True,
                    reason=reason,
                )
            )
        return pending

    def _compress_one(
        self,
        document: AssetDocument,
        entry: ImageEntry,
        texture_format: TextureFormat,
    ) -> bytes:
        logger.info("Compressing %s...", entry.describe(), extra={"image_index": entry.index})
        try:
            return self.compressor.compress(entry.data, texture_format, entry.texture_type)
        except SquishError as exc:
            raise exc.with_context(
                input_path=str(document.source_path) if document.source_path else None,
                image_index=entry.index,
                material_index=entry.material_index,
                texture_slot=entry.usage.slot if entry.usage else None,
            )

    def _compress_all(
        self,
        document: AssetDocument,
        pending: List[ImageEntry],
        texture_format: TextureFormat,
    ) -> Dict[int, bytes]:
        replacements: Dict[int, bytes] = {}
        workers = min(self.config.jobs, len(pending))
        if workers <= 1:
            for entry in pending:
                replacements[entry.index] = self._compress_one(document, entry, texture_format)
            return replacements

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="squisher")
        try:
            futures = {
                executor.submit(self._compress_one, document, entry, texture_format): entry
                for entry in pending
            }
            for future in as_completed(futures):
                replacements[futures[future].index] = future.result()
        except BaseException:
            # Fail fast: drop queued images, let running tool calls finish.
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return replacements


def squish(
    input_path: Path,
    output_path: Path,
    config: Optional[SquishConfig] = None,
    compressor: Optional[Compressor] = None,
) -> SquishReport:
    """Rewrite ``input_path`` into a GLB with KTX2 textures at ``output_path``."""
    return ContainerRewriter(config or SquishConfig(), compressor).rewrite(input_path, output_path)
