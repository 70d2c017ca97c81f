"""Content-addressed cache of compressed textures."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional

from squisher.config import SquishConfig
from squisher.config.constants import TextureFormat, TextureType
from squisher.error_handling import AssetIOError
from squisher.utils.atomic_write import write_bytes_atomic

from .compressor import Compressor
from .ktx2 import is_ktx2

logger = logging.getLogger(__name__)


def cache_key(data: bytes, fingerprint: str) -> str:
    digest = hashlib.sha256()
    digest.update(fingerprint.encode("utf-8"))
    digest.update(b"\0")
    digest.update(data)
    return digest.hexdigest()


class CachingCompressor(Compressor):
    """Wraps another compressor and reuses earlier results for identical input.

    Keys cover the source bytes and every setting that changes the output,
    so a changed block size, max size or mipmap setting never hits a stale
    entry.
    """

    def __init__(self, inner: Compressor, config: SquishConfig, cache_dir: Optional[Path] = None):
        self.inner = inner
        self.config = config
        self.cache_dir = Path(cache_dir or config.cache_dir)
        self.hits = 0
        self.misses = 0

    def check_tools(self, texture_format: TextureFormat) -> None:
        self.inner.check_tools(texture_format)

    def _entry_path(self, data: bytes, texture_format: TextureFormat, texture_type: TextureType) -> Path:
        key = cache_key(data, self.config.cache_fingerprint(texture_format, texture_type))
        return self.cache_dir / f"{key}.ktx2"

    def compress(
        self,
        data: bytes,
        texture_format: TextureFormat,
        texture_type: TextureType = TextureType.BASE_COLOR,
    ) -> bytes:
        entry = self._entry_path(data, texture_format, texture_type)
        if entry.is_file():
            try:
                cached = entry.read_bytes()
            except OSError as exc:
                logger.warning("Ignoring unreadable cache entry %s: %s", entry.name, exc)
            else:
                if is_ktx2(cached):
                    self.hits += 1
                    logger.info("Returning pre-compressed file!")
                    return cached
                logger.warning("Ignoring corrupt cache entry %s", entry.name)

        self.misses += 1
        payload = self.inner.compress(data, texture_format, texture_type)
        try:
            write_bytes_atomic(entry, payload)
        except AssetIOError as exc:
            logger.warning("Could not store cache entry %s: %s", entry.name, exc.message)
        return payload
