"""
Texture Compression for glTF images.

Provides:
- The Compressor interface the rewriter depends on
- ExternalToolCompressor (astcenc + ktx create)
- CachingCompressor for reusing earlier results
"""

from squisher.texture.cache import CachingCompressor
from squisher.texture.compressor import Compressor, ExternalToolCompressor
from squisher.texture.ktx2 import Ktx2Header, is_ktx2, read_ktx2_header

__all__ = [
    "CachingCompressor",
    "Compressor",
    "ExternalToolCompressor",
    "Ktx2Header",
    "is_ktx2",
    "read_ktx2_header",
]
