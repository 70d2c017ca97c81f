"""
squisher
========
Rewrites the textures of glTF/GLB assets into GPU-ready KTX2 (ASTC or
RGBA8) by running astcenc and KTX-Software, then writes a single GLB.

Main entry points:
    - squish            : squisher.rewriter.squish
    - ContainerRewriter : squisher.rewriter.ContainerRewriter
    - SquishConfig      : squisher.config.SquishConfig
"""

__version__ = "0.3.0"

from .config import SquishConfig, TextureFormat, TextureType
from .rewriter import ContainerRewriter, SquishReport, squish

__all__ = [
    "ContainerRewriter",
    "SquishConfig",
    "SquishReport",
    "TextureFormat",
    "TextureType",
    "squish",
]
