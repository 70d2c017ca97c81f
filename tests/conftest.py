"""
Shared pytest fixtures for squisher tests.

Assets are generated on the fly with Pillow and the builders in
``asset_builders``; the external tools are replaced by ``FakeTools`` so the
suite runs without astcenc or KTX-Software installed.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from asset_builders import FakeCompressor, FakeTools, build_asset, make_glb, png_bytes  # noqa: E402

from squisher.config import SquishConfig  # noqa: E402
from squisher.logging_config import JsonLogFormatter, PlainTextFormatter  # noqa: E402


# ============================================================================
# ENVIRONMENT FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep SQUISHER_* and logging variables from the host out of the tests."""
    for key in (
        "SQUISHER_ASTCENC",
        "SQUISHER_KTX",
        "SQUISHER_TOOL_TIMEOUT",
        "SQUISHER_MAX_SIZE",
        "SQUISHER_JOBS",
        "SQUISHER_MIPMAPS",
        "SQUISHER_SKIP_UNSUPPORTED",
        "SQUISHER_CACHE_DIR",
        "SQUISHER_ASTC_QUALITY",
        "SQUISHER_NO_CACHE",
        "SQUISHER_DEBUG",
        "LOG_JSON",
        "LOG_FORMAT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop the root handler init_logging installs and restore the root level."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, (JsonLogFormatter, PlainTextFormatter)):
            root.removeHandler(handler)
    root.setLevel(level)


# ============================================================================
# CONFIG AND COMPRESSOR FIXTURES
# ============================================================================

@pytest.fixture
def config(tmp_path: Path) -> SquishConfig:
    """Config with the cache pointed into the test's temp directory."""
    return SquishConfig(cache_dir=tmp_path / "cache", use_cache=False)


@pytest.fixture
def fake_compressor() -> FakeCompressor:
    return FakeCompressor()


@pytest.fixture
def fake_tools(monkeypatch: pytest.MonkeyPatch) -> FakeTools:
    """astcenc and ktx emulated in-process."""
    return FakeTools().install(monkeypatch)


# ============================================================================
# ASSET FIXTURES
# ============================================================================

@pytest.fixture
def write_glb(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a GLB built from ``build_asset`` arguments."""

    def _write(images, name: str = "asset.glb", **kwargs) -> Path:
        payload, blob = build_asset(images, **kwargs)
        path = tmp_path / name
        path.write_bytes(make_glb(payload, blob))
        return path

    return _write


@pytest.fixture
def cube_glb(write_glb) -> Path:
    """A cube-like asset with base color and normal textures in one material."""
    return write_glb(
        [("image/png", png_bytes(16, 16)), ("image/png", png_bytes(8, 8, (128, 128, 255, 255)))],
        name="cube.glb",
        materials=[{
            "name": "CubeMaterial",
            "pbrMetallicRoughness": {"baseColorTexture": {"index": 0}},
            "normalTexture": {"index": 1},
        }],
    )
