#!/usr/bin/env python3
"""
squisher - compress the textures of a glTF/GLB asset into KTX2.

Usage:
  squisher input.glb output.glb
  squisher scene.gltf scene.glb --format rgba8 --jobs 4
  squisher input.glb output.glb --astcenc /opt/arm/astcenc --ktx /opt/ktx/bin/ktx
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from squisher import __version__
from squisher.config import SquishConfig
from squisher.config.constants import TextureFormat
from squisher.error_handling import (
    EXIT_FAILURE,
    EXIT_OK,
    ExternalToolError,
    SquishError,
)
from squisher.logging_config import init_logging
from squisher.rewriter import squish
from squisher.utils.atomic_write import write_json_atomic

logger = logging.getLogger("squisher")


def _texture_format(value: str) -> TextureFormat:
    try:
        return TextureFormat.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="squisher",
        description="Compress the textures of a glTF/GLB asset into KTX2 and write a new GLB.",
    )
    parser.add_argument("input", type=Path, help="The .gltf or .glb file to process")
    parser.add_argument("output", type=Path, help="Where to write the squished .glb")
    parser.add_argument(
        "--format",
        dest="texture_format",
        type=_texture_format,
        default=None,
        metavar="{astc,rgba8}",
        help="Texture format to produce: 'astc' (default) or 'rgba8' ('raw' is an alias)",
    )
    parser.add_argument("--astcenc", dest="astcenc_path", default=None, help="Path or name of the astcenc binary")
    parser.add_argument("--ktx", dest="ktx_path", default=None, help="Path or name of the KTX-Software ktx binary")
    parser.add_argument("--timeout", dest="tool_timeout", type=float, default=None,
                        help="Seconds to allow each external tool call")
    parser.add_argument("--jobs", "-j", type=int, default=None, help="Images to compress in parallel")
    parser.add_argument("--max-size", type=int, default=None, help="Downscale images larger than this (pixels)")
    parser.add_argument("--no-mipmaps", dest="mipmaps", action="store_const", const=False, default=None,
                        help="Store only the base level")
    parser.add_argument("--skip-unsupported", action="store_const", const=True, default=None,
                        help="Keep non-PNG/JPEG images as they are instead of failing")
    parser.add_argument("--no-cache", dest="use_cache", action="store_const", const=False, default=None,
                        help="Disable the image cache, forcing all images to be reprocessed")
    parser.add_argument("--cache-dir", type=Path, default=None, help="Directory for cached KTX2 results")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with squisher settings")
    parser.add_argument("--report", type=Path, default=None, help="Write a JSON summary of the run here")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enables more verbose logging")
    parser.add_argument("--json-logs", action="store_const", const=True, default=None,
                        help="Emit structured JSON log lines")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def resolve_config(args: argparse.Namespace) -> SquishConfig:
    """Defaults, then config file, then environment, then CLI flags."""
    config = SquishConfig()
    if args.config is not None:
        config = SquishConfig.from_file(args.config, base=config)
    config = SquishConfig.from_env(base=config)
    return config.merged(
        texture_format=args.texture_format,
        astcenc_path=args.astcenc_path,
        ktx_path=args.ktx_path,
        tool_timeout=args.tool_timeout,
        jobs=args.jobs,
        max_size=args.max_size,
        mipmaps=args.mipmaps,
        skip_unsupported=args.skip_unsupported,
        use_cache=args.use_cache,
        cache_dir=args.cache_dir,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    init_logging(
        level=logging.DEBUG if args.verbose else None,
        json_enabled=args.json_logs,
    )

    try:
        config = resolve_config(args)
        report = squish(args.input, args.output, config)
        if args.report is not None:
            write_json_atomic(args.report, report.to_dict())
    except SquishError as exc:
        logger.error("Fatal error: %s", exc, extra={"squish_error": exc})
        if isinstance(exc, ExternalToolError) and exc.stderr:
            logger.error("%s stderr:\n%s", exc.tool, exc.stderr)
        return exc.exit_code
    except Exception:
        logger.exception("Unexpected failure")
        return EXIT_FAILURE

    logger.info(
        "%d images compressed, %d skipped, output %.1fKB",
        len(report.compressed),
        len(report.images) - len(report.compressed),
        report.output_size / 1024,
    )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
