"""squisher Configuration Module.

Settings are layered: built-in defaults, then an optional YAML config file,
then ``SQUISHER_*`` environment variables, then explicit CLI flags.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from squisher.error_handling import ConfigurationError

from .constants import (
    ASTC_QUALITY_PRESETS,
    CACHE_DIR_NAME,
    DEFAULT_ASTC_QUALITY,
    DEFAULT_ASTCENC,
    DEFAULT_KTX,
    DEFAULT_MAX_SIZE,
    DEFAULT_TOOL_TIMEOUT_S,
    TextureFormat,
    TextureType,
)
from .env import parse_bool_env, parse_float_env, parse_int_env

logger = logging.getLogger(__name__)


def _default_cache_dir() -> Path:
    return Path(tempfile.gettempdir()) / CACHE_DIR_NAME


_FIELD_KINDS = {
    "astcenc_path": str,
    "ktx_path": str,
    "astc_quality": str,
    "tool_timeout": float,
    "max_size": int,
    "jobs": int,
    "mipmaps": bool,
    "skip_unsupported": bool,
    "use_cache": bool,
}


def _coerce_field(name: str, value: Any, kind: type) -> Any:
    """Accept ``value`` for ``name`` as ``kind``; strings parse like env vars."""
    if kind is bool:
        parsed = value if isinstance(value, bool) else (
            parse_bool_env(value) if isinstance(value, str) else None
        )
        if parsed is None:
            raise ConfigurationError(f"{name} must be a boolean (got {value!r})", config_key=name)
        return parsed
    if kind is str:
        if not isinstance(value, str):
            raise ConfigurationError(f"{name} must be a string (got {value!r})", config_key=name)
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ConfigurationError(f"{name} must be a number (got {value!r})", config_key=name)
    if kind is float:
        return float(value) if not isinstance(value, str) else _parsed(parse_float_env, value, name)
    if isinstance(value, float):
        if not value.is_integer():
            raise ConfigurationError(f"{name} must be an integer (got {value!r})", config_key=name)
        return int(value)
    return value if isinstance(value, int) else _parsed(parse_int_env, value, name)


def _parsed(parser, value: str, name: str) -> Any:
    try:
        return parser(value, name=name)
    except ValueError as exc:
        raise ConfigurationError(str(exc), config_key=name) from exc


@dataclass
class SquishConfig:
    """Everything a squish run needs besides the input and output paths."""
    texture_format: TextureFormat = TextureFormat.ASTC
    astcenc_path: str = DEFAULT_ASTCENC
    ktx_path: str = DEFAULT_KTX
    tool_timeout: float = DEFAULT_TOOL_TIMEOUT_S
    astc_quality: str = DEFAULT_ASTC_QUALITY
    max_size: int = DEFAULT_MAX_SIZE
    mipmaps: bool = True
    jobs: int = 1
    skip_unsupported: bool = False
    use_cache: bool = True
    cache_dir: Path = field(default_factory=_default_cache_dir)
    temp_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        if not isinstance(self.texture_format, TextureFormat):
            try:
                self.texture_format = TextureFormat.parse(self.texture_format)
            except ValueError as exc:
                raise ConfigurationError(str(exc), config_key="texture_format") from exc
        for name, kind in _FIELD_KINDS.items():
            setattr(self, name, _coerce_field(name, getattr(self, name), kind))
        for name in ("cache_dir", "temp_dir"):
            value = getattr(self, name)
            if value is None and name == "temp_dir":
                continue
            if not isinstance(value, (str, os.PathLike)):
                raise ConfigurationError(f"{name} must be a path (got {value!r})", config_key=name)
            setattr(self, name, Path(value))
        self.validate()

    def validate(self) -> None:
        if self.tool_timeout <= 0:
            raise ConfigurationError(
                f"tool_timeout must be > 0 (got {self.tool_timeout})",
                config_key="tool_timeout",
            )
        if self.max_size < 1:
            raise ConfigurationError(
                f"max_size must be >= 1 (got {self.max_size})",
                config_key="max_size",
            )
        if self.jobs < 1:
            raise ConfigurationError(
                f"jobs must be >= 1 (got {self.jobs})",
                config_key="jobs",
            )
        if self.astc_quality not in ASTC_QUALITY_PRESETS:
            raise ConfigurationError(
                f"astc_quality must be one of {', '.join(ASTC_QUALITY_PRESETS)} "
                f"(got {self.astc_quality!r})",
                config_key="astc_quality",
            )

    def merged(self, **overrides: Any) -> "SquishConfig":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(sorted(unknown))}",
                config_key=sorted(unknown)[0],
            )
        return replace(self, **changes)

    def cache_fingerprint(self, texture_format: TextureFormat, texture_type: TextureType) -> str:
        """Settings that change compressor output, folded into cache keys."""
        return (
            f"{texture_format.value}|{texture_type.value}|{self.max_size}|"
            f"{int(self.mipmaps)}|{self.astc_quality}"
        )

    @classmethod
    def from_file(cls, path: Path, base: Optional["SquishConfig"] = None) -> "SquishConfig":
        """Layer a YAML config file over ``base`` (or the defaults)."""
        path = Path(path)
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigurationError(f"Unable to read config file {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        # Allow either a flat mapping or one nested under a "squisher" key.
        if isinstance(payload.get("squisher"), dict):
            payload = payload["squisher"]

        logger.debug("Loaded config file %s with keys %s", path, sorted(payload))
        return (base or cls()).merged(**payload)

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        base: Optional["SquishConfig"] = None,
    ) -> "SquishConfig":
        """Layer ``SQUISHER_*`` environment variables over ``base``."""
        env = os.environ if env is None else env
        try:
            overrides: Dict[str, Any] = {
                "astcenc_path": env.get("SQUISHER_ASTCENC") or None,
                "ktx_path": env.get("SQUISHER_KTX") or None,
                "tool_timeout": parse_float_env(
                    env.get("SQUISHER_TOOL_TIMEOUT"), min_value=0.001, name="SQUISHER_TOOL_TIMEOUT"
                ),
                "max_size": parse_int_env(
                    env.get("SQUISHER_MAX_SIZE"), min_value=1, name="SQUISHER_MAX_SIZE"
                ),
                "jobs": parse_int_env(env.get("SQUISHER_JOBS"), min_value=1, name="SQUISHER_JOBS"),
                "mipmaps": parse_bool_env(env.get("SQUISHER_MIPMAPS")),
                "skip_unsupported": parse_bool_env(env.get("SQUISHER_SKIP_UNSUPPORTED")),
                "cache_dir": env.get("SQUISHER_CACHE_DIR") or None,
                "astc_quality": env.get("SQUISHER_ASTC_QUALITY") or None,
            }
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        no_cache = parse_bool_env(env.get("SQUISHER_NO_CACHE"))
        if no_cache is not None:
            overrides["use_cache"] = not no_cache

        return (base or cls()).merged(**overrides)


__all__ = [
    "SquishConfig",
    "TextureFormat",
    "TextureType",
]
