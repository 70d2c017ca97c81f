"""Tests for the squisher command line."""

from __future__ import annotations

import json

import pytest

from asset_builders import WEBP_LIKE, parse_glb, png_bytes
from squisher import __version__
from squisher.cli import build_parser, main, resolve_config
from squisher.config.constants import TextureFormat


@pytest.fixture
def cache_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SQUISHER_CACHE_DIR", str(tmp_path / "cache"))


def test_success_writes_output_and_report(cube_glb, tmp_path, fake_tools, cache_env, capsys):
    output = tmp_path / "out.glb"
    report_path = tmp_path / "report.json"

    code = main([str(cube_glb), str(output), "--report", str(report_path)])

    assert code == 0
    out_json, _ = parse_glb(output.read_bytes())
    assert {image["mimeType"] for image in out_json["images"]} == {"image/ktx2"}
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["texture_format"] == "astc"
    assert report["compressed"] == 2
    assert [image["texture_type"] for image in report["images"]] == ["base_color", "normal"]
    assert "2 images compressed" in capsys.readouterr().err


def test_rgba8_with_explicit_tool_paths(cube_glb, tmp_path, fake_tools, cache_env):
    ktx = tmp_path / "bin" / "ktx"
    ktx.parent.mkdir()
    ktx.write_text("#!/bin/sh\n")
    ktx.chmod(0o755)

    code = main([str(cube_glb), str(tmp_path / "out.glb"), "--format", "raw", "--ktx", str(ktx), "--no-cache"])

    assert code == 0
    assert fake_tools.calls_for("astcenc") == []
    assert all(call[0] == str(ktx) for call in fake_tools.calls_for("ktx"))


@pytest.mark.parametrize(
    ("setup", "expected"),
    [
        ("missing_input", 7),
        ("malformed", 3),
        ("unsupported", 4),
        ("missing_tool", 5),
        ("tool_failure", 6),
    ],
)
def test_exit_codes(setup, expected, write_glb, cube_glb, tmp_path, fake_tools, cache_env, capsys):
    source = cube_glb
    if setup == "missing_input":
        source = tmp_path / "nothing.glb"
    elif setup == "malformed":
        source = tmp_path / "broken.glb"
        source.write_bytes(b"glTF\x02\x00\x00\x00\xff\x00\x00\x00")
    elif setup == "unsupported":
        source = write_glb([("image/webp", WEBP_LIKE)], name="webp.glb")
    elif setup == "missing_tool":
        fake_tools.available = {"ktx"}
    elif setup == "tool_failure":
        fake_tools.fail["astcenc"] = (3, "astcenc: codec failure")

    output = tmp_path / "out.glb"
    code = main([str(source), str(output), "--no-cache"])

    assert code == expected
    assert not output.exists()
    assert "Fatal error" in capsys.readouterr().err


def test_tool_stderr_is_logged(cube_glb, tmp_path, fake_tools, capsys):
    fake_tools.fail["astcenc"] = (1, "astcenc: unknown block size")
    code = main([str(cube_glb), str(tmp_path / "out.glb"), "--no-cache"])
    assert code == 6
    assert "astcenc: unknown block size" in capsys.readouterr().err


def test_skip_unsupported_flag(write_glb, tmp_path, fake_tools):
    source = write_glb([("image/png", png_bytes()), ("image/webp", WEBP_LIKE)])
    output = tmp_path / "out.glb"
    assert main([str(source), str(output), "--skip-unsupported", "--no-cache"]) == 0
    out_json, _ = parse_glb(output.read_bytes())
    assert [image["mimeType"] for image in out_json["images"]] == ["image/ktx2", "image/webp"]


def test_invalid_configuration_exits_with_usage_code(cube_glb, tmp_path, capsys):
    assert main([str(cube_glb), str(tmp_path / "out.glb"), "--jobs", "0"]) == 2
    assert "jobs must be >= 1" in capsys.readouterr().err


def test_mistyped_config_file_exits_with_usage_code(cube_glb, tmp_path, capsys):
    config_file = tmp_path / "squisher.yaml"
    config_file.write_text("jobs: four\n", encoding="utf-8")

    code = main([str(cube_glb), str(tmp_path / "out.glb"), "--config", str(config_file)])

    assert code == 2
    assert "jobs must be an integer" in capsys.readouterr().err
    assert not (tmp_path / "out.glb").exists()


def test_unknown_format_is_an_argparse_error(cube_glb, tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        main([str(cube_glb), str(tmp_path / "out.glb"), "--format", "bc7"])
    assert excinfo.value.code == 2


def test_version(capsys):
    with pytest.raises(SystemExit):
        main(["--version"])
    assert __version__ in capsys.readouterr().out


def test_json_logs(cube_glb, tmp_path, fake_tools, capsys):
    fake_tools.available = set()
    code = main([str(cube_glb), str(tmp_path / "out.glb"), "--json-logs", "--no-cache"])
    assert code == 5

    lines = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line.startswith("{")]
    fatal = [line for line in lines if line["message"].startswith("Fatal error")]
    assert fatal
    assert fatal[0]["squish_error"]["error_type"] == "ExternalToolNotFound"
    assert fatal[0]["error_category"] == "external_tool"


class TestResolveConfig:

    def test_cli_overrides_env_and_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "squisher.yaml"
        config_file.write_text("jobs: 2\nmax_size: 1024\ntexture_format: rgba8\n", encoding="utf-8")
        monkeypatch.setenv("SQUISHER_MAX_SIZE", "2048")
        monkeypatch.setenv("SQUISHER_JOBS", "3")

        args = build_parser().parse_args(
            ["in.glb", "out.glb", "--config", str(config_file), "--jobs", "8", "--no-mipmaps"]
        )
        config = resolve_config(args)

        assert config.jobs == 8
        assert config.max_size == 2048
        assert config.texture_format is TextureFormat.RGBA8
        assert config.mipmaps is False

    def test_flags_default_to_unset(self):
        args = build_parser().parse_args(["in.glb", "out.glb"])
        config = resolve_config(args)
        assert config.mipmaps is True
        assert config.use_cache is True
        assert config.texture_format is TextureFormat.ASTC
