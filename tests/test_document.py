"""Tests for Asset Document loading and image resolution."""

from __future__ import annotations

import base64
import json
import warnings

import pytest

from asset_builders import WEBP_LIKE, build_asset, jpeg_bytes, make_glb, png_bytes
from squisher.config.constants import TextureType
from squisher.error_handling import AssetIOError, FormatError
from squisher.gltf import build_glb, load_asset, parse_asset, sniff_mime_type


def _data_uri(mime_type, data):
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


class TestSniffing:

    def test_known_signatures(self):
        assert sniff_mime_type(png_bytes()) == "image/png"
        assert sniff_mime_type(jpeg_bytes()) == "image/jpeg"
        assert sniff_mime_type(b"\xabKTX 20\xbb\r\n\x1a\n" + b"\x00" * 8) == "image/ktx2"
        assert sniff_mime_type(WEBP_LIKE) == "image/webp"

    def test_unknown(self):
        assert sniff_mime_type(b"RIFF\x00\x00\x00\x00WAVE") is None
        assert sniff_mime_type(b"") is None


class TestGlbAssets:

    def test_images_resolved_from_buffer_views(self, tmp_path):
        png, jpeg = png_bytes(), jpeg_bytes()
        payload, blob = build_asset([("image/png", png), ("image/jpeg", jpeg)])
        path = tmp_path / "two.glb"
        path.write_bytes(make_glb(payload, blob))

        document = load_asset(path)
        assert document.source_path == path
        assert [entry.data for entry in document.images] == [png, jpeg]
        assert [entry.mime_type for entry in document.images] == ["image/png", "image/jpeg"]
        assert document.images[0].buffer_view == 2
        assert len(document.gltf.images) == 2

    def test_missing_mime_type_is_sniffed(self):
        payload, blob = build_asset([(None, jpeg_bytes())])
        document = parse_asset(make_glb(payload, blob))
        assert document.images[0].mime_type == "image/jpeg"

    def test_jpg_alias_normalized(self):
        payload, blob = build_asset([("image/jpg", jpeg_bytes())])
        document = parse_asset(make_glb(payload, blob))
        assert document.images[0].mime_type == "image/jpeg"
        assert document.images[0].is_supported_source

    def test_webp_is_not_supported_source(self):
        payload, blob = build_asset([("image/webp", WEBP_LIKE)])
        document = parse_asset(make_glb(payload, blob))
        assert not document.images[0].is_supported_source

    def test_view_past_buffer_end(self):
        payload, blob = build_asset([("image/png", png_bytes())])
        payload["bufferViews"][2]["byteLength"] += 1000
        with pytest.raises(FormatError, match="exceeds buffer 0"):
            parse_asset(make_glb(payload, blob))

    def test_library_warnings_do_not_escape(self):
        payload, blob = build_asset([("image/png", png_bytes())], materials=[{"name": "bare"}])
        payload["extras"] = {"exporter": "tests"}
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            document = parse_asset(make_glb(payload, blob))
            build_glb(document)
        assert document.gltf.materials[0].name == "bare"

    def test_glb_extension_without_header(self, tmp_path):
        path = tmp_path / "fake.glb"
        path.write_bytes(b'{"asset":{"version":"2.0"}}')
        with pytest.raises(FormatError, match="no GLB header"):
            load_asset(path)

    def test_missing_file_is_io_error(self, tmp_path):
        with pytest.raises(AssetIOError) as excinfo:
            load_asset(tmp_path / "missing.glb")
        assert excinfo.value.exit_code == 7


class TestTextureUsage:

    def test_slots_map_to_texture_types(self):
        images = [("image/png", png_bytes(4, 4, (i * 40, 0, 0, 255))) for i in range(5)]
        materials = [{
            "pbrMetallicRoughness": {
                "baseColorTexture": {"index": 0},
                "metallicRoughnessTexture": {"index": 1},
            },
            "normalTexture": {"index": 2},
            "occlusionTexture": {"index": 3},
            "emissiveTexture": {"index": 4},
        }]
        payload, blob = build_asset(images, materials=materials)
        document = parse_asset(make_glb(payload, blob))
        assert [entry.texture_type for entry in document.images] == [
            TextureType.BASE_COLOR,
            TextureType.METALLIC_ROUGHNESS,
            TextureType.NORMAL,
            TextureType.OCCLUSION,
            TextureType.EMISSIVE,
        ]
        assert all(entry.material_index == 0 for entry in document.images)
        assert document.images[2].describe() == "image 2 (material 0, normal)"

    def test_first_material_slot_wins(self):
        materials = [
            {"normalTexture": {"index": 0}},
            {"pbrMetallicRoughness": {"baseColorTexture": {"index": 0}}},
        ]
        payload, blob = build_asset([("image/png", png_bytes())], materials=materials)
        document = parse_asset(make_glb(payload, blob))
        assert document.images[0].texture_type is TextureType.NORMAL
        assert document.images[0].material_index == 0

    def test_unreferenced_image_defaults_to_base_color(self):
        payload, blob = build_asset([("image/png", png_bytes())], materials=[], textures=[])
        document = parse_asset(make_glb(payload, blob))
        entry = document.images[0]
        assert entry.usage is None
        assert entry.texture_type is TextureType.BASE_COLOR
        assert entry.material_index is None
        assert entry.describe() == "image 0"

    def test_dangling_texture_index(self):
        materials = [{"pbrMetallicRoughness": {"baseColorTexture": {"index": 5}}}]
        payload, blob = build_asset([("image/png", png_bytes())], materials=materials)
        with pytest.raises(FormatError, match="missing texture 5"):
            parse_asset(make_glb(payload, blob))

    def test_dangling_image_index(self):
        payload, blob = build_asset([("image/png", png_bytes())], textures=[{"source": 3}])
        with pytest.raises(FormatError, match="missing image 3"):
            parse_asset(make_glb(payload, blob))


class TestJsonAssets:

    def _write_gltf(self, tmp_path, payload, name="scene.gltf"):
        path = tmp_path / name
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    def test_external_buffer_and_image_files(self, tmp_path):
        payload, blob = build_asset([("image/png", png_bytes())])
        (tmp_path / "scene.bin").write_bytes(blob)
        payload["buffers"][0]["uri"] = "scene.bin"
        external = png_bytes(4, 4)
        (tmp_path / "textures").mkdir()
        (tmp_path / "textures" / "extra.png").write_bytes(external)
        payload["images"].append({"uri": "textures/extra.png"})

        document = load_asset(self._write_gltf(tmp_path, payload))
        assert document.buffers[0] == blob
        assert document.images[1].data == external
        assert document.images[1].uri == "textures/extra.png"
        assert document.images[1].mime_type == "image/png"

    def test_data_uris(self, tmp_path):
        payload, blob = build_asset([])
        payload["buffers"][0]["uri"] = _data_uri("application/octet-stream", blob)
        png = png_bytes()
        payload["images"] = [{"uri": _data_uri("image/png", png), "mimeType": "image/png"}]

        document = load_asset(self._write_gltf(tmp_path, payload))
        assert document.buffers[0] == blob
        assert document.images[0].data == png

    def test_missing_external_file(self, tmp_path):
        payload, _ = build_asset([])
        payload["buffers"][0]["uri"] = "gone.bin"
        with pytest.raises(FormatError, match="missing file 'gone.bin'"):
            load_asset(self._write_gltf(tmp_path, payload))

    def test_remote_uri_rejected(self, tmp_path):
        payload, _ = build_asset([])
        payload["buffers"][0]["uri"] = "https://example.com/scene.bin"
        with pytest.raises(FormatError, match="unsupported URI scheme 'https'"):
            load_asset(self._write_gltf(tmp_path, payload))

    def test_buffer_without_uri_outside_glb(self, tmp_path):
        payload, _ = build_asset([])
        with pytest.raises(FormatError, match="no GLB BIN chunk"):
            load_asset(self._write_gltf(tmp_path, payload))

    def test_short_buffer(self, tmp_path):
        payload, blob = build_asset([])
        (tmp_path / "scene.bin").write_bytes(blob[:-4])
        payload["buffers"][0]["uri"] = "scene.bin"
        with pytest.raises(FormatError, match="declares"):
            load_asset(self._write_gltf(tmp_path, payload))

    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ("{not json", "Unable to parse glTF JSON"),
            ("[]", "root must be an object"),
            ('{"asset": {"version": "1.0"}}', "asset version"),
            ("{}", "asset version"),
        ],
    )
    def test_invalid_json_documents(self, tmp_path, text, message):
        path = tmp_path / "bad.gltf"
        path.write_text(text, encoding="utf-8")
        with pytest.raises(FormatError, match=message):
            load_asset(path)

    def test_image_without_source(self, tmp_path):
        payload, blob = build_asset([])
        (tmp_path / "scene.bin").write_bytes(blob)
        payload["buffers"][0]["uri"] = "scene.bin"
        payload["images"] = [{"name": "orphan"}]
        with pytest.raises(FormatError, match="neither bufferView nor uri"):
            load_asset(self._write_gltf(tmp_path, payload))
