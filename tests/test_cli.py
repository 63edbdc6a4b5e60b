"""Tests for the pixeldrift command-line interface."""

import json
import os

import numpy as np
import pytest
from PIL import Image

import pixeldrift
from pixeldrift import main, _parse_param_value, _parse_params, _parse_layers


@pytest.fixture
def image_file(tmp_path, block_image):
    path = tmp_path / "blocks.png"
    Image.fromarray(block_image).save(path)
    return str(path)


class TestParsing:
    @pytest.mark.parametrize("raw,value", [
        ("3", 3), ("0.5", 0.5), ("1e-2", 0.01), ("vortex", "vortex"), ("-4", -4),
    ])
    def test_values(self, raw, value):
        assert _parse_param_value(raw) == value

    @pytest.mark.parametrize("raw", ["nan", "inf", "-Infinity"])
    def test_non_finite_rejected(self, raw):
        with pytest.raises(ValueError):
            _parse_param_value(raw)

    def test_pairs(self):
        assert _parse_params(["movement_speed=0.8", "flowFieldType=wave"]) == {
            "movement_speed": 0.8, "flowFieldType": "wave",
        }

    def test_bad_pair(self):
        with pytest.raises(ValueError, match="key=value"):
            _parse_params(["speed"])

    def test_layers(self):
        assert _parse_layers(["perlin:0.6", "vortex"]) == [("perlin", 0.6), ("vortex", 1.0)]


class TestListAndInfo:
    def test_list_fields(self, capsys):
        assert main(["list-fields"]) == 0
        out = capsys.readouterr().out
        assert "perlin" in out
        assert "Total: 16 flow fields" in out

    def test_list_fields_category(self, capsys):
        assert main(["list-fields", "--category", "agents", "--compact"]) == 0
        out = capsys.readouterr().out
        assert "swarm" in out
        assert "vortex" not in out
        assert "Total: 3 flow fields" in out

    def test_info(self, capsys):
        assert main(["info", "lidar"]) == 0
        out = capsys.readouterr().out
        assert "every 5 ticks" in out

    def test_info_suggests(self, capsys):
        assert main(["info", "hole"]) == 0
        assert "black_hole" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()


class TestRegions:
    def test_regions_outputs(self, image_file, tmp_path, capsys):
        overlay = tmp_path / "overlay.png"
        summary = tmp_path / "regions.json"
        code = main(["regions", image_file, "--overlay", str(overlay), "--json", str(summary),
                     "--seed", "1"])
        assert code == 0
        assert "4 regions" in capsys.readouterr().out
        assert overlay.exists()
        data = json.loads(summary.read_text())
        assert [r["size"] for r in data] == [100, 100, 100, 100]

    def test_missing_file(self, tmp_path, capsys):
        assert main(["regions", str(tmp_path / "missing.png")]) == 1
        assert "Error" in capsys.readouterr().err


class TestRender:
    def test_png_frames(self, image_file, tmp_path):
        out_dir = tmp_path / "frames"
        code = main(["render", image_file, "--out", str(out_dir), "--frames", "3", "--seed", "2"])
        assert code == 0
        names = sorted(os.listdir(out_dir))
        assert names == ["frame_00000.png", "frame_00001.png", "frame_00002.png"]
        with Image.open(out_dir / names[0]) as img:
            assert img.size == (20, 20)
            assert img.mode == "RGBA"

    def test_gif(self, image_file, tmp_path, capsys):
        gif = tmp_path / "drift.gif"
        code = main(["render", image_file, "--gif", str(gif), "--frames", "4", "--flow", "vortex",
                     "--param", "flow_strength=2", "movementSpeed=1.0", "--splat"])
        assert code == 0
        assert gif.exists()
        assert "flow=vortex" in capsys.readouterr().out

    def test_composite_with_overlays(self, image_file, tmp_path, capsys):
        base = ["render", image_file, "--frames", "2", "--seed", "1",
                "--composite", "perlin:0.6", "vortex:0.4"]
        assert main(base + ["--out", str(tmp_path / "plain")]) == 0
        assert main(base + ["--out", str(tmp_path / "debug"),
                            "--overlay", "field", "--overlay", "displacement"]) == 0
        assert "flow=perlin+vortex" in capsys.readouterr().out
        with Image.open(tmp_path / "plain" / "frame_00001.png") as img:
            plain = np.asarray(img)
        with Image.open(tmp_path / "debug" / "frame_00001.png") as img:
            debug = np.asarray(img)
        assert plain.shape == debug.shape
        assert not np.array_equal(plain, debug)

    def test_bad_composite(self, image_file, tmp_path, capsys):
        code = main(["render", image_file, "--gif", str(tmp_path / "x.gif"),
                     "--composite", "perlin", "time_displacement"])
        assert code == 1
        assert "resolution" in capsys.readouterr().err

    def test_requires_output(self, image_file, capsys):
        assert main(["render", image_file]) == 1
        assert "Nothing to write" in capsys.readouterr().err

    def test_bad_param(self, image_file, tmp_path, capsys):
        code = main(["render", image_file, "--gif", str(tmp_path / "x.gif"),
                     "--param", "movement_speed=99"])
        assert code == 1
        assert "Error" in capsys.readouterr().err

    def test_frame_limit(self, image_file, tmp_path):
        code = main(["render", image_file, "--gif", str(tmp_path / "x.gif"),
                     "--frames", str(pixeldrift.MAX_FRAMES + 1)])
        assert code == 1

    def test_rejects_non_image(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("not an image")
        assert main(["render", str(path), "--gif", str(tmp_path / "x.gif")]) == 1


def test_save_gif_empty(tmp_path):
    with pytest.raises(ValueError, match="No frames"):
        pixeldrift.save_gif([], str(tmp_path / "x.gif"), 30)


def test_load_rgba_roundtrip(image_file, block_image):
    assert np.array_equal(pixeldrift.load_rgba(image_file), block_image)
