"""
Command-line interface tests.
"""

import numpy as np
import pytest
import yaml
from PIL import Image
from typer.testing import CliRunner

from photo3d.cli import app

runner = CliRunner()


@pytest.fixture
def image_files(tmp_path):
    """Color, depth and foreground PNGs of a small photo with a centred object."""
    height, width = 10, 12
    color = np.zeros((height, width, 3), dtype=np.uint8)
    color[..., 0] = np.linspace(0, 255, width, dtype=np.uint8)

    depth = np.full((height, width), 50, dtype=np.uint8)
    depth[3:7, 4:8] = 230

    foreground = np.zeros((height, width, 4), dtype=np.uint8)
    foreground[3:7, 4:8] = 255

    paths = []
    for name, data in (("color.png", color), ("depth.png", depth), ("foreground.png", foreground)):
        path = tmp_path / name
        Image.fromarray(data).save(path)
        paths.append(str(path))
    return paths


class TestCli:
    def test_init_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        result = runner.invoke(app, ["init-config", str(path), "--name", "garden"])

        assert result.exit_code == 0
        data = yaml.safe_load(path.read_text())
        assert data["name"] == "garden"
        assert data["settings"]["perform_simplification"] is True

    def test_generate(self, tmp_path, image_files):
        output = tmp_path / "scene.glb"
        textures = tmp_path / "textures"
        result = runner.invoke(app, [
            "generate", *image_files,
            "-o", str(output), "--texture-dir", str(textures),
        ])

        assert result.exit_code == 0, result.output
        assert output.exists()
        assert (textures / "photo_extended_background.png").exists()
        assert "Background" in result.output

    def test_generate_with_config(self, tmp_path, image_files):
        config = tmp_path / "config.yaml"
        runner.invoke(app, ["init-config", str(config), "-n", "small"])
        output = tmp_path / "scene.glb"

        result = runner.invoke(app, [
            "generate", *image_files, "-c", str(config),
            "-o", str(output), "--no-simplify", "--timing",
        ])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "small_extended_background.png").exists()
        assert "Timing Summary" in result.output
        assert "Slowest stage" in result.output
        assert "projection" in result.output

    def test_generate_bad_fov(self, tmp_path, image_files):
        result = runner.invoke(app, ["generate", *image_files, "-o", str(tmp_path / "x.glb"), "--hfov", "0"])
        assert result.exit_code != 0

    def test_animate(self, tmp_path, image_files):
        frames = tmp_path / "frames"
        result = runner.invoke(app, ["animate", *image_files, "-o", str(frames), "--every", "2"])

        assert result.exit_code == 0, result.output
        written = sorted(frames.glob("background_*.png"))
        assert len(written) >= 2
        assert written[0].name == "background_00000.png"

    def test_animate_foreground(self, tmp_path, image_files):
        frames = tmp_path / "frames"
        result = runner.invoke(app, ["animate", *image_files, "-o", str(frames), "--mesh", "foreground"])

        assert result.exit_code == 0, result.output
        assert (frames / "foreground_00000.png").exists()
