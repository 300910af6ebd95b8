"""
Sink and image I/O tests.
"""

import logging

import numpy as np
import pytest
import trimesh
from PIL import Image

from photo3d.core.io import load_pixel_grid, save_texture
from photo3d.export import MemoryMeshSink, MemoryTextureSink, PngTextureSink, SceneMeshSink
from photo3d.geometry.topology import grid_triangles


def quad():
    positions = np.array([[0, 0, 1], [1, 0, 1], [0, 1, 1], [1, 1, 1]], dtype=float)
    uvs = np.array([[0, 0], [1, 0], [0, 1], [1, 1]], dtype=float)
    return positions, uvs, grid_triangles(2, 2)


class TestMemorySinks:
    def test_mesh_sink(self):
        sink = MemoryMeshSink()
        texture = np.ones((2, 2, 4))
        handle = sink.add_mesh("Background", *quad(), texture, parent="root")

        assert handle == "Background"
        assert "Background" in sink
        assert len(sink) == 1
        assert sink.meshes["Background"].num_triangles == 2
        assert sink.textures["Background"] is texture
        assert sink.parents["Background"] == "root"

    def test_mesh_sink_groups(self):
        sink = MemoryMeshSink()
        assert sink.add_group("3D Photo") == "3D Photo"
        assert sink.groups == ["3D Photo"]
        assert "3D Photo" not in sink

    def test_texture_sink_copies(self):
        sink = MemoryTextureSink()
        rgba = np.zeros((2, 2, 4))
        sink.save_texture("t", rgba)
        rgba[:] = 1.0
        assert np.all(sink.textures["t"] == 0.0)


class TestSceneMeshSink:
    """Test trimesh scene assembly."""

    def test_export_glb(self, tmp_path):
        sink = SceneMeshSink()
        sink.add_mesh("Foreground", *quad(), np.ones((4, 4, 4)))
        sink.add_mesh("Background", *quad(), np.ones((4, 4, 4)))

        path = sink.export(tmp_path / "out" / "photo.glb")

        assert path.exists()
        loaded = trimesh.load(path, force="scene")
        assert len(loaded.geometry) == 2

    def test_nodes_named_after_meshes(self):
        sink = SceneMeshSink()
        sink.add_mesh("Foreground", *quad(), None)
        assert "Foreground" in sink.scene.graph.nodes
        assert "Foreground" in sink.scene.geometry

    def test_parenting(self):
        sink = SceneMeshSink()
        sink.add_mesh("Background", *quad(), None)
        sink.add_mesh("Foreground", *quad(), None, parent="Background")

        assert sink.scene.graph.transforms.parents["Foreground"] == "Background"

    def test_group_node(self, tmp_path):
        """Meshes parented to a group end up below it in the exported scene."""
        sink = SceneMeshSink()
        group = sink.add_group("3D Photo")
        sink.add_mesh("Foreground", *quad(), None, parent=group)
        sink.add_mesh("Background", *quad(), None, parent=group)

        parents = sink.scene.graph.transforms.parents
        assert parents["3D Photo"] == sink.scene.graph.base_frame
        assert parents["Foreground"] == parents["Background"] == "3D Photo"
        assert sink.export(tmp_path / "photo.glb").exists()

    def test_unknown_parent_attaches_to_root(self, caplog):
        sink = SceneMeshSink()
        with caplog.at_level(logging.WARNING, logger="photo3d.export"):
            sink.add_mesh("Foreground", *quad(), None, parent="Missing")

        assert "Missing" in caplog.text
        assert sink.scene.graph.transforms.parents["Foreground"] == sink.scene.graph.base_frame


class TestTextureFiles:
    """Test PNG textures and image loading."""

    def test_png_sink_resizes(self, tmp_path):
        sink = PngTextureSink(tmp_path, size=32)
        path = sink.save_texture("photo_extended_background", np.full((10, 10, 4), 0.5))

        assert path == tmp_path / "photo_extended_background.png"
        assert sink.written == [path]
        with Image.open(path) as image:
            assert image.size == (32, 32)
            assert image.mode == "RGBA"

    def test_png_sink_keeps_size(self, tmp_path):
        path = PngTextureSink(tmp_path, size=None).save_texture("t", np.zeros((6, 9, 4)))
        with Image.open(path) as image:
            assert image.size == (9, 6)

    def test_alpha_preserved(self, tmp_path):
        texture = np.ones((4, 4, 4))
        texture[:2, :, 3] = 0.0
        path = save_texture(texture, tmp_path / "t.png")

        loaded = load_pixel_grid(path)
        assert np.array_equal(loaded.pixels[..., 3], texture[..., 3])

    def test_rows_flipped(self, tmp_path):
        """Row 0 of a loaded grid is the bottom row of the file."""
        data = np.zeros((3, 2, 3), dtype=np.uint8)
        data[0] = 255
        path = tmp_path / "top_white.png"
        Image.fromarray(data).save(path)

        grid = load_pixel_grid(path)
        assert np.all(grid.pixels[2, :, :3] == 1.0)
        assert np.all(grid.pixels[0, :, :3] == 0.0)

    def test_sixteen_bit_depth(self, tmp_path):
        data = np.full((2, 2), 65535, dtype=np.uint16)
        path = tmp_path / "depth.png"
        Image.fromarray(data).save(path)

        grid = load_pixel_grid(path)
        assert grid.pixels[0, 0, 0] == pytest.approx(1.0)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_pixel_grid(tmp_path / "missing.png")

