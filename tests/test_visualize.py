"""
Simplification animation tests.
"""

import pytest
from PIL import Image

from photo3d.evaluation.visualize import FrameRenderer, animate_simplification
from photo3d.geometry.topology import grid_triangles
from photo3d.simplify.incremental import IncrementalSimplifier
from photo3d.simplify.quadtree import Region


def make_simplifier(grid, **kwargs):
    return IncrementalSimplifier(
        grid.positions, grid_triangles(grid.width, grid.height),
        grid.background_mask, True, grid.width, grid.height, **kwargs,
    )


class TestFrameRenderer:
    def test_render(self, tmp_path):
        renderer = FrameRenderer(5, 5, figsize=(2, 2), dpi=50)
        path = renderer.render(grid_triangles(5, 5), tmp_path / "sub" / "frame.png", region=Region(0, 2, 0, 2))

        assert path.exists()
        with Image.open(path) as image:
            assert image.size == (100, 100)

    def test_render_empty(self, tmp_path):
        path = FrameRenderer(3, 3).render([], tmp_path / "empty.png")
        assert path.exists()


class TestAnimateSimplification:
    """Test frame output of the incremental simplifier."""

    def test_one_frame_per_step(self, tmp_path, ramp_grid):
        steps = len(list(make_simplifier(ramp_grid).steps()))
        frames = animate_simplification(make_simplifier(ramp_grid), tmp_path)

        assert len(frames) == steps + 1
        assert frames[0].name == "frame_00000.png"
        assert all(path.exists() for path in frames)

    def test_every_n_ends_on_final_step(self, tmp_path, ramp_grid):
        steps = len(list(make_simplifier(ramp_grid).steps()))
        simplifier = make_simplifier(ramp_grid)
        frames = animate_simplification(simplifier, tmp_path, every=3, prefix="bg")

        expected = 1 + steps // 3 + (1 if steps % 3 else 0)
        assert len(frames) == expected
        assert frames[-1].name == f"bg_{len(frames) - 1:05d}.png"

    def test_nothing_to_collapse(self, tmp_path, make_grid):
        frames = animate_simplification(make_simplifier(make_grid(5, 5), max_delta_distance=0.0), tmp_path)
        assert len(frames) == 1

    def test_invalid_every(self, tmp_path, ramp_grid):
        with pytest.raises(ValueError):
            animate_simplification(make_simplifier(ramp_grid), tmp_path, every=0)
