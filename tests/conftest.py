"""Shared synthetic grids and images."""

import numpy as np
import pytest

from photo3d.core.grid import PixelGrid, VertexGrid, grid_rows_cols
from photo3d.geometry.projection import viewing_directions


def _make_grid(width, height, distances=2.0, background_mask=None, h_fov=45.0, v_fov=58.0):
    """Vertex grid projected from the origin with the given per-vertex distances."""
    rows, cols = grid_rows_cols(width, height)
    u = cols / float(width)
    v = rows / float(height)
    distances = np.broadcast_to(np.asarray(distances, dtype=np.float64), (width * height,))
    if background_mask is None:
        background_mask = np.ones(width * height, dtype=bool)

    return VertexGrid(
        positions=viewing_directions(u, v, h_fov, v_fov) * distances[:, np.newaxis],
        uvs=np.stack([u, v], axis=1),
        background_mask=np.asarray(background_mask, dtype=bool).reshape(-1),
        width=width,
        height=height,
    )


def _make_images(width, height, depth=0.5, foreground_box=None):
    """
    Color, depth and foreground images of width x height pixels.

    foreground_box is (row0, row1, col0, col1) of opaque foreground pixels.
    """
    rows, cols = np.mgrid[0:height, 0:width]
    color = np.stack([
        cols / max(width - 1, 1),
        rows / max(height - 1, 1),
        np.full((height, width), 0.5),
        np.ones((height, width)),
    ], axis=-1)

    depth_pixels = np.broadcast_to(np.asarray(depth, dtype=np.float64), (height, width))

    alpha = np.zeros((height, width))
    if foreground_box is not None:
        r0, r1, c0, c1 = foreground_box
        alpha[r0:r1, c0:c1] = 1.0
    foreground = color.copy()
    foreground[..., 3] = alpha

    return PixelGrid(color), PixelGrid(np.array(depth_pixels)), PixelGrid(foreground)


@pytest.fixture
def make_grid():
    return _make_grid


@pytest.fixture
def make_images():
    return _make_images


@pytest.fixture
def hole_grid():
    """8x8 vertex grid, background everywhere but the 2x2 block in the middle."""
    mask = np.ones((8, 8), dtype=bool)
    mask[3:5, 3:5] = False
    distances = np.where(mask, 2.0, 1.5)
    return _make_grid(8, 8, distances.reshape(-1), mask.reshape(-1))


@pytest.fixture
def ramp_grid():
    """17x17 all-background grid whose flatness decreases to the right."""
    width = height = 17
    cols = np.tile(np.arange(width), height)
    return _make_grid(width, height, 2.0 + 0.0005 * cols.astype(np.float64) ** 2)
