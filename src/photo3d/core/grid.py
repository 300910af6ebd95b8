"""
Pixel and vertex grids.

A PixelGrid wraps a source image (color, depth or foreground alpha) and
provides the 2x2 averaging sampler every other stage reads through.
A VertexGrid holds one vertex per pixel corner with its parallel
per-vertex arrays (positions, UVs, background mask).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union
import numpy as np


class GridDimensionError(ValueError):
    """Raised when per-vertex arrays don't match their grid dimensions."""
    pass


class PixelGrid:
    """
    Read-only RGBA image sampled at arbitrary UV.

    Pixels are stored as a (height, width, 4) float array in [0, 1].
    Row 0 is v = 0, the bottom row of the image as it appears in a file
    (core.io flips rows on load and save).
    """

    def __init__(self, pixels: np.ndarray):
        pixels = np.asarray(pixels)
        if pixels.dtype == np.uint8:
            pixels = pixels.astype(np.float64) / 255.0
        else:
            pixels = pixels.astype(np.float64)

        if pixels.ndim == 2:
            pixels = pixels[:, :, np.newaxis]
        if pixels.ndim != 3 or pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError(f"Pixel grid must be HxW or HxWxC, got shape {pixels.shape}")

        channels = pixels.shape[2]
        if channels == 1:
            rgb = np.repeat(pixels, 3, axis=2)
            alpha = np.ones(pixels.shape[:2] + (1,))
            pixels = np.concatenate([rgb, alpha], axis=2)
        elif channels == 3:
            alpha = np.ones(pixels.shape[:2] + (1,))
            pixels = np.concatenate([pixels, alpha], axis=2)
        elif channels != 4:
            raise ValueError(f"Unsupported channel count: {channels}")

        self._pixels = pixels
        self._pixels.setflags(write=False)

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    def sample(self, u: float, v: float) -> np.ndarray:
        """Sample a single RGBA value."""
        return self.sample_many(np.array([u]), np.array([v]))[0]

    def sample_many(self, u: np.ndarray, v: np.ndarray) -> np.ndarray:
        """
        Sample RGBA values at many UVs.

        Averages the four texels around floor/ceil of uv * (size - 1).
        Indices are clamped, so out-of-range UVs read the border.

        Args:
            u: Array of horizontal coordinates
            v: Array of vertical coordinates (same shape as u)

        Returns:
            Array of shape u.shape + (4,)
        """
        u = np.asarray(u, dtype=np.float64)
        v = np.asarray(v, dtype=np.float64)

        x = u * (self.width - 1)
        y = v * (self.height - 1)
        x1 = np.clip(np.floor(x).astype(np.int64), 0, self.width - 1)
        x2 = np.clip(np.ceil(x).astype(np.int64), 0, self.width - 1)
        y1 = np.clip(np.floor(y).astype(np.int64), 0, self.height - 1)
        y2 = np.clip(np.ceil(y).astype(np.int64), 0, self.height - 1)

        p = self._pixels
        return (p[y1, x1] + p[y1, x2] + p[y2, x1] + p[y2, x2]) / 4.0

    @classmethod
    def constant(cls, width: int, height: int, rgba: Union[float, tuple]) -> PixelGrid:
        """Create a grid filled with a single value."""
        pixels = np.empty((height, width, 4))
        pixels[:] = rgba
        return cls(pixels)


@dataclass
class VertexGrid:
    """
    Dense grid of vertices, one per pixel corner.

    Attributes:
        positions: Nx3 vertex positions (N = width * height)
        uvs: Nx2 texture coordinates
        background_mask: N booleans, True for background vertices
        width: Vertices per row
        height: Number of rows
    """
    positions: np.ndarray
    uvs: np.ndarray
    background_mask: np.ndarray
    width: int
    height: int

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64)
        self.uvs = np.asarray(self.uvs, dtype=np.float64)
        self.background_mask = np.asarray(self.background_mask, dtype=bool)
        check_grid_dimensions(
            self.width, self.height,
            positions=self.positions,
            uvs=self.uvs,
            background_mask=self.background_mask,
        )

    @property
    def num_vertices(self) -> int:
        return self.width * self.height

    def index(self, row: int, col: int) -> int:
        return row * self.width + col

    def distances(self) -> np.ndarray:
        """Distance of every vertex from the projection origin."""
        return np.linalg.norm(self.positions, axis=1)

    def with_positions(self, positions: np.ndarray) -> VertexGrid:
        """Copy of this grid with new positions (masks and UVs shared by value)."""
        return VertexGrid(
            positions=positions,
            uvs=self.uvs.copy(),
            background_mask=self.background_mask.copy(),
            width=self.width,
            height=self.height,
        )

    def copy(self) -> VertexGrid:
        return self.with_positions(self.positions.copy())


def check_grid_dimensions(width: int, height: int, **arrays: np.ndarray) -> None:
    """
    Check that every per-vertex array has exactly width * height entries.

    Raises:
        GridDimensionError: On the first mismatching array
    """
    if width < 1 or height < 1:
        raise GridDimensionError(f"Grid must be at least 1x1, got {width}x{height}")

    expected = width * height
    for name, array in arrays.items():
        if array is None:
            continue
        if len(array) != expected:
            raise GridDimensionError(
                f"{name} has {len(array)} entries, expected {expected} "
                f"for a {width}x{height} grid"
            )


def grid_rows_cols(width: int, height: int) -> tuple[np.ndarray, np.ndarray]:
    """Row and column of every vertex index, row-major."""
    rows, cols = np.divmod(np.arange(width * height), width)
    return rows, cols
