"""
Extended background synthesis.

Builds a larger, square vertex grid with the original grid centered in it:

- original background vertices are copied through,
- vertices hidden behind the foreground are re-created at background depth
  (inpainting region),
- a ring of new vertices extends the field of view past the photo
  (outpainting region).

Alongside the grid it builds the extended texture: original colors where
the background was visible, alpha = 0 wherever an external fill tool has to
hallucinate content.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
import numpy as np

from photo3d.config import Settings
from photo3d.core.grid import PixelGrid, VertexGrid, grid_rows_cols
from photo3d.geometry.projection import viewing_directions
from photo3d.geometry.topology import masked_triangles

logger = logging.getLogger("photo3d.geometry.extension")

PADDING_RATIO = 0.1

# Hallucinated vertices never end up in front of the foreground they replace.
BEHIND_FOREGROUND_EPSILON = 0.01

# Used for a side of a row scan that finds no background vertex.
FALLBACK_DISTANCE = 1.0


@dataclass
class SynthesisStats:
    """Counts of synthesized geometry and degraded hole fills."""
    hole_vertices: int = 0
    outpainted_vertices: int = 0
    fallback_samples: int = 0  # row scans that hit the grid edge without finding background

    def to_dict(self) -> dict:
        return {
            "hole_vertices": self.hole_vertices,
            "outpainted_vertices": self.outpainted_vertices,
            "fallback_samples": self.fallback_samples,
        }


@dataclass
class ExtendedBackground:
    """
    Extended background grid and its texture.

    Attributes:
        grid: Extended vertex grid; its background_mask marks valid vertices
        hallucinated_mask: Vertices synthesized for inpainting or outpainting
        triangles: Triangles over valid vertices
        texture: (height, width, 4) RGBA, alpha = 0 where content must be filled
        origin: (row, col) of the original grid inside the extended one
    """
    grid: VertexGrid
    hallucinated_mask: np.ndarray
    triangles: np.ndarray
    texture: np.ndarray
    origin: tuple[int, int]
    stats: SynthesisStats = field(default_factory=SynthesisStats)

    @property
    def valid_mask(self) -> np.ndarray:
        return self.grid.background_mask


def extended_size(width: int, height: int, outpaint: bool) -> tuple[int, int]:
    """Width and height of the extended grid (square when outpainting)."""
    if not outpaint:
        return width, height
    size = max(width + int(PADDING_RATIO * width), height + int(PADDING_RATIO * height))
    return size, size


def estimate_hole_distances(grid: VertexGrid) -> tuple[np.ndarray, int]:
    """
    Background distance behind every foreground vertex.

    Scans left and right along the row for the nearest background vertex and
    blends the two distances with inverse pixel-offset weights. A side with
    no background vertex contributes FALLBACK_DISTANCE with weight 1.

    Returns:
        (distances for all N vertices, number of fallback samples used)
    """
    width, height = grid.width, grid.height
    background = grid.background_mask.reshape(height, width)
    distances = grid.distances().reshape(height, width)
    columns = np.broadcast_to(np.arange(width), (height, width))

    # Nearest background column strictly left / right of each column
    left_inclusive = np.maximum.accumulate(np.where(background, columns, -1), axis=1)
    left = np.full((height, width), -1)
    left[:, 1:] = left_inclusive[:, :-1]

    right_source = np.where(background, columns, width)
    right_inclusive = np.minimum.accumulate(right_source[:, ::-1], axis=1)[:, ::-1]
    right = np.full((height, width), width)
    right[:, :-1] = right_inclusive[:, 1:]

    found_left = left >= 0
    found_right = right < width
    row_index = np.arange(height)[:, np.newaxis]

    d_left = np.where(found_left, distances[row_index, np.clip(left, 0, width - 1)], FALLBACK_DISTANCE)
    d_right = np.where(found_right, distances[row_index, np.clip(right, 0, width - 1)], FALLBACK_DISTANCE)
    n_left = np.where(found_left, columns - left, 1)
    n_right = np.where(found_right, right - columns, 1)

    w_left = 1.0 / n_left
    w_right = 1.0 / n_right
    blended = (d_left * w_left + d_right * w_right) / (w_left + w_right)

    blended = np.where(blended < distances, distances + BEHIND_FOREGROUND_EPSILON, blended)

    foreground = ~background
    fallbacks = int((foreground & ~found_left).sum() + (foreground & ~found_right).sum())
    return blended.reshape(-1), fallbacks


def extend_background(
    grid: VertexGrid,
    color: PixelGrid,
    h_fov: float,
    v_fov: float,
    settings: Settings,
) -> ExtendedBackground:
    """
    Build the extended background grid, triangles and texture.

    Args:
        grid: Filtered dense vertex grid
        color: Color image
        h_fov, v_fov: Camera FOV in degrees
        settings: Generation settings (inpainting, outpainting, projection mode)

    Returns:
        ExtendedBackground
    """
    width, height = grid.width, grid.height
    ext_width, ext_height = extended_size(width, height, settings.generate_outpainted)
    start_row = (ext_height - height) // 2
    start_col = (ext_width - width) // 2

    rows, cols = grid_rows_cols(ext_width, ext_height)
    n = ext_width * ext_height
    uvs = np.stack([cols / float(ext_width), rows / float(ext_height)], axis=1)

    positions = np.zeros((n, 3))
    colors = np.zeros((n, 4))
    valid = np.zeros(n, dtype=bool)
    hallucinated = np.zeros(n, dtype=bool)
    stats = SynthesisStats()

    inside = (
        (rows >= start_row) & (rows < start_row + height)
        & (cols >= start_col) & (cols < start_col + width)
    )
    inner = np.flatnonzero(inside)
    source = (rows[inner] - start_row) * width + (cols[inner] - start_col)

    source_uvs = grid.uvs[source]
    colors[inner] = color.sample_many(source_uvs[:, 0], source_uvs[:, 1])
    positions[inner] = grid.positions[source]

    is_background = grid.background_mask[source]
    valid[inner[is_background]] = True

    if settings.generate_inpainted:
        hole_distances, stats.fallback_samples = estimate_hole_distances(grid)
        holes = inner[~is_background]
        hole_source = source[~is_background]

        fg_positions = grid.positions[hole_source]
        fg_norms = np.linalg.norm(fg_positions, axis=1, keepdims=True)
        directions = fg_positions / np.where(fg_norms > 0, fg_norms, 1.0)

        positions[holes] = directions * hole_distances[hole_source][:, np.newaxis]
        colors[holes] = 0.0
        valid[holes] = True
        hallucinated[holes] = True
        stats.hole_vertices = len(holes)

    outer = np.flatnonzero(~inside)
    if len(outer):
        positions[outer] = _outpaint_positions(
            grid, rows[outer], cols[outer], start_row, start_col, h_fov, v_fov, settings
        )
        valid[outer] = True
        hallucinated[outer] = True
        stats.outpainted_vertices = len(outer)

    extended = VertexGrid(
        positions=positions,
        uvs=uvs,
        background_mask=valid,
        width=ext_width,
        height=ext_height,
    )
    triangles = masked_triangles(valid, ext_width, ext_height)

    logger.info(
        f"Extended background {ext_width}x{ext_height}: {stats.hole_vertices} hole vertices, "
        f"{stats.outpainted_vertices} outpainted, {len(triangles)} triangles"
    )
    if stats.fallback_samples:
        logger.warning(
            f"{stats.fallback_samples} hole-fill scans found no background vertex, "
            f"used default distance {FALLBACK_DISTANCE}"
        )

    return ExtendedBackground(
        grid=extended,
        hallucinated_mask=hallucinated,
        triangles=triangles,
        texture=colors.reshape(ext_height, ext_width, 4),
        origin=(start_row, start_col),
        stats=stats,
    )


def _outpaint_positions(
    grid: VertexGrid,
    rows: np.ndarray,
    cols: np.ndarray,
    start_row: int,
    start_col: int,
    h_fov: float,
    v_fov: float,
    settings: Settings,
) -> np.ndarray:
    """
    Positions for vertices outside the original frame.

    Distance comes from the nearest original vertex (clamped row/column);
    direction comes from extending the FOV linearly, one original pixel's
    worth of angle per extra column/row.
    """
    width, height = grid.width, grid.height
    nearest_row = np.clip(rows - start_row, 0, height - 1)
    nearest_col = np.clip(cols - start_col, 0, width - 1)
    nearest = grid.positions[nearest_row * width + nearest_col]

    u = (cols - start_col) / float(width)
    v = (rows - start_row) / float(height)

    if settings.project_from_origin:
        distance = np.linalg.norm(nearest, axis=1)
        return viewing_directions(u, v, h_fov, v_fov) * distance[:, np.newaxis]

    return np.stack([u * 2 - 1, v * 2 - 1, nearest[:, 2]], axis=1)
