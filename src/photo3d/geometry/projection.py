"""
Depth-to-3D projection.

Places one vertex at every pixel corner of the depth map, either projected
out from a virtual camera at the origin or laid out on the image plane,
and tags it as foreground or background from the foreground alpha.
"""

from __future__ import annotations

import logging
import numpy as np

from photo3d.config import Settings
from photo3d.core.grid import PixelGrid, VertexGrid, grid_rows_cols

logger = logging.getLogger("photo3d.geometry.projection")

# Keeps vertices off the projection origin when depth is 0.
DEPTH_OFFSET = 1.0

# Foreground alpha below this is background.
BACKGROUND_ALPHA_THRESHOLD = 0.01

OUTLIER_PERCENTILE = 0.9


def disparity_to_depth(disparity: np.ndarray, settings: Settings) -> np.ndarray:
    """
    Convert sampled depth-map values to scene depth.

    With conversion enabled the value is treated as disparity and mapped to
    [0, max_distance]; otherwise depth is simply 1 - value.
    """
    disparity = np.asarray(disparity, dtype=np.float64)
    if not settings.convert_disparity_to_depth:
        return 1.0 - disparity

    max_depth = settings.max_depth
    depth = 1.0 / (disparity + 1.0 / max_depth)  # [0.5, max_depth]
    return (depth - 0.5) / (max_depth - 0.5) * settings.max_distance


def viewing_directions(u: np.ndarray, v: np.ndarray, h_fov: float, v_fov: float) -> np.ndarray:
    """
    Unit viewing direction for each UV.

    Angles are linear in UV: (u - 0.5) * h_fov and (v - 0.5) * v_fov degrees.
    UVs outside [0, 1] extrapolate the field of view.
    """
    ax = np.radians((np.asarray(u) - 0.5) * h_fov)
    ay = np.radians((np.asarray(v) - 0.5) * v_fov)
    directions = np.stack([np.sin(ax), np.sin(ay), np.cos(ax)], axis=-1)
    return directions / np.linalg.norm(directions, axis=-1, keepdims=True)


def project_vertices(
    depth: PixelGrid,
    foreground: PixelGrid,
    h_fov: float,
    v_fov: float,
    settings: Settings,
) -> VertexGrid:
    """
    Build the dense vertex grid.

    Args:
        depth: Depth or disparity map (red channel is read)
        foreground: Foreground image, transparent where background
        h_fov: Horizontal FOV of the photo in degrees
        v_fov: Vertical FOV of the photo in degrees
        settings: Generation settings

    Returns:
        VertexGrid of (depth.width + 1) x (depth.height + 1) vertices
    """
    width = depth.width + 1
    height = depth.height + 1

    rows, cols = grid_rows_cols(width, height)
    u = cols / float(width)
    v = rows / float(height)
    uvs = np.stack([u, v], axis=1)

    if settings.depth_override is not None:
        disparity = np.full(len(u), settings.depth_override, dtype=np.float64)
    else:
        disparity = depth.sample_many(u, v)[:, 0]
    vertex_depth = disparity_to_depth(disparity, settings)

    background_mask = foreground.sample_many(u, v)[:, 3] < BACKGROUND_ALPHA_THRESHOLD

    if settings.project_from_origin:
        directions = viewing_directions(u, v, h_fov, v_fov)
        positions = directions * (vertex_depth + DEPTH_OFFSET)[:, np.newaxis]
    else:
        positions = np.stack([u * 2 - 1, v * 2 - 1, vertex_depth + DEPTH_OFFSET], axis=1)

    grid = VertexGrid(
        positions=positions,
        uvs=uvs,
        background_mask=background_mask,
        width=width,
        height=height,
    )

    logger.info(
        f"Projected {grid.num_vertices} vertices ({width}x{height}), "
        f"{int(background_mask.sum())} background"
    )
    return grid


def remove_background_outliers(grid: VertexGrid) -> VertexGrid:
    """
    Push background vertices that sit unusually close out to a threshold.

    The threshold is taken at 90% through the background distances sorted
    in descending order; closer background vertices are moved along their
    viewing direction onto it.
    """
    mask = grid.background_mask
    count = int(mask.sum())
    if count == 0:
        logger.debug("No background vertices, skipping outlier removal")
        return grid.copy()

    distances = grid.distances()
    ordered = np.sort(distances[mask])[::-1]
    threshold = ordered[min(int(count * OUTLIER_PERCENTILE), count - 1)]

    clamp = mask & (distances < threshold) & (distances > 0)
    positions = grid.positions.copy()
    positions[clamp] *= (threshold / distances[clamp])[:, np.newaxis]

    logger.debug(f"Outlier threshold {threshold:.4f}, clamped {int(clamp.sum())} vertices")
    return grid.with_positions(positions)
