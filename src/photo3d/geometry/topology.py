"""
Grid triangulation and foreground/background splitting.

Every 2x2 block of vertices has corners
    A (top left)    B (top right)
    C (bottom left) D (bottom right)
and is covered by the triangles (C, B, A) and (C, D, B), always in that
winding. Triangles are emitted block by block in row-major order.
"""

from __future__ import annotations

import logging
import numpy as np

logger = logging.getLogger("photo3d.geometry.topology")


def grid_triangles(width: int, height: int) -> np.ndarray:
    """
    All candidate triangles of a width x height vertex grid.

    Returns:
        (2 * (width-1) * (height-1), 3) int64 array
    """
    if width < 2 or height < 2:
        return np.empty((0, 3), dtype=np.int64)

    rows, cols = np.meshgrid(np.arange(1, height), np.arange(1, width), indexing="ij")
    d = (rows * width + cols).ravel()
    a = d - 1 - width
    b = d - width
    c = d - 1

    pairs = np.stack([
        np.stack([c, b, a], axis=1),
        np.stack([c, d, b], axis=1),
    ], axis=1)
    return pairs.reshape(-1, 3).astype(np.int64)


def masked_triangles(valid_mask: np.ndarray, width: int, height: int) -> np.ndarray:
    """Candidate triangles whose three corners are all valid."""
    valid = np.asarray(valid_mask, dtype=bool)
    triangles = grid_triangles(width, height)
    return triangles[valid[triangles].all(axis=1)]


def split_foreground_background(
    background_mask: np.ndarray,
    width: int,
    height: int,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Split the grid triangles into foreground and background lists.

    Triangles with corners on both sides of the mask are dropped; this is
    what opens the gap between the two meshes along the silhouette.

    Returns:
        (foreground_triangles, background_triangles)
    """
    background = np.asarray(background_mask, dtype=bool)
    triangles = grid_triangles(width, height)
    corners = background[triangles]

    foreground_triangles = triangles[~corners.any(axis=1)]
    background_triangles = triangles[corners.all(axis=1)]

    dropped = len(triangles) - len(foreground_triangles) - len(background_triangles)
    logger.debug(
        f"Split {len(triangles)} triangles: {len(foreground_triangles)} foreground, "
        f"{len(background_triangles)} background, {dropped} dropped on the silhouette"
    )
    return foreground_triangles, background_triangles


def triangle_orientation(points_2d: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """
    Sign of the signed area of each triangle in 2D.

    Args:
        points_2d: Nx2 coordinates (e.g. grid column/row)
        triangles: Mx3 indices

    Returns:
        M values in {-1, 0, 1}
    """
    p = np.asarray(points_2d, dtype=np.float64)[triangles]
    e1 = p[:, 1] - p[:, 0]
    e2 = p[:, 2] - p[:, 0]
    return np.sign(e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0])
