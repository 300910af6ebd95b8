"""
Vertex filter bank.

Median and mean filters over the per-vertex distance field, restricted to
one side of the foreground/background mask, plus an XYZ filter for the
foreground silhouette. Every filter reads from its input buffer and writes
a new one, so a vertex never sees a neighbour that was already filtered in
the same pass.

Window samples that fall outside the grid, or whose mask doesn't match, are
replaced by the centre vertex (clamped border behaviour).
"""

from __future__ import annotations

import logging
import numpy as np
from scipy import ndimage

logger = logging.getLogger("photo3d.geometry.filters")

# Upper bound on window samples materialized at once (samples * rows * width).
_MAX_CHUNK_ELEMENTS = 4_000_000


def _window_offsets(radius: int) -> list[tuple[int, int]]:
    return [(dy, dx) for dy in range(-radius, radius + 1) for dx in range(-radius, radius + 1)]


def _gather_window(
    padded_values: np.ndarray,
    padded_valid: np.ndarray,
    radius: int,
    row_start: int,
    row_stop: int,
) -> np.ndarray:
    """
    Collect the window samples for a band of rows.

    Args:
        padded_values: (height, width, C) values padded by radius on both axes
        padded_valid: Mask of usable samples, padded with False
        radius: Window radius
        row_start, row_stop: Band of rows to gather for

    Returns:
        (K, rows, width, C) samples, invalid ones replaced by the centre value
    """
    width = padded_valid.shape[1] - 2 * radius
    centre = padded_values[row_start + radius:row_stop + radius, radius:radius + width]
    samples = []
    for dy, dx in _window_offsets(radius):
        r0 = row_start + radius + dy
        r1 = row_stop + radius + dy
        c0 = radius + dx
        neighbour = padded_values[r0:r1, c0:c0 + width]
        usable = padded_valid[r0:r1, c0:c0 + width]
        samples.append(np.where(usable[..., np.newaxis], neighbour, centre))
    return np.stack(samples)


def _filter_grid(
    values: np.ndarray,
    valid: np.ndarray,
    targets: np.ndarray,
    radius: int,
    use_median: bool,
) -> np.ndarray:
    """Replace values at target cells with the window mean/median, band by band."""
    height, width, channels = values.shape
    window = (2 * radius + 1) ** 2
    rows_per_chunk = max(1, _MAX_CHUNK_ELEMENTS // max(1, window * width * channels))

    padded_values = np.pad(values, ((radius, radius), (radius, radius), (0, 0)), mode="edge")
    padded_valid = np.pad(valid, radius, mode="constant", constant_values=False)

    result = values.copy()
    for row_start in range(0, height, rows_per_chunk):
        row_stop = min(height, row_start + rows_per_chunk)
        band_targets = targets[row_start:row_stop]
        if not band_targets.any():
            continue

        samples = _gather_window(padded_values, padded_valid, radius, row_start, row_stop)
        if use_median:
            reduced = np.median(samples, axis=0)
        else:
            reduced = samples.mean(axis=0)

        band = result[row_start:row_stop]
        band[band_targets] = reduced[band_targets]
    return result


def filter_vertices(
    positions: np.ndarray,
    mask: np.ndarray,
    polarity: bool,
    width: int,
    height: int,
    radius: int = 4,
    use_median: bool = False,
) -> np.ndarray:
    """
    Filter the distances of the vertices on one side of a mask.

    Only vertices where mask == polarity are changed. Their distance from
    the origin becomes the mean (or median) of the window's distances;
    their direction is kept.

    Args:
        positions: Nx3 vertex positions of a width x height grid
        mask: N booleans
        polarity: Which mask value to filter
        width, height: Grid dimensions
        radius: Window radius, the window is (2r+1)^2
        use_median: Median instead of mean

    Returns:
        New Nx3 positions
    """
    positions = np.asarray(positions, dtype=np.float64)
    selected = (np.asarray(mask, dtype=bool) == polarity).reshape(height, width)

    distances = np.linalg.norm(positions, axis=1)
    grid = distances.reshape(height, width, 1)

    filtered = _filter_grid(grid, selected, selected, radius, use_median).reshape(-1)

    result = positions.copy()
    scale = np.ones_like(distances)
    movable = selected.reshape(-1) & (distances > 0)
    scale[movable] = filtered[movable] / distances[movable]
    result *= scale[:, np.newaxis]

    logger.debug(
        f"{'Median' if use_median else 'Mean'} filter r={radius} over "
        f"{int(selected.sum())} {'background' if polarity else 'foreground'} vertices"
    )
    return result


def foreground_border_mask(background_mask: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Foreground vertices with at least one 8-connected background neighbour.

    Returns:
        N booleans
    """
    background = np.asarray(background_mask, dtype=bool).reshape(height, width)
    padded = np.pad(background, 1, mode="constant", constant_values=False)

    touches_background = np.zeros_like(background)
    for dy, dx in _window_offsets(1):
        if dy == 0 and dx == 0:
            continue
        touches_background |= padded[1 + dy:1 + dy + height, 1 + dx:1 + dx + width]

    return (~background & touches_background).reshape(-1)


def filter_foreground_border(
    positions: np.ndarray,
    background_mask: np.ndarray,
    width: int,
    height: int,
    radius: int = 1,
    use_median: bool = False,
) -> np.ndarray:
    """
    Smooth the foreground silhouette.

    Each foreground border vertex gets the component-wise mean (or median)
    XYZ of the border vertices around it. Interior and background vertices
    are untouched.

    Returns:
        New Nx3 positions
    """
    positions = np.asarray(positions, dtype=np.float64)
    border = foreground_border_mask(background_mask, width, height).reshape(height, width)

    grid = positions.reshape(height, width, 3)
    filtered = _filter_grid(grid, border, border, radius, use_median)

    logger.debug(f"Border filter over {int(border.sum())} silhouette vertices")
    return filtered.reshape(-1, 3)


def feather_alpha(alpha: np.ndarray, radius: int = 8) -> np.ndarray:
    """
    Soften a foreground alpha matte with a box blur.

    Only ever lowers alpha, so fully transparent pixels stay transparent.

    Args:
        alpha: (height, width) alpha values in [0, 1]
        radius: Blur radius in pixels

    Returns:
        Feathered alpha of the same shape
    """
    alpha = np.asarray(alpha, dtype=np.float64)
    if radius < 1:
        return alpha.copy()
    blurred = ndimage.uniform_filter(alpha, size=2 * radius + 1, mode="nearest")
    # uniform_filter leaves tiny negative rounding noise on fully transparent pixels
    return np.clip(np.minimum(alpha, blurred), 0.0, 1.0)
