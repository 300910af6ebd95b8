"""
Step-by-step quadtree simplification for visualization.

Same collapse rule as the quadtree simplifier, but driven by an explicit
stack instead of recursion and exposed as a generator: every collapse
rewrites the dense mesh's triangle list and yields, so a caller can render
the partial mesh between steps. No crack repair and no compaction; the
vertex buffer is never touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator
import numpy as np

from photo3d.core.grid import check_grid_dimensions
from photo3d.simplify.quadtree import (
    LEAF_AREA,
    QuadtreeSimplifier,
    Region,
    RegionBoundsCache,
    compute_distance_field,
    quad_triangles,
)

logger = logging.getLogger("photo3d.simplify.incremental")


@dataclass
class SimplificationStep:
    """One region collapse."""
    index: int
    region: Region
    bounds: tuple[float, float]
    removed_triangles: int
    triangles: np.ndarray  # full triangle list after this step


class IncrementalSimplifier:
    """
    Collapses regions of a dense grid mesh one at a time.

    Args:
        positions: Nx3 grid vertex positions
        triangles: Mx3 triangles over grid indices
        mask: N booleans
        mask_flag: Mask value of the vertices that belong to this mesh
        width, height: Grid dimensions
        max_region_size: Largest collapsible region side, in grid cells
        max_delta_distance: Flatness threshold
        skip_border: Keep foreground silhouette vertices at full resolution
    """

    def __init__(
        self,
        positions: np.ndarray,
        triangles: np.ndarray,
        mask: np.ndarray,
        mask_flag: bool,
        width: int,
        height: int,
        max_region_size: int = 256,
        max_delta_distance: float = 0.025,
        skip_border: bool = False,
    ):
        positions = np.asarray(positions, dtype=np.float64)
        mask = np.asarray(mask, dtype=bool)
        check_grid_dimensions(width, height, positions=positions, mask=mask)

        self.positions = positions
        self.width = width
        self.height = height
        self.triangles = np.asarray(triangles, dtype=np.int64).reshape(-1, 3).copy()
        self.rule = QuadtreeSimplifier(max_region_size, max_delta_distance)
        self.cache = RegionBoundsCache(
            compute_distance_field(positions, mask, mask_flag, width, height, skip_border)
        )

    def steps(self) -> Iterator[SimplificationStep]:
        """
        Yield after every collapse.

        Pending regions are kept on a LIFO stack; a split pushes the top-left,
        top-right, bottom-left and bottom-right quadrants in that order.
        """
        stack = [Region(0, self.width - 1, 0, self.height - 1)]
        count = 0

        while stack:
            region = stack.pop()
            if region.area < LEAF_AREA:
                continue

            bounds = self.cache.bounds(region)
            if not self.rule.should_collapse(region, bounds):
                stack.extend(region.quadrants())
                continue

            removed = self._collapse(region)
            yield SimplificationStep(
                index=count,
                region=region,
                bounds=bounds,
                removed_triangles=removed,
                triangles=self.triangles,
            )
            count += 1

        logger.info(f"Incremental simplification finished after {count} collapses, "
                    f"{len(self.triangles)} triangles")

    def run(self) -> np.ndarray:
        """Perform every step and return the final triangle list."""
        for _ in self.steps():
            pass
        return self.triangles

    def _collapse(self, region: Region) -> int:
        rows, cols = np.divmod(self.triangles, self.width)
        inside = region.contains(rows, cols).all(axis=1)

        a, b, c, d = region.corners(self.width)
        quad = np.asarray(quad_triangles(a, b, c, d), dtype=np.int64)
        self.triangles = np.concatenate([self.triangles[~inside], quad])

        removed = int(inside.sum())
        logger.debug(f"Collapsed {region}, removed {removed} triangles")
        return removed
