"""
Quadtree mesh simplification for grid meshes.

Walks the grid as a quadtree of rectangular regions. A region whose
distance field is flat enough (max - min below a threshold) and which is
small enough is replaced by its four corners and two triangles; other
regions are split into quadrants until they reach 2x2 leaves, whose
vertices are kept as they are.

Adjacent regions simplified to different resolutions leave T-junctions.
They are repaired by walking the collapsed regions from largest to
smallest and snapping every emitted vertex on a region's edge onto the
line between the edge's corners, each vertex being moved at most once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
import numpy as np

from photo3d.core.grid import check_grid_dimensions
from photo3d.core.mesh import MeshData
from photo3d.geometry.filters import foreground_border_mask

logger = logging.getLogger("photo3d.simplify.quadtree")

# Regions smaller than this are irreducible (a 2x2 block of cells).
LEAF_AREA = 4

# Bounds of regions below this area are computed directly and memoized.
BOUNDS_CACHE_AREA = 32

UNASSIGNED = -1


@dataclass(frozen=True)
class Region:
    """Grid rectangle with inclusive corner coordinates."""
    x1: int
    x2: int
    y1: int
    y2: int

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1

    @property
    def area(self) -> int:
        return self.width * self.height

    def corners(self, grid_width: int) -> tuple[int, int, int, int]:
        """Grid indices of the corners A (top left), B, C, D (bottom right)."""
        return (
            self.y1 * grid_width + self.x1,
            self.y1 * grid_width + self.x2,
            self.y2 * grid_width + self.x1,
            self.y2 * grid_width + self.x2,
        )

    def quadrants(self) -> tuple[Region, Region, Region, Region]:
        """Top left, top right, bottom left, bottom right."""
        xm = (self.x1 + self.x2) // 2
        ym = (self.y1 + self.y2) // 2
        return (
            Region(self.x1, xm, self.y1, ym),
            Region(xm, self.x2, self.y1, ym),
            Region(self.x1, xm, ym, self.y2),
            Region(xm, self.x2, ym, self.y2),
        )

    def contains(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        return (cols >= self.x1) & (cols <= self.x2) & (rows >= self.y1) & (rows <= self.y2)


def quad_triangles(a: int, b: int, c: int, d: int) -> list[list[int]]:
    """The two triangles covering a quad, (C, B, A) and (C, D, B)."""
    return [[c, b, a], [c, d, b]]


class RegionBoundsCache:
    """
    (min, max) of a distance field over regions.

    Small regions are computed directly and memoized; larger regions merge
    the bounds of their four quadrants on every call, which keeps the map
    bounded by the number of small regions.
    """

    def __init__(self, distances: np.ndarray):
        self.distances = distances
        self._cache: dict[Region, tuple[float, float]] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def bounds(self, region: Region) -> tuple[float, float]:
        if region.area < BOUNDS_CACHE_AREA:
            cached = self._cache.get(region)
            if cached is not None:
                return cached

            values = self.distances[region.y1:region.y2 + 1, region.x1:region.x2 + 1]
            low, high = float(values.min()), float(values.max())
            # An excluded vertex makes the region impossible to collapse
            if np.isinf(high):
                low, high = -np.inf, np.inf

            self._cache[region] = (low, high)
            return low, high

        children = [self.bounds(quadrant) for quadrant in region.quadrants()]
        return (
            min(low for low, _ in children),
            max(high for _, high in children),
        )


def compute_distance_field(
    positions: np.ndarray,
    mask: np.ndarray,
    mask_flag: bool,
    width: int,
    height: int,
    skip_border: bool = False,
) -> np.ndarray:
    """
    Per-vertex distance from the origin, +inf for excluded vertices.

    A vertex is excluded when mask != mask_flag, or, with skip_border, when it
    is a foreground vertex touching the background (mask is read as the
    background mask for that test).

    Returns:
        (height, width) float array
    """
    mask = np.asarray(mask, dtype=bool)
    distances = np.linalg.norm(np.asarray(positions, dtype=np.float64), axis=1)

    excluded = mask != mask_flag
    if skip_border:
        excluded |= foreground_border_mask(mask, width, height)

    return np.where(excluded, np.inf, distances).reshape(height, width)


@dataclass
class CollapsedRegion:
    region: Region
    bounds: tuple[float, float]


@dataclass
class SimplificationResult:
    """
    Output of a quadtree simplification.

    Attributes:
        vertices, uvs, triangles: Compacted mesh buffers
        regions: Collapsed regions in the order they were collapsed
        moved_by: Per output vertex, index into regions of the region whose
            edge it was snapped to during crack repair, -1 if never moved
        vertex_map: Per source grid vertex, its output index or -1
    """
    vertices: np.ndarray
    uvs: np.ndarray
    triangles: np.ndarray
    regions: list[CollapsedRegion] = field(default_factory=list)
    moved_by: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    vertex_map: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.int64))
    source_vertices: int = 0
    emitted_vertices: int = 0
    reemitted_triangles: int = 0
    dropped_triangles: int = 0

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)

    @property
    def num_triangles(self) -> int:
        return len(self.triangles)

    @property
    def moved_vertices(self) -> int:
        return int((self.moved_by >= 0).sum())

    def to_mesh(self, name: str = "simplified") -> MeshData:
        return MeshData(
            vertices=self.vertices,
            uvs=self.uvs,
            triangles=self.triangles,
            name=name,
            metadata={
                "source_vertices": self.source_vertices,
                "collapsed_regions": len(self.regions),
                "moved_vertices": self.moved_vertices,
            },
        )


class QuadtreeSimplifier:
    """
    Collapses flat regions of a grid mesh into quads.

    Args:
        max_region_size: Largest collapsible region side, in grid cells
        max_delta_distance: Collapse only when max - min distance is below this
    """

    def __init__(self, max_region_size: int = 256, max_delta_distance: float = 0.025):
        self.max_region_size = max_region_size
        self.max_delta_distance = max_delta_distance

    @property
    def max_region_area(self) -> int:
        return self.max_region_size * self.max_region_size

    def should_collapse(self, region: Region, bounds: tuple[float, float]) -> bool:
        low, high = bounds
        return (high - low) < self.max_delta_distance and region.area < self.max_region_area

    def simplify(
        self,
        positions: np.ndarray,
        uvs: np.ndarray,
        triangles: np.ndarray,
        mask: np.ndarray,
        mask_flag: bool,
        width: int,
        height: int,
        skip_border: bool = False,
    ) -> SimplificationResult:
        """
        Simplify a grid mesh.

        Args:
            positions: Nx3 grid vertex positions
            uvs: Nx2 grid UVs
            triangles: Mx3 triangles over the grid indices
            mask: N booleans selecting which vertices may be collapsed
            mask_flag: Mask value of the vertices that belong to this mesh
            width, height: Grid dimensions
            skip_border: Keep foreground silhouette vertices at full resolution

        Returns:
            SimplificationResult

        Raises:
            GridDimensionError: If a per-vertex array doesn't match the grid
        """
        positions = np.asarray(positions, dtype=np.float64)
        uvs = np.asarray(uvs, dtype=np.float64)
        mask = np.asarray(mask, dtype=bool)
        triangles = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
        check_grid_dimensions(width, height, positions=positions, uvs=uvs, mask=mask)

        distances = compute_distance_field(positions, mask, mask_flag, width, height, skip_border)
        walk = _QuadtreeWalk(self, RegionBoundsCache(distances), width, height)
        walk.visit(Region(0, width - 1, 0, height - 1))

        index_map = walk.index_map
        emitted = np.asarray(walk.emitted, dtype=np.int64)
        new_positions = positions[emitted]
        new_uvs = uvs[emitted]

        mapped = index_map[triangles]
        survived = (mapped >= 0).all(axis=1)
        all_triangles = np.concatenate([
            np.asarray(walk.triangles, dtype=np.int64).reshape(-1, 3),
            mapped[survived],
        ])

        moved_by = repair_cracks(new_positions, walk.regions, index_map, width)
        vertices, out_uvs, out_triangles, keep = compact(new_positions, new_uvs, all_triangles)

        remap = np.full(len(emitted), UNASSIGNED, dtype=np.int64)
        remap[keep] = np.arange(len(keep))
        vertex_map = np.where(index_map >= 0, remap[np.maximum(index_map, 0)], UNASSIGNED)

        result = SimplificationResult(
            vertices=vertices,
            uvs=out_uvs,
            triangles=out_triangles,
            regions=walk.regions,
            moved_by=moved_by[keep],
            vertex_map=vertex_map,
            source_vertices=len(positions),
            emitted_vertices=len(emitted),
            reemitted_triangles=int(survived.sum()),
            dropped_triangles=int((~survived).sum()),
        )

        logger.info(
            f"Simplified {len(positions)} -> {result.num_vertices} vertices, "
            f"{len(triangles)} -> {result.num_triangles} triangles "
            f"({len(walk.regions)} regions collapsed)"
        )
        logger.debug(
            f"Emitted {len(emitted)} vertices before compaction, "
            f"{result.moved_vertices} moved by crack repair, "
            f"{result.dropped_triangles} source triangles dropped, "
            f"{len(walk.cache)} cached bounds"
        )
        return result


class _QuadtreeWalk:
    """Mutable state of one recursive simplification walk."""

    def __init__(self, simplifier: QuadtreeSimplifier, cache: RegionBoundsCache, width: int, height: int):
        self.simplifier = simplifier
        self.cache = cache
        self.width = width
        self.index_map = np.full(width * height, UNASSIGNED, dtype=np.int64)
        self._index_grid = self.index_map.reshape(height, width)
        self.emitted: list[int] = []  # source index of every output vertex
        self.triangles: list[list[int]] = []
        self.regions: list[CollapsedRegion] = []

    def emit(self, source: int) -> int:
        if self.index_map[source] < 0:
            self.index_map[source] = len(self.emitted)
            self.emitted.append(source)
        return int(self.index_map[source])

    def emit_block(self, region: Region) -> None:
        """Emit every not-yet-emitted vertex of a region in row-major order."""
        block = self._index_grid[region.y1:region.y2 + 1, region.x1:region.x2 + 1]
        fresh = block < 0
        count = int(fresh.sum())
        if not count:
            return

        rows, cols = np.nonzero(fresh)
        sources = (rows + region.y1) * self.width + (cols + region.x1)
        block[fresh] = np.arange(len(self.emitted), len(self.emitted) + count)
        self.emitted.extend(sources.tolist())

    def visit(self, region: Region) -> None:
        if region.area < LEAF_AREA:
            self.emit_block(region)
            return

        bounds = self.cache.bounds(region)
        if self.simplifier.should_collapse(region, bounds):
            a, b, c, d = (self.emit(corner) for corner in region.corners(self.width))
            self.triangles.extend(quad_triangles(a, b, c, d))
            self.regions.append(CollapsedRegion(region, bounds))
            return

        for quadrant in region.quadrants():
            self.visit(quadrant)


def repair_cracks(
    positions: np.ndarray,
    regions: list[CollapsedRegion],
    index_map: np.ndarray,
    width: int,
) -> np.ndarray:
    """
    Snap emitted vertices onto the edges of collapsed regions, in place.

    Regions are processed largest first, so detailed regions conform to the
    coarse ones next to them. Corners are read from the (already partially
    repaired) positions; a vertex is never moved twice.

    Args:
        positions: Emitted vertex positions, modified in place
        regions: Collapsed regions
        index_map: Source grid index -> emitted index, -1 if not emitted
        width: Grid width

    Returns:
        Per emitted vertex, the index in regions of the region that moved it, or -1
    """
    moved_by = np.full(len(positions), UNASSIGNED, dtype=np.int64)
    order = sorted(range(len(regions)), key=lambda i: -regions[i].region.area)

    for region_index in order:
        region = regions[region_index].region
        a, b, c, d = (positions[index_map[corner]].copy() for corner in region.corners(width))

        cols = np.arange(region.x1, region.x2 + 1)
        rows = np.arange(region.y1, region.y2 + 1)
        t_cols = (cols - region.x1) / float(region.width)
        t_rows = (rows - region.y1) / float(region.height)

        edges = [
            (region.y1 * width + cols, t_cols, a, b),  # top
            (region.y2 * width + cols, t_cols, c, d),  # bottom
            (rows * width + region.x1, t_rows, a, c),  # left
            (rows * width + region.x2, t_rows, b, d),  # right
        ]
        for sources, t, start, end in edges:
            targets = index_map[sources]
            free = targets >= 0
            free[free] = moved_by[targets[free]] < 0
            if not free.any():
                continue
            weights = t[free][:, np.newaxis]
            positions[targets[free]] = start + (end - start) * weights
            moved_by[targets[free]] = region_index

    return moved_by


def compact(
    positions: np.ndarray,
    uvs: np.ndarray,
    triangles: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Drop vertices no triangle references.

    Kept vertices are ordered by their first reference in the triangle list.

    Returns:
        (positions, uvs, triangles, kept) where kept maps new index -> old index
    """
    triangles = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    referenced, first = np.unique(triangles.ravel(), return_index=True)
    order = referenced[np.argsort(first, kind="stable")]

    remap = np.full(len(positions), UNASSIGNED, dtype=np.int64)
    remap[order] = np.arange(len(order))
    return positions[order], uvs[order], remap[triangles], order
