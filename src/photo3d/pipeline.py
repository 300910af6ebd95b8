"""
Main pipeline orchestration.

Provides the high-level API for turning a color photo, its depth map and a
foreground cutout into foreground and extended background meshes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional
import numpy as np

from photo3d.config import PhotoConfig
from photo3d.core.grid import PixelGrid, VertexGrid
from photo3d.core.mesh import MeshData
from photo3d.export import MeshSink, TextureSink
from photo3d.geometry.extension import ExtendedBackground, SynthesisStats, extend_background
from photo3d.geometry.filters import feather_alpha, filter_foreground_border, filter_vertices
from photo3d.geometry.projection import project_vertices, remove_background_outliers
from photo3d.geometry.topology import grid_triangles, split_foreground_background
from photo3d.simplify.quadtree import QuadtreeSimplifier, SimplificationResult
from photo3d.utils.timing import TimingLog, get_timing_log, reset_timing_log, timed_operation

logger = logging.getLogger("photo3d.pipeline")

FOREGROUND = "Foreground"
BACKGROUND = "Background"
COMBINED = "Mesh"
ROOT = "3D Photo"


@dataclass
class DenseMeshCache:
    """
    Dense (unsimplified) buffers kept for the simplification animation.

    The foreground lives on the original grid, the background on the
    extended grid.
    """
    foreground_positions: np.ndarray
    foreground_uvs: np.ndarray
    foreground_triangles: np.ndarray
    background_mask: np.ndarray
    width: int
    height: int
    background_positions: Optional[np.ndarray] = None
    background_uvs: Optional[np.ndarray] = None
    background_triangles: Optional[np.ndarray] = None
    extended_mask: Optional[np.ndarray] = None
    extended_width: int = 0
    extended_height: int = 0

    @property
    def has_background(self) -> bool:
        return self.background_positions is not None


@dataclass
class PhotoMeshResult:
    """Everything one generation run produced."""
    meshes: dict[str, MeshData] = field(default_factory=dict)
    extended: Optional[ExtendedBackground] = None
    texture_handle: Any = None
    root_handle: Any = None
    simplification: dict[str, SimplificationResult] = field(default_factory=dict)
    cache: Optional[DenseMeshCache] = None
    timing: Optional[TimingLog] = None

    @property
    def synthesis_stats(self) -> SynthesisStats:
        return self.extended.stats if self.extended is not None else SynthesisStats()

    @property
    def extended_texture(self) -> Optional[np.ndarray]:
        return self.extended.texture if self.extended is not None else None


class PhotoMeshPipeline:
    """
    3D photo generation pipeline.

    Stages: projection, outlier removal, topology split, vertex filtering,
    background extension, simplification, hand-off to the sinks.
    """

    def __init__(self, config: Optional[PhotoConfig] = None):
        self.config = config or PhotoConfig()
        self.config.validate()

    @property
    def settings(self):
        return self.config.settings

    def generate(
        self,
        color: PixelGrid,
        depth: PixelGrid,
        foreground: PixelGrid,
        mesh_sink: Optional[MeshSink] = None,
        texture_sink: Optional[TextureSink] = None,
        enable_timing: bool = True,
    ) -> PhotoMeshResult:
        """
        Run the full generation.

        Args:
            color: Color photo
            depth: Depth (or disparity) map, sets the grid resolution
            foreground: Foreground cutout, transparent where background
            mesh_sink: Receives every generated mesh, parented to a "3D Photo" group
            texture_sink: Receives the extended background texture

        Returns:
            PhotoMeshResult

        Raises:
            GridDimensionError: If the vertex buffers don't match the grid
        """
        if enable_timing:
            reset_timing_log()

        settings = self.settings
        h_fov = self.config.horizontal_fov
        v_fov = self.config.vertical_fov
        result = PhotoMeshResult()

        logger.info(
            f"Generating {self.config.name!r} from {depth.width}x{depth.height} depth map, "
            f"FOV {h_fov}x{v_fov}"
        )

        with timed_operation("projection", log=enable_timing):
            grid = project_vertices(depth, foreground, h_fov, v_fov, settings)
            if settings.remove_outliers:
                grid = remove_background_outliers(grid)

        with timed_operation("topology", log=enable_timing):
            fg_triangles, bg_triangles = split_foreground_background(
                grid.background_mask, grid.width, grid.height
            )

        with timed_operation("filtering", log=enable_timing):
            grid = self._filter(grid)

        result.cache = DenseMeshCache(
            foreground_positions=grid.positions,
            foreground_uvs=grid.uvs,
            foreground_triangles=fg_triangles,
            background_mask=grid.background_mask,
            width=grid.width,
            height=grid.height,
        )

        if mesh_sink is not None:
            result.root_handle = mesh_sink.add_group(ROOT)

        if not settings.separate_foreground_background:
            triangles = grid_triangles(grid.width, grid.height)
            result.meshes[COMBINED] = self._emit(
                mesh_sink, COMBINED, grid.positions, grid.uvs, triangles, color.pixels,
                parent=result.root_handle,
            )
            result.timing = get_timing_log() if enable_timing else None
            return result

        if settings.generate_foreground:
            with timed_operation("foreground", log=enable_timing):
                self._build_foreground(grid, fg_triangles, color, foreground, result, mesh_sink)

        if settings.generate_background:
            with timed_operation("background_extension", log=enable_timing):
                extended = extend_background(grid, color, h_fov, v_fov, settings)
            result.extended = extended
            self._cache_background(result.cache, extended)

            if texture_sink is not None:
                with timed_operation("texture_export", log=enable_timing):
                    result.texture_handle = texture_sink.save_texture(
                        f"{self.config.name}_extended_background", extended.texture
                    )

            with timed_operation("background", log=enable_timing):
                self._build_background(extended, result, mesh_sink)

        for name, mesh in result.meshes.items():
            logger.info(f"{name} mesh: {mesh.num_vertices} vertices, {mesh.num_triangles} triangles")

        result.timing = get_timing_log() if enable_timing else None
        return result

    def _filter(self, grid: VertexGrid) -> VertexGrid:
        """Median, mean and silhouette filters, in that order."""
        settings = self.settings
        positions = grid.positions
        mask, width, height = grid.background_mask, grid.width, grid.height

        if settings.remove_outliers:
            positions = filter_vertices(positions, mask, True, width, height, radius=4, use_median=True)
            positions = filter_vertices(positions, mask, False, width, height, radius=8, use_median=True)
            positions = filter_vertices(positions, mask, False, width, height, radius=8, use_median=True)

        if settings.smooth_mesh:
            positions = filter_vertices(positions, mask, True, width, height, radius=8)
            positions = filter_vertices(positions, mask, False, width, height, radius=8)

        if settings.smooth_foreground_edges:
            positions = filter_foreground_border(positions, mask, width, height)
            positions = filter_foreground_border(positions, mask, width, height)

        return grid.with_positions(positions)

    def _build_foreground(self, grid, triangles, color, foreground, result, mesh_sink):
        settings = self.settings
        texture = color.pixels
        if settings.foreground_feathering:
            texture = feathered_texture(color, foreground)

        positions, uvs = grid.positions, grid.uvs
        if settings.perform_simplification:
            simplified = self._simplifier().simplify(
                positions, uvs, triangles,
                grid.background_mask, False,
                grid.width, grid.height,
                skip_border=True,
            )
            result.simplification[FOREGROUND] = simplified
            positions, uvs, triangles = simplified.vertices, simplified.uvs, simplified.triangles

        result.meshes[FOREGROUND] = self._emit(
            mesh_sink, FOREGROUND, positions, uvs, triangles, texture, parent=result.root_handle
        )

    def _build_background(self, extended: ExtendedBackground, result, mesh_sink):
        ext = extended.grid
        positions, uvs, triangles = ext.positions, ext.uvs, extended.triangles

        if self.settings.perform_simplification:
            simplified = self._simplifier().simplify(
                positions, uvs, triangles,
                extended.valid_mask, True,
                ext.width, ext.height,
            )
            result.simplification[BACKGROUND] = simplified
            positions, uvs, triangles = simplified.vertices, simplified.uvs, simplified.triangles

        result.meshes[BACKGROUND] = self._emit(
            mesh_sink, BACKGROUND, positions, uvs, triangles, extended.texture,
            parent=result.root_handle,
        )

    def _simplifier(self) -> QuadtreeSimplifier:
        return QuadtreeSimplifier(
            max_region_size=self.settings.largest_simplified_region_size,
            max_delta_distance=self.settings.maximum_delta_distance,
        )

    def _cache_background(self, cache: DenseMeshCache, extended: ExtendedBackground):
        cache.background_positions = extended.grid.positions
        cache.background_uvs = extended.grid.uvs
        cache.background_triangles = extended.triangles
        cache.extended_mask = extended.valid_mask
        cache.extended_width = extended.grid.width
        cache.extended_height = extended.grid.height

    def _emit(self, mesh_sink, name, positions, uvs, triangles, texture, parent=None) -> MeshData:
        mesh = MeshData(vertices=positions, uvs=uvs, triangles=triangles, name=name)
        if mesh.is_empty:
            logger.warning(f"{name} mesh has no triangles, not passed to the mesh sink")
        elif mesh_sink is not None:
            mesh_sink.add_mesh(name, mesh.vertices, mesh.uvs, mesh.triangles, texture, parent=parent)
        return mesh


def feathered_texture(color: PixelGrid, foreground: PixelGrid, radius: int = 8) -> np.ndarray:
    """
    Color image with the foreground cutout's alpha, softened at the edges.

    The foreground alpha is resampled onto the color image's texels before
    feathering.
    """
    height, width = color.height, color.width
    rows, cols = np.divmod(np.arange(width * height), width)
    alpha = foreground.sample_many(cols / float(width), rows / float(height))[:, 3]

    texture = np.array(color.pixels)
    texture[..., 3] = feather_alpha(alpha.reshape(height, width), radius=radius)
    return texture
