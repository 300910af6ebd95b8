"""
Core mesh data structure handed to mesh sinks.

A MeshData is a plain triangle mesh with per-vertex UVs: the tuple every
stage of the pipeline ends up producing (dense or simplified).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import numpy as np


@dataclass
class MeshData:
    """
    Textured triangle mesh.

    Attributes:
        vertices: Nx3 array of vertex positions
        uvs: Nx2 array of texture coordinates
        triangles: Mx3 array of vertex indices
        name: Mesh identifier ("Foreground", "Background", ...)
        metadata: Additional properties (grid size, simplification stats)
    """
    vertices: np.ndarray
    uvs: np.ndarray
    triangles: np.ndarray
    name: str = "unnamed"
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        """Validate and normalize mesh data."""
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.uvs = np.asarray(self.uvs, dtype=np.float64).reshape(-1, 2)
        self.triangles = np.asarray(self.triangles, dtype=np.int64).reshape(-1, 3)

        if len(self.uvs) != len(self.vertices):
            raise ValueError(
                f"UV count ({len(self.uvs)}) must match vertex count ({len(self.vertices)})"
            )

        if len(self.triangles) and (
            self.triangles.min() < 0 or self.triangles.max() >= len(self.vertices)
        ):
            raise ValueError("Triangle indices out of range")

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)

    @property
    def num_triangles(self) -> int:
        return len(self.triangles)

    @property
    def is_empty(self) -> bool:
        return self.num_triangles == 0

    def to_trimesh(self, texture: Optional[np.ndarray] = None):
        """
        Convert to a trimesh.Trimesh with UV visuals.

        Args:
            texture: Optional HxWx4 float RGBA image in [0, 1]
        """
        import trimesh
        from trimesh.visual.texture import TextureVisuals
        from PIL import Image

        image = None
        if texture is not None:
            # Texture row 0 is v = 0, image files store the top row first.
            image = Image.fromarray(_to_uint8(np.flipud(texture)))

        return trimesh.Trimesh(
            vertices=self.vertices,
            faces=self.triangles,
            visual=TextureVisuals(uv=self.uvs, image=image),
            process=False,
        )

    def __repr__(self) -> str:
        return f"MeshData({self.name!r}, vertices={self.num_vertices}, triangles={self.num_triangles})"


def compute_blendshape_deltas(source: MeshData, target: MeshData) -> np.ndarray:
    """
    Per-vertex offsets that morph target into source.

    Both meshes must come from the same vertex layout, e.g. a dense and a
    re-projected version of the same grid.

    Raises:
        ValueError: If the vertex counts differ
    """
    if source.num_vertices != target.num_vertices:
        raise ValueError(
            f"Cannot build blendshape: source has {source.num_vertices} vertices, "
            f"target has {target.num_vertices}"
        )
    return source.vertices - target.vertices


def _to_uint8(image: np.ndarray) -> np.ndarray:
    return (np.clip(image, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
