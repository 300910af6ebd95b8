"""Core data structures: pixel and vertex grids, meshes, image I/O."""

from photo3d.core.grid import GridDimensionError, PixelGrid, VertexGrid
from photo3d.core.mesh import MeshData, compute_blendshape_deltas

__all__ = ["GridDimensionError", "PixelGrid", "VertexGrid", "MeshData", "compute_blendshape_deltas"]
