"""
photo3d: 3D photos from a single image

Depth-projected foreground and background meshes with occlusion-hole and
out-of-frame synthesis, simplified with an adaptive quadtree.
"""

__version__ = "0.1.0"

# Suppress trimesh's verbose logs by default
import logging
logging.getLogger("trimesh").setLevel(logging.WARNING)

from photo3d.config import PhotoConfig, Settings
from photo3d.core.grid import GridDimensionError, PixelGrid, VertexGrid
from photo3d.core.mesh import MeshData
from photo3d.pipeline import PhotoMeshPipeline, PhotoMeshResult

__all__ = [
    "PhotoConfig",
    "Settings",
    "GridDimensionError",
    "PixelGrid",
    "VertexGrid",
    "MeshData",
    "PhotoMeshPipeline",
    "PhotoMeshResult",
    "__version__",
]
