"""Quadtree simplification of grid meshes."""

from photo3d.simplify.quadtree import QuadtreeSimplifier, Region, SimplificationResult
from photo3d.simplify.incremental import IncrementalSimplifier, SimplificationStep

__all__ = [
    "QuadtreeSimplifier",
    "Region",
    "SimplificationResult",
    "IncrementalSimplifier",
    "SimplificationStep",
]
