"""Projection, filtering, triangulation and background extension of vertex grids."""

from photo3d.geometry.projection import project_vertices, remove_background_outliers
from photo3d.geometry.filters import filter_vertices, filter_foreground_border, feather_alpha
from photo3d.geometry.topology import grid_triangles, masked_triangles, split_foreground_background
from photo3d.geometry.extension import ExtendedBackground, SynthesisStats, extend_background

__all__ = [
    "project_vertices",
    "remove_background_outliers",
    "filter_vertices",
    "filter_foreground_border",
    "feather_alpha",
    "grid_triangles",
    "masked_triangles",
    "split_foreground_background",
    "ExtendedBackground",
    "SynthesisStats",
    "extend_background",
]
