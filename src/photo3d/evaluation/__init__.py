"""Visualization of simplification results."""

from photo3d.evaluation.visualize import FrameRenderer, animate_simplification

__all__ = ["FrameRenderer", "animate_simplification"]
