"""
Visualization of the simplification process.

Renders the triangle list of a grid mesh in grid space (column, row) as a
wireframe, one PNG per incremental collapse, so the frames can be stitched
into an animation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union
import numpy as np

from photo3d.simplify.incremental import IncrementalSimplifier, SimplificationStep
from photo3d.simplify.quadtree import Region
from photo3d.utils.timing import ProgressTimer

logger = logging.getLogger("photo3d.evaluation.visualize")


class FrameRenderer:
    """
    Draws grid meshes with matplotlib.

    Args:
        width, height: Grid dimensions
        figsize: Figure size in inches
        dpi: Output resolution
    """

    def __init__(self, width: int, height: int, figsize: tuple[float, float] = (6.0, 6.0), dpi: int = 100):
        self.width = width
        self.height = height
        self.figsize = figsize
        self.dpi = dpi
        rows, cols = np.divmod(np.arange(width * height), width)
        self._x = cols.astype(np.float64)
        self._y = rows.astype(np.float64)

    def render(
        self,
        triangles: np.ndarray,
        filepath: Union[str, Path],
        region: Optional[Region] = None,
        title: str = "",
    ) -> Path:
        """
        Save a wireframe of the triangles, highlighting the last collapsed region.

        Returns:
            Path written
        """
        from matplotlib.figure import Figure
        from matplotlib.patches import Rectangle

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        fig = Figure(figsize=self.figsize, dpi=self.dpi)
        ax = fig.add_subplot(111)

        triangles = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
        if len(triangles):
            ax.triplot(self._x, self._y, triangles, color="k", linewidth=0.3)

        if region is not None:
            ax.add_patch(Rectangle(
                (region.x1, region.y1), region.width, region.height,
                fill=False, edgecolor="tab:red", linewidth=1.5,
            ))

        ax.set_xlim(-0.5, self.width - 0.5)
        ax.set_ylim(-0.5, self.height - 0.5)
        ax.set_aspect("equal")
        ax.set_axis_off()
        ax.set_title(title or f"{len(triangles)} triangles")

        fig.tight_layout()
        fig.savefig(filepath)
        return filepath

    def render_step(self, step: SimplificationStep, filepath: Union[str, Path]) -> Path:
        return self.render(
            step.triangles, filepath, region=step.region,
            title=f"step {step.index}: {len(step.triangles)} triangles",
        )


def animate_simplification(
    simplifier: IncrementalSimplifier,
    output_dir: Union[str, Path],
    every: int = 1,
    prefix: str = "frame",
) -> list[Path]:
    """
    Run an incremental simplification and render frames along the way.

    Args:
        simplifier: Simplifier over a dense grid mesh
        output_dir: Directory for the PNG frames
        every: Render one frame per this many collapses
        prefix: Frame file name prefix

    Returns:
        Paths of the written frames, the first showing the dense mesh
    """
    if every < 1:
        raise ValueError(f"every must be at least 1, got {every}")

    output_dir = Path(output_dir)
    renderer = FrameRenderer(simplifier.width, simplifier.height)
    frames = [renderer.render(simplifier.triangles, output_dir / f"{prefix}_00000.png", title="dense")]

    progress = ProgressTimer(operation_name="Rendering frames")
    last: Optional[SimplificationStep] = None
    for step in simplifier.steps():
        last = step
        if (step.index + 1) % every:
            continue
        frames.append(renderer.render_step(step, output_dir / f"{prefix}_{len(frames):05d}.png"))
        progress.update()

    # Always end on the final mesh
    if last is not None and (last.index + 1) % every:
        frames.append(renderer.render_step(last, output_dir / f"{prefix}_{len(frames):05d}.png"))
        progress.update()

    progress.finish()
    logger.info(f"Rendered {len(frames)} frames to {output_dir}")
    return frames
