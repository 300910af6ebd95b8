"""
Command-line interface for photo3d.

Provides commands for generating 3D photo meshes, writing a default
configuration and rendering the simplification animation.
"""

from __future__ import annotations

import dataclasses
import logging
from enum import Enum
from pathlib import Path
from typing import Optional
import typer
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn

app = typer.Typer(
    name="photo3d",
    help="Turn a photo, its depth map and a foreground cutout into 3D photo meshes"
)
console = Console()


class AnimatedMesh(str, Enum):
    background = "background"
    foreground = "foreground"


def _configure_logging(verbose: bool, timing: bool) -> None:
    if verbose or timing:
        logging.basicConfig(
            level=logging.INFO if not verbose else logging.DEBUG,
            format='%(name)s - %(message)s'
        )


def _load_config(config_path: Optional[Path], hfov: Optional[float], vfov: Optional[float]):
    from photo3d.config import PhotoConfig

    config = PhotoConfig.load(config_path) if config_path else PhotoConfig()
    if hfov is not None:
        config.horizontal_fov = hfov
    if vfov is not None:
        config.vertical_fov = vfov
    config.validate()
    return config


def _load_inputs(color_path: Path, depth_path: Path, foreground_path: Path):
    from photo3d.core.io import load_pixel_grid

    return (
        load_pixel_grid(color_path),
        load_pixel_grid(depth_path),
        load_pixel_grid(foreground_path),
    )


@app.command()
def generate(
    color_path: Path = typer.Argument(..., help="Color photo"),
    depth_path: Path = typer.Argument(..., help="Depth or disparity map"),
    foreground_path: Path = typer.Argument(..., help="Foreground cutout (transparent background)"),
    output_path: Optional[Path] = typer.Option(None, "-o", "--output", help="Output scene (GLB, GLTF, OBJ)"),
    config_path: Optional[Path] = typer.Option(None, "-c", "--config", help="Config YAML"),
    hfov: Optional[float] = typer.Option(None, "--hfov", help="Horizontal FOV in degrees"),
    vfov: Optional[float] = typer.Option(None, "--vfov", help="Vertical FOV in degrees"),
    simplify: Optional[bool] = typer.Option(None, "--simplify/--no-simplify", help="Quadtree simplification"),
    texture_dir: Optional[Path] = typer.Option(None, "--texture-dir", help="Where to write the extended background texture"),
    timing: bool = typer.Option(False, "--timing", help="Show detailed timing information"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable verbose logging"),
):
    """
    Generate foreground and extended background meshes.
    """
    from photo3d.export import PngTextureSink, SceneMeshSink
    from photo3d.pipeline import PhotoMeshPipeline

    _configure_logging(verbose, timing)

    config = _load_config(config_path, hfov, vfov)
    if simplify is not None:
        config.settings.perform_simplification = simplify

    output_dir = Path(config.output_dir)
    output_path = output_path or output_dir / f"{config.name}.glb"
    texture_sink = PngTextureSink(texture_dir or output_path.parent, size=config.texture_size)
    mesh_sink = SceneMeshSink()

    console.print(f"[bold blue]Loading images:[/bold blue] {color_path.name}, {depth_path.name}, {foreground_path.name}")
    color, depth, foreground = _load_inputs(color_path, depth_path, foreground_path)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        disable=verbose or timing,  # Disable spinner when logging
    ) as progress:
        progress.add_task("Generating...", total=None)
        result = PhotoMeshPipeline(config).generate(
            color, depth, foreground,
            mesh_sink=mesh_sink,
            texture_sink=texture_sink,
            enable_timing=True,
        )

    if timing and result.timing is not None:
        console.print(f"\n[bold cyan]Timing Summary[/bold cyan]")
        console.print(result.timing.summary(), markup=False, highlight=False)
        slowest = result.timing.get_slowest(1)
        if slowest:
            console.print(f"[bold]Slowest stage:[/bold] {slowest[0].operation}")

    table = Table(title="Meshes")
    table.add_column("Mesh", style="cyan")
    table.add_column("Vertices", justify="right")
    table.add_column("Triangles", justify="right")
    for name, mesh in result.meshes.items():
        table.add_row(name, str(mesh.num_vertices), str(mesh.num_triangles))
    console.print(table)

    if result.extended is not None:
        stats = result.synthesis_stats
        console.print(
            f"Synthesized {stats.hole_vertices} hole vertices, "
            f"{stats.outpainted_vertices} outpainted vertices"
        )
        if stats.fallback_samples:
            console.print(f"[yellow]{stats.fallback_samples} hole-fill fallbacks[/yellow]")

    if not result.meshes:
        console.print("[yellow]No meshes generated, nothing to export[/yellow]")
        return

    mesh_sink.export(output_path)
    console.print(f"[green]Saved to:[/green] {output_path}")
    for path in texture_sink.written:
        console.print(f"[green]Texture:[/green] {path}")


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(..., help="Where to write the config YAML"),
    name: Optional[str] = typer.Option(None, "-n", "--name", help="Photo name"),
):
    """
    Write the default configuration.
    """
    from photo3d.config import PhotoConfig

    config = PhotoConfig()
    if name:
        config.name = name
    config.save(path)
    console.print(f"[green]Config written to:[/green] {path}")


@app.command()
def animate(
    color_path: Path = typer.Argument(..., help="Color photo"),
    depth_path: Path = typer.Argument(..., help="Depth or disparity map"),
    foreground_path: Path = typer.Argument(..., help="Foreground cutout (transparent background)"),
    frames_dir: Path = typer.Option(..., "-o", "--output", help="Directory for PNG frames"),
    mesh: AnimatedMesh = typer.Option(AnimatedMesh.background, "--mesh", help="Which mesh to simplify"),
    every: int = typer.Option(1, "--every", min=1, help="Render one frame per N collapses"),
    config_path: Optional[Path] = typer.Option(None, "-c", "--config", help="Config YAML"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable verbose logging"),
):
    """
    Render the quadtree simplification step by step.
    """
    from photo3d.evaluation.visualize import animate_simplification
    from photo3d.pipeline import PhotoMeshPipeline
    from photo3d.simplify.incremental import IncrementalSimplifier

    _configure_logging(verbose, False)

    config = _load_config(config_path, None, None)
    settings = config.settings
    config.settings = dataclasses.replace(
        settings,
        perform_simplification=False,
        separate_foreground_background=True,
        generate_foreground=mesh == AnimatedMesh.foreground,
        generate_background=mesh == AnimatedMesh.background,
    )

    color, depth, foreground = _load_inputs(color_path, depth_path, foreground_path)
    cache = PhotoMeshPipeline(config).generate(color, depth, foreground, enable_timing=False).cache

    if mesh == AnimatedMesh.background:
        simplifier = IncrementalSimplifier(
            cache.background_positions, cache.background_triangles,
            cache.extended_mask, True,
            cache.extended_width, cache.extended_height,
            max_region_size=settings.largest_simplified_region_size,
            max_delta_distance=settings.maximum_delta_distance,
        )
    else:
        simplifier = IncrementalSimplifier(
            cache.foreground_positions, cache.foreground_triangles,
            cache.background_mask, False,
            cache.width, cache.height,
            max_region_size=settings.largest_simplified_region_size,
            max_delta_distance=settings.maximum_delta_distance,
            skip_border=True,
        )

    frames = animate_simplification(simplifier, frames_dir, every=every, prefix=mesh.value)
    console.print(f"[green]Rendered {len(frames)} frames to:[/green] {frames_dir}")


if __name__ == "__main__":
    app()
