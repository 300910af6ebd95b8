"""
Mesh and texture sinks.

The pipeline never writes files itself; it hands every finished mesh to a
MeshSink and the extended background texture to a TextureSink. In-memory
sinks are used by tests and the animation command, the scene/PNG sinks by
the CLI.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Protocol, Union
import numpy as np

from photo3d.core.io import save_texture
from photo3d.core.mesh import MeshData

logger = logging.getLogger("photo3d.export")


class MeshSink(Protocol):
    def add_mesh(
        self,
        name: str,
        positions: np.ndarray,
        uvs: np.ndarray,
        triangles: np.ndarray,
        texture: Optional[np.ndarray],
        parent: Optional[Any] = None,
        material: Optional[Any] = None,
    ) -> Any:
        ...

    def add_group(self, name: str, parent: Optional[Any] = None) -> Any:
        ...


class TextureSink(Protocol):
    def save_texture(self, name: str, rgba: np.ndarray) -> Any:
        ...


class MemoryMeshSink:
    """Keeps every mesh as MeshData, keyed by name."""

    def __init__(self):
        self.meshes: dict[str, MeshData] = {}
        self.textures: dict[str, Optional[np.ndarray]] = {}
        self.parents: dict[str, Optional[Any]] = {}
        self.groups: list[str] = []

    def add_mesh(self, name, positions, uvs, triangles, texture, parent=None, material=None) -> str:
        self.meshes[name] = MeshData(vertices=positions, uvs=uvs, triangles=triangles, name=name)
        self.textures[name] = texture
        self.parents[name] = parent
        return name

    def add_group(self, name: str, parent: Optional[Any] = None) -> str:
        self.parents[name] = parent
        self.groups.append(name)
        return name

    def __contains__(self, name: str) -> bool:
        return name in self.meshes

    def __len__(self) -> int:
        return len(self.meshes)


class SceneMeshSink:
    """
    Collects meshes into a trimesh scene.

    Each mesh becomes a named node carrying TextureVisuals built from its
    UVs and texture (or the given material). Groups are empty nodes that
    meshes can be parented to. Export to GLB/GLTF/OBJ with
    export().
    """

    def __init__(self):
        import trimesh

        self.scene = trimesh.Scene()

    def add_group(self, name: str, parent: Optional[Any] = None) -> str:
        """Add an empty node other meshes can be parented to."""
        self.scene.graph.update(frame_from=parent or self.scene.graph.base_frame, frame_to=name)
        return name

    def add_mesh(self, name, positions, uvs, triangles, texture, parent=None, material=None) -> str:
        from trimesh.visual.texture import TextureVisuals

        mesh = MeshData(vertices=positions, uvs=uvs, triangles=triangles, name=name)
        tm = mesh.to_trimesh(texture)
        if material is not None:
            tm.visual = TextureVisuals(uv=mesh.uvs, material=material)

        if parent is not None and parent not in self.scene.graph.nodes:
            logger.warning(f"Parent node {parent!r} not in scene, attaching {name!r} to root")
            parent = None

        self.scene.add_geometry(tm, node_name=name, geom_name=name, parent_node_name=parent)
        logger.debug(f"Added {mesh!r} to scene")
        return name

    def export(self, filepath: Union[str, Path]) -> Path:
        """Write the scene; format follows the file extension."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        self.scene.export(str(filepath))
        logger.info(f"Exported scene with {len(self.scene.geometry)} meshes: {filepath}")
        return filepath


class MemoryTextureSink:
    def __init__(self):
        self.textures: dict[str, np.ndarray] = {}

    def save_texture(self, name: str, rgba: np.ndarray) -> str:
        self.textures[name] = np.array(rgba, dtype=np.float64)
        return name


class PngTextureSink:
    """
    Writes textures as PNG files for an external content-fill tool.

    Args:
        directory: Output directory
        size: Square size the texture is resized to, None keeps the grid size
    """

    def __init__(self, directory: Union[str, Path], size: Optional[int] = 1024):
        self.directory = Path(directory)
        self.size = size
        self.written: list[Path] = []

    def save_texture(self, name: str, rgba: np.ndarray) -> Path:
        path = save_texture(rgba, self.directory / f"{name}.png", size=self.size)
        self.written.append(path)
        return path
