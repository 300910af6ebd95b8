"""
Generation configuration.

Settings mirror the options of the 3D photo generator; PhotoConfig adds
camera and output options and round-trips through YAML.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Union
import yaml


@dataclass
class Settings:
    """Options for one 3D photo generation pass."""
    project_from_origin: bool = True  # perspective projection instead of depth as Z
    convert_disparity_to_depth: bool = True
    remove_outliers: bool = True
    smooth_mesh: bool = True
    smooth_foreground_edges: bool = True
    separate_foreground_background: bool = True
    generate_foreground: bool = True
    generate_background: bool = True
    generate_inpainted: bool = True  # fill the holes behind the foreground
    generate_outpainted: bool = True  # extend the background past the frame
    perform_simplification: bool = True
    largest_simplified_region_size: int = 256  # grid cells per side
    maximum_delta_distance: float = 0.025
    foreground_feathering: bool = True
    max_depth: float = 1.0  # how flat the foreground ends up
    max_distance: float = 1.0  # depth range of the scene
    depth_override: Optional[float] = None

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ValueError: On the first invalid value
        """
        if self.max_depth <= 0.5:
            raise ValueError(f"max_depth must be greater than 0.5, got {self.max_depth}")
        if self.max_distance <= 0:
            raise ValueError(f"max_distance must be positive, got {self.max_distance}")
        if self.largest_simplified_region_size < 1:
            raise ValueError(
                f"largest_simplified_region_size must be at least 1, "
                f"got {self.largest_simplified_region_size}"
            )
        if self.maximum_delta_distance < 0:
            raise ValueError(
                f"maximum_delta_distance must not be negative, got {self.maximum_delta_distance}"
            )

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> Settings:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return cls(**data)


@dataclass
class PhotoConfig:
    """Full generation configuration."""
    name: str = "photo"
    horizontal_fov: float = 45.0  # FOV the photo was taken with, degrees
    vertical_fov: float = 58.0
    texture_size: Optional[int] = 1024  # extended texture is resized to this square size
    output_dir: str = "outputs"
    settings: Settings = field(default_factory=Settings)

    def validate(self) -> None:
        if not 0 < self.horizontal_fov < 180 or not 0 < self.vertical_fov < 180:
            raise ValueError(
                f"FOV must be in (0, 180) degrees, got {self.horizontal_fov}x{self.vertical_fov}"
            )
        if self.texture_size is not None and self.texture_size < 1:
            raise ValueError(f"texture_size must be positive, got {self.texture_size}")
        self.settings.validate()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "horizontal_fov": self.horizontal_fov,
            "vertical_fov": self.vertical_fov,
            "texture_size": self.texture_size,
            "output_dir": self.output_dir,
            "settings": self.settings.to_dict(),
        }

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def load(cls, path: Union[str, Path]) -> PhotoConfig:
        """Load configuration from YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> PhotoConfig:
        """Create config from dictionary."""
        settings = Settings.from_dict(data.get("settings", {}))

        config = cls(
            name=data.get("name", "photo"),
            horizontal_fov=data.get("horizontal_fov", 45.0),
            vertical_fov=data.get("vertical_fov", 58.0),
            texture_size=data.get("texture_size", 1024),
            output_dir=data.get("output_dir", "outputs"),
            settings=settings,
        )
        config.validate()
        return config
