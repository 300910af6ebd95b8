"""
Image I/O utilities.

Loads source images into PixelGrids and saves textures as PNG.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union
import numpy as np

from photo3d.core.grid import PixelGrid

logger = logging.getLogger("photo3d.core.io")


def load_pixel_grid(filepath: Union[str, Path]) -> PixelGrid:
    """
    Load an image file as a PixelGrid.

    Supports anything Pillow can open. 16-bit depth maps are scaled to [0, 1].

    Args:
        filepath: Path to image file

    Returns:
        PixelGrid with row 0 at the bottom of the image
    """
    from PIL import Image

    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Image file not found: {filepath}")

    with Image.open(filepath) as image:
        if image.mode in ("I;16", "I;16B", "I;16L", "I"):
            pixels = np.asarray(image, dtype=np.float64)
            pixels = pixels / (65535.0 if pixels.max() > 255 else 255.0)
        else:
            if image.mode not in ("L", "RGB", "RGBA"):
                image = image.convert("RGBA")
            pixels = np.asarray(image)

    logger.debug(f"Loaded {filepath.name}: {pixels.shape}")
    return PixelGrid(np.flipud(pixels))


def save_texture(
    texture: np.ndarray,
    filepath: Union[str, Path],
    size: Optional[int] = None,
) -> Path:
    """
    Save an RGBA float texture as PNG.

    Args:
        texture: HxWx4 array in [0, 1], row 0 = v = 0
        filepath: Output path
        size: Resize to size x size when given

    Returns:
        Path written
    """
    from PIL import Image

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    data = (np.clip(np.flipud(texture), 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
    image = Image.fromarray(data)
    if size is not None and image.size != (size, size):
        image = image.resize((size, size), Image.Resampling.BILINEAR)

    image.save(filepath)
    logger.info(f"Saved texture: {filepath}")
    return filepath

