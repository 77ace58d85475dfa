"""Terrain fusion: elevation raster + color raster -> mesh and texture."""

import logging
from typing import Callable, Optional, Tuple

from .errors import DimensionMismatch, FusionError
from .models import FusionConfig, Raster, Rotation, TerrainMesh, TextureBuffer
from .terrain import build_terrain_mesh
from .texture import pack_texture

logger = logging.getLogger(__name__)


def check_dimensions(elevation: Raster, color: Raster) -> None:
    if elevation.width != color.width or elevation.height != color.height:
        raise DimensionMismatch(elevation.size, color.size)


def fuse(elevation: Raster, color: Raster, rotation=Rotation.DEG_0,
         config: Optional[FusionConfig] = None,
         log: Optional[Callable[[str], None]] = None
         ) -> Tuple[TerrainMesh, TextureBuffer]:
    """Build a displaced terrain mesh and its matching RGBA texture.

    The dimension check runs before any other work. Both outputs are
    built fresh; nothing is returned unless every stage succeeds.

    Raises
    ------
    DimensionMismatch
        Elevation and color sizes differ.
    InvalidElevationData
        Elevation band 0 has no finite sample.
    FusionError
        Any other stage failure (``stage`` names it).
    """
    log = log or logger.info
    rotation = Rotation(int(rotation) % 4)

    check_dimensions(elevation, color)

    log("Creating terrain mesh...")
    mesh = build_terrain_mesh(elevation, config, log=log)

    log("Creating texture from imagery...")
    try:
        texture = pack_texture(color, rotation, elevation.width, elevation.height)
    except FusionError:
        raise
    except (IndexError, ValueError) as e:
        raise FusionError(f"Texture packing failed: {e}", stage="texture") from e
    log("Texture created")

    return mesh, texture
