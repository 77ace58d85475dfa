"""Color raster to rotated RGBA texture buffer.

Rotation is applied by remapping the read index of each output pixel, so
the texture keeps the elevation grid's width and height for every
rotation. 90° and 270° are therefore stretched onto the unrotated
footprint.
"""

import logging

import numpy as np

from .constants import OPAQUE_ALPHA, TEXTURE_CHANNELS
from .errors import FusionError
from .models import Raster, Rotation, TextureBuffer

logger = logging.getLogger(__name__)


def rotated_source_index(width: int, height: int, rotation) -> np.ndarray:
    """Source sample index for every output pixel ``i`` (row-major)."""
    rotation = Rotation(int(rotation) % 4)
    i = np.arange(width * height, dtype=np.int64)
    row = i // width
    col = i % width

    if rotation == Rotation.DEG_0:
        return i
    if rotation == Rotation.DEG_180:
        return width * height - 1 - i
    if rotation == Rotation.DEG_90:
        return width * (row + 1) - 1 - col
    return width * (height - 1 - row) + col


def to_clamped_bytes(samples: np.ndarray) -> np.ndarray:
    """Store samples the way a clamped 8-bit buffer does.

    NaN becomes 0, values clamp to [0, 255], fractions round half to even.
    """
    values = np.asarray(samples, dtype=np.float64)
    values = np.nan_to_num(values, nan=0.0, posinf=255.0, neginf=0.0)
    return np.rint(np.clip(values, 0.0, 255.0)).astype(np.uint8)


def pack_texture(color: Raster, rotation=Rotation.DEG_0,
                 width: int | None = None,
                 height: int | None = None) -> TextureBuffer:
    """Pack bands 0-2 of ``color`` into an opaque RGBA buffer.

    ``width``/``height`` default to the color raster's own size; the
    fusion step passes the elevation raster's size.
    """
    width = color.width if width is None else width
    height = color.height if height is None else height
    if color.band_count < 3:
        raise FusionError(
            f"Imagery needs at least 3 bands (R, G, B), got {color.band_count}",
            stage="texture")
    if width * height != color.pixel_count:
        raise FusionError(
            f"Texture size {width}x{height} does not match imagery "
            f"{color.width}x{color.height}", stage="texture")

    src = rotated_source_index(width, height, rotation)
    rgba = np.empty((width * height, TEXTURE_CHANNELS), dtype=np.uint8)
    for channel in range(3):
        rgba[:, channel] = to_clamped_bytes(color.bands[channel][src])
    rgba[:, 3] = OPAQUE_ALPHA

    flat = rgba.reshape(-1)
    flat.setflags(write=False)
    logger.info(f"Packed {width}x{height} texture at "
                f"{Rotation(int(rotation) % 4).degrees}°")
    return TextureBuffer(width=width, height=height, rgba=flat)
