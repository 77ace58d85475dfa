"""Data classes shared by the decoder, the fusion engine and the session."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Tuple

import numpy as np
from PIL import Image

from .constants import (ELEVATION_SCALE_FRACTION, OPAQUE_ALPHA,
                        TEXTURE_CHANNELS, WORLD_SCALE_DIVISOR)


class Rotation(IntEnum):
    """Clockwise rotation of the color raster relative to the elevation grid."""
    DEG_0 = 0
    DEG_90 = 1
    DEG_180 = 2
    DEG_270 = 3

    def next(self) -> "Rotation":
        return Rotation((self.value + 1) % 4)

    @property
    def degrees(self) -> int:
        return self.value * 90


@dataclass(frozen=True)
class Raster:
    """A decoded raster: one flat, row-major sample array per band."""
    width: int
    height: int
    bands: Tuple[np.ndarray, ...]
    dtype: str = "float64"
    nodata: float | None = None

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Raster must have positive size, got "
                             f"{self.width}x{self.height}")
        n = self.width * self.height
        for i, band in enumerate(self.bands):
            if band.ndim != 1 or len(band) != n:
                raise ValueError(f"Band {i} has shape {band.shape}, "
                                 f"expected ({n},)")

    @property
    def band_count(self) -> int:
        return len(self.bands)

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height)"""
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def band_2d(self, index: int) -> np.ndarray:
        """Band ``index`` viewed as a (height, width) array."""
        return self.bands[index].reshape(self.height, self.width)


@dataclass(frozen=True)
class FusionConfig:
    """Tunable world-scale constants for mesh construction."""
    world_scale_divisor: float = WORLD_SCALE_DIVISOR
    elevation_scale_fraction: float = ELEVATION_SCALE_FRACTION

    def footprint(self, width: int, height: int) -> Tuple[float, float]:
        return width / self.world_scale_divisor, height / self.world_scale_divisor

    def elevation_scale(self, width: int) -> float:
        return (width / self.world_scale_divisor) * self.elevation_scale_fraction


@dataclass(frozen=True, eq=False)
class TerrainMesh:
    """Displaced grid mesh. Vertex ``j`` corresponds to raster sample ``j``.

    The grid lies in the XY plane (row 0 at +Y, column 0 at -X) and is
    displaced along +Z. ``faces`` holds two triangles per grid cell.
    """
    width: int
    height: int
    vertices: np.ndarray     # (width*height, 3)
    normals: np.ndarray      # (width*height, 3)
    faces: np.ndarray        # ((width-1)*(height-1)*2, 3)
    uv: np.ndarray           # (width*height, 2)
    min_elevation: float
    max_elevation: float
    elevation_scale: float

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def displacements(self) -> np.ndarray:
        return self.vertices[:, 2]

    @property
    def bounds(self) -> np.ndarray:
        """[[xmin, ymin, zmin], [xmax, ymax, zmax]]"""
        return np.array([self.vertices.min(axis=0), self.vertices.max(axis=0)])

    @property
    def center(self) -> np.ndarray:
        return self.bounds.mean(axis=0)

    @property
    def extents(self) -> np.ndarray:
        lo, hi = self.bounds
        return hi - lo


@dataclass(frozen=True, eq=False)
class TextureBuffer:
    """Row-major RGBA bytes, ``width*height*4`` long, alpha always opaque."""
    width: int
    height: int
    rgba: np.ndarray = field(repr=False)

    def __post_init__(self):
        expected = self.width * self.height * TEXTURE_CHANNELS
        if self.rgba.dtype != np.uint8 or self.rgba.shape != (expected,):
            raise ValueError(f"RGBA buffer must be {expected} uint8 values, "
                             f"got {self.rgba.shape} {self.rgba.dtype}")

    def pixel(self, index: int) -> Tuple[int, int, int, int]:
        start = index * TEXTURE_CHANNELS
        r, g, b, a = self.rgba[start:start + TEXTURE_CHANNELS]
        return int(r), int(g), int(b), int(a)

    @property
    def alpha(self) -> np.ndarray:
        return self.rgba[3::TEXTURE_CHANNELS]

    def is_opaque(self) -> bool:
        return bool(np.all(self.alpha == OPAQUE_ALPHA))

    def to_image(self) -> Image.Image:
        pixels = self.rgba.reshape(self.height, self.width, TEXTURE_CHANNELS)
        return Image.fromarray(np.ascontiguousarray(pixels))
