"""TerraFuse package: textured 3-D terrain from a DSM and co-registered imagery.

Import constants FIRST so ``.env`` overrides are loaded before any other
module reads its defaults.
"""

from terrafuse import constants as _constants  # noqa: F401

from terrafuse.errors import (DecodeError, DimensionMismatch, FusionError,
                              InvalidElevationData, TerraFuseError)
from terrafuse.models import (FusionConfig, Raster, Rotation, TerrainMesh,
                              TextureBuffer)
from terrafuse.raster import decode, decode_async, read_raster_file
from terrafuse.fusion import fuse
from terrafuse.session import FusionResult, FusionSession, FusionStatus
