"""Configuration constants and environment overrides."""

import os
import pathlib
import logging

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

BASE_DIR = pathlib.Path(__file__).parent.parent.absolute()


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


# ── Terrain geometry ─────────────────────────────────────────────────
# Raster pixels per world unit along both grid axes (keeps aspect ratio).
WORLD_SCALE_DIVISOR = _env_float("TERRAFUSE_WORLD_SCALE_DIVISOR", 10.0)

# Full elevation range maps to this fraction of the grid's world width.
ELEVATION_SCALE_FRACTION = _env_float("TERRAFUSE_ELEVATION_SCALE_FRACTION", 0.2)

# Replace a raster's declared no-data value with NaN while decoding.
MASK_NODATA = _env_flag("TERRAFUSE_MASK_NODATA")

# ── Texture ──────────────────────────────────────────────────────────
OPAQUE_ALPHA = 255
TEXTURE_CHANNELS = 4

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
