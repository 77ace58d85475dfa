"""Raster decoding from in-memory image-file bytes.

Provides functions for:
1. Decoding a GeoTIFF (or any single-image GDAL format) held in memory
2. Reading raster files from disk, synchronously or off the event loop
3. Summarising decoded bands for logs and the CLI
"""

import asyncio
import logging
import pathlib
import warnings

import numpy as np
from rasterio.errors import NotGeoreferencedWarning
from rasterio.io import MemoryFile

from .constants import MASK_NODATA
from .errors import DecodeError
from .models import Raster

logger = logging.getLogger(__name__)


def decode(data: bytes, source: str | None = None,
           mask_nodata: bool = MASK_NODATA) -> Raster:
    """Decode raster file bytes into a :class:`Raster`.

    Every band is returned, in file order, as a flat row-major array of
    ``width * height`` samples in the file's own data type. Values pass
    through unchanged, except that with ``mask_nodata`` the declared
    no-data value of a floating-point band becomes NaN.

    Raises
    ------
    DecodeError
        If the bytes are empty, not a readable raster, truncated, or
        declare no pixels.
    """
    if not data:
        raise DecodeError("Raster buffer is empty", source=source)

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", NotGeoreferencedWarning)
            with MemoryFile(bytes(data)) as memfile:
                with memfile.open() as ds:
                    width, height, count = ds.width, ds.height, ds.count
                    if width <= 0 or height <= 0 or count <= 0:
                        raise DecodeError(
                            f"Raster declares no pixels ({width}x{height}, "
                            f"{count} bands)", source=source)
                    logger.info(f"Image dimensions: {width}x{height}, "
                                f"{count} band(s) of {ds.dtypes[0]}")
                    stack = ds.read()      # (bands, rows, cols)
                    nodata = ds.nodata
    except DecodeError:
        raise
    except Exception as e:
        raise DecodeError(f"Could not read raster: {e}", source=source) from e

    bands = []
    for band in stack:
        flat = np.ascontiguousarray(band).reshape(-1)
        if mask_nodata and nodata is not None and np.issubdtype(flat.dtype, np.floating):
            flat = np.where(flat == nodata, np.nan, flat)
        flat.setflags(write=False)
        bands.append(flat)

    logger.info("Rasters read successfully")
    return Raster(width=width, height=height, bands=tuple(bands),
                  dtype=str(stack.dtype), nodata=nodata)


def read_raster_file(path) -> Raster:
    """Read and decode a raster file from disk."""
    path = pathlib.Path(path)
    logger.info(f"Reading raster file: {path.name}")
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DecodeError(f"Could not read file: {e}", source=path.name) from e
    return decode(data, source=path.name)


async def decode_async(data: bytes, source: str | None = None,
                       mask_nodata: bool = MASK_NODATA) -> Raster:
    """Decode in a worker thread so the event loop keeps running."""
    return await asyncio.to_thread(decode, data, source, mask_nodata)


async def read_raster_file_async(path) -> Raster:
    return await asyncio.to_thread(read_raster_file, path)


def describe(raster: Raster) -> list:
    """Per-band summary dicts (finite min/max and non-finite count)."""
    summary = []
    for i, band in enumerate(raster.bands):
        values = band.astype(np.float64)
        finite = np.isfinite(values)
        entry = {"band": i + 1, "dtype": str(band.dtype),
                 "invalid": int((~finite).sum())}
        if finite.any():
            entry["min"] = float(values[finite].min())
            entry["max"] = float(values[finite].max())
        else:
            entry["min"] = entry["max"] = None
        summary.append(entry)
    return summary


def write_geotiff_bytes(bands, dtype=None, nodata=None) -> bytes:
    """Encode ``bands`` (a (count, rows, cols) array) as GeoTIFF bytes.

    Used to feed synthetic rasters through :func:`decode`.
    """
    stack = np.asarray(bands)
    if stack.ndim == 2:
        stack = stack[np.newaxis, ...]
    if dtype is not None:
        stack = stack.astype(dtype)
    count, height, width = stack.shape
    profile = {
        "driver": "GTiff",
        "width": width,
        "height": height,
        "count": count,
        "dtype": str(stack.dtype),
    }
    if nodata is not None:
        profile["nodata"] = nodata
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NotGeoreferencedWarning)
        with MemoryFile() as memfile:
            with memfile.open(**profile) as ds:
                ds.write(stack)
            return memfile.read()
