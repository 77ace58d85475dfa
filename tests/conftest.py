import numpy as np
import pytest

from terrafuse.models import Raster
from terrafuse.raster import write_geotiff_bytes


def make_raster(width, height, *bands, dtype=np.float64):
    return Raster(width=width, height=height,
                  bands=tuple(np.asarray(b, dtype=dtype) for b in bands))


@pytest.fixture
def ramp_elevation():
    """3x3 DSM with values 1..9."""
    return make_raster(3, 3, np.arange(1, 10))


@pytest.fixture
def ramp_color():
    """3x3 RGB imagery, every band 1..9."""
    band = np.arange(1, 10)
    return make_raster(3, 3, band, band, band, dtype=np.uint8)


@pytest.fixture
def dsm_bytes():
    return write_geotiff_bytes(np.arange(1, 10, dtype=np.float32).reshape(3, 3))


@pytest.fixture
def imagery_bytes():
    band = np.arange(1, 10, dtype=np.uint8).reshape(3, 3)
    return write_geotiff_bytes(np.stack([band, band * 2, band * 3]))
