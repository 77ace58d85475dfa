"""Exception hierarchy for the decode and fusion pipeline."""

from typing import Optional, Tuple


class TerraFuseError(Exception):
    """Base class for every failure raised by terrafuse."""


class DecodeError(TerraFuseError):
    """Raster bytes are empty, malformed, truncated or declare no pixels."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class FusionError(TerraFuseError):
    """A fusion stage failed. ``stage`` names the step that raised."""

    def __init__(self, message: str, stage: str = "fuse"):
        self.stage = stage
        super().__init__(message)


class DimensionMismatch(FusionError):
    def __init__(self, elevation_size: Tuple[int, int],
                 color_size: Tuple[int, int]):
        self.elevation_size = elevation_size
        self.color_size = color_size
        ew, eh = elevation_size
        cw, ch = color_size
        super().__init__(
            f"Dimension mismatch. DSM: {ew}x{eh}, Imagery: {cw}x{ch}",
            stage="validate")


class InvalidElevationData(FusionError):
    def __init__(self, message: str = "Elevation raster has no finite samples"):
        super().__init__(message, stage="elevation")
