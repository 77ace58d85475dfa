"""Fusion session: rotation state, last-supplied rasters and the committed result.

A :class:`FusionSession` owns everything the "combine" and "rotate"
actions need between calls. Pipeline failures are returned as
:class:`FusionResult` values; the committed terrain is only replaced when
a fuse fully succeeds.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional, Tuple

from .constants import MASK_NODATA
from .errors import DecodeError, FusionError, TerraFuseError
from .fusion import fuse
from .models import FusionConfig, Raster, Rotation, TerrainMesh, TextureBuffer
from .raster import decode_async

logger = logging.getLogger(__name__)


class FusionStatus(str, Enum):
    completed = "completed"
    failed = "failed"
    skipped = "skipped"


@dataclass(frozen=True)
class FusedTerrain:
    """An immutable mesh+texture pair as handed to the presenter."""
    mesh: TerrainMesh
    texture: TextureBuffer
    rotation: Rotation
    version: int


@dataclass(frozen=True)
class FusionResult:
    status: FusionStatus
    rotation: Rotation
    terrain: Optional[FusedTerrain] = None
    error: Optional[TerraFuseError] = None

    @property
    def ok(self) -> bool:
        return self.status != FusionStatus.failed

    @property
    def stage(self) -> Optional[str]:
        if self.error is None:
            return None
        if isinstance(self.error, DecodeError):
            return "decode"
        return getattr(self.error, "stage", None)

    @property
    def message(self) -> str:
        if self.error is not None:
            return str(self.error)
        if self.status == FusionStatus.skipped:
            return f"Rotation set to {self.rotation.degrees}°"
        return "Terrain creation complete"


class LatestResult:
    """Single-slot handoff between the fusion side and a render loop.

    ``publish`` swaps in a whole new :class:`FusedTerrain`; readers only
    ever see complete pairs.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._current: Optional[FusedTerrain] = None
        self._version = 0

    @property
    def version(self) -> int:
        with self._cond:
            return self._version

    def publish(self, mesh: TerrainMesh, texture: TextureBuffer,
                rotation: Rotation) -> FusedTerrain:
        with self._cond:
            self._version += 1
            terrain = FusedTerrain(mesh=mesh, texture=texture,
                                   rotation=rotation, version=self._version)
            self._current = terrain
            self._cond.notify_all()
        return terrain

    def snapshot(self) -> Optional[FusedTerrain]:
        with self._cond:
            return self._current

    def wait_for_update(self, after_version: int,
                        timeout: Optional[float] = None) -> Optional[FusedTerrain]:
        """Block until a version newer than ``after_version`` is published.

        Returns None on timeout.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._version > after_version,
                                       timeout=timeout):
                return None
            return self._current


class LogSequence:
    """Append-only, thread-safe list of status messages."""

    def __init__(self):
        self._lock = threading.Lock()
        self._messages: list = []

    def append(self, message: str) -> None:
        with self._lock:
            self._messages.append(message)

    def tail(self, n: int = 20) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._messages[-n:]) if n > 0 else ()

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(tuple(self._messages))


class FusionSession:
    """One user's combine/rotate workflow.

    config: world-scale constants used for every fuse in this session.
    mask_nodata: turn declared no-data values into NaN while decoding.
    progress_callback: optional ``fn(pct, msg)`` mirroring the log.
    """

    def __init__(self, config: Optional[FusionConfig] = None,
                 progress_callback: Optional[Callable[[float, str], None]] = None,
                 mask_nodata: bool = MASK_NODATA):
        self.config = config or FusionConfig()
        self.mask_nodata = mask_nodata
        self.progress_callback = progress_callback
        self.latest = LatestResult()
        self.log = LogSequence()
        self._rotation = Rotation.DEG_0
        self._elevation: Optional[Raster] = None
        self._color: Optional[Raster] = None
        self._has_fused = False
        self._active_progress = progress_callback
        self._lock = asyncio.Lock()

    @property
    def rotation(self) -> Rotation:
        return self._rotation

    @property
    def has_terrain(self) -> bool:
        return self._has_fused

    def _log(self, message: str, pct: Optional[float] = None) -> None:
        logger.info(message)
        self.log.append(message)
        if self._active_progress and pct is not None:
            self._active_progress(pct, message)

    def _use_progress(self, progress_callback) -> None:
        self._active_progress = progress_callback or self.progress_callback

    async def combine(self, elevation_bytes: bytes, color_bytes: bytes,
                      elevation_name: str = "DSM", color_name: str = "Imagery",
                      progress_callback=None,
                      mask_nodata: Optional[bool] = None) -> FusionResult:
        """Decode both rasters and fuse them at the current rotation.

        ``mask_nodata`` overrides the session setting for this call.
        """
        if mask_nodata is None:
            mask_nodata = self.mask_nodata
        async with self._lock:
            self._use_progress(progress_callback)
            self._log("Starting 3D combination process...", 5)
            try:
                self._log(f"Reading {elevation_name} file...", 10)
                elevation = await decode_async(elevation_bytes, elevation_name,
                                               mask_nodata)
                self._log(f"{elevation_name} file processed", 25)

                self._log(f"Reading {color_name} file...", 30)
                color = await decode_async(color_bytes, color_name, mask_nodata)
                self._log(f"{color_name} file processed", 45)
            except DecodeError as e:
                return self._failed(e)

            self._elevation, self._color = elevation, color
            return await self._fuse_current()

    async def fuse_rasters(self, elevation: Raster, color: Raster,
                           progress_callback=None) -> FusionResult:
        """Fuse already-decoded rasters at the current rotation."""
        async with self._lock:
            self._use_progress(progress_callback)
            self._elevation, self._color = elevation, color
            return await self._fuse_current()

    async def rotate(self, progress_callback=None) -> FusionResult:
        """Advance rotation by 90° and rebuild the terrain if one exists."""
        async with self._lock:
            self._use_progress(progress_callback)
            self._rotation = self._rotation.next()
            self._log(f"Rotation set to {self._rotation.degrees}°")
            if not self._has_fused or self._elevation is None:
                return FusionResult(status=FusionStatus.skipped,
                                    rotation=self._rotation)
            return await self._fuse_current()

    async def _fuse_current(self) -> FusionResult:
        elevation, color, rotation = self._elevation, self._color, self._rotation
        self._log("Creating terrain...", 50)
        try:
            mesh, texture = await asyncio.to_thread(
                fuse, elevation, color, rotation, self.config, self._log)
        except TerraFuseError as e:
            return self._failed(e)
        except Exception as e:
            logger.exception("Unexpected failure while fusing terrain")
            return self._failed(FusionError(str(e), stage="fuse"))

        terrain = self.latest.publish(mesh, texture, rotation)
        self._has_fused = True
        self._log("Terrain creation complete", 100)
        return FusionResult(status=FusionStatus.completed, rotation=rotation,
                            terrain=terrain)

    def _failed(self, error: TerraFuseError) -> FusionResult:
        self._log(f"Error: {error}")
        return FusionResult(status=FusionStatus.failed, rotation=self._rotation,
                            error=error)
