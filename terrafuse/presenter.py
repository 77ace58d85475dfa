"""Hand-off helpers for whatever displays the fused terrain.

Provides functions for:
1. Framing a camera on a terrain mesh
2. Encoding the mesh+texture pair as in-memory GLB / PNG bytes
3. A background watcher that hands each newly committed terrain to a
   render callback
"""

import io
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
import trimesh
from trimesh.visual.material import PBRMaterial

from .models import TerrainMesh, TextureBuffer
from .session import FusedTerrain, LatestResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CameraPose:
    position: tuple
    target: tuple
    max_dimension: float


def frame_camera(mesh: TerrainMesh) -> CameraPose:
    """Place the camera above and in front of the mesh, looking at its center.

    The pose is in the glTF (Y-up) frame that :func:`encode_glb` exports.
    """
    center = _z_up_to_y_up(mesh.center[np.newaxis, :])[0]
    max_dim = float(mesh.extents.max())
    position = (float(center[0]),
                float(center[1]) + max_dim,
                float(center[2]) + max_dim)
    return CameraPose(position=position,
                      target=tuple(float(c) for c in center),
                      max_dimension=max_dim)


def _z_up_to_y_up(points: np.ndarray) -> np.ndarray:
    # glTF is Y-up: (x, y, z) → (x, z, -y)
    out = np.empty_like(points)
    out[:, 0] = points[:, 0]
    out[:, 1] = points[:, 2]
    out[:, 2] = -points[:, 1]
    return out


def to_trimesh(mesh: TerrainMesh, texture: TextureBuffer) -> trimesh.Trimesh:
    """Textured, double-sided trimesh in glTF (Y-up) orientation."""
    image = texture.to_image()
    material = PBRMaterial(
        baseColorTexture=image,
        metallicFactor=0.0,
        roughnessFactor=0.9,
        doubleSided=True,
        name="terrain",
    )
    tm = trimesh.Trimesh(
        vertices=_z_up_to_y_up(mesh.vertices),
        faces=np.array(mesh.faces),
        vertex_normals=_z_up_to_y_up(mesh.normals),
        process=False,
    )
    tm.visual = trimesh.visual.TextureVisuals(
        uv=np.array(mesh.uv), image=image, material=material)
    return tm


def encode_glb(terrain: FusedTerrain) -> bytes:
    """GLB bytes for the committed pair. Nothing is written to disk."""
    scene = trimesh.Scene()
    scene.add_geometry(to_trimesh(terrain.mesh, terrain.texture),
                       geom_name="terrain")
    data = scene.export(file_type='glb')
    logger.info(f"Encoded terrain v{terrain.version} as GLB "
                f"({len(data) / 1024:.1f} KB)")
    return data


def encode_png(texture: TextureBuffer) -> bytes:
    buf = io.BytesIO()
    texture.to_image().save(buf, format="PNG")
    return buf.getvalue()


class TerrainWatcher:
    """Background thread calling ``render(terrain)`` for each new version.

    Versions published faster than ``render`` runs are coalesced; the
    callback always receives the newest pair.
    """

    def __init__(self, latest: LatestResult,
                 render: Callable[[FusedTerrain], None],
                 poll_interval: float = 0.5):
        self.latest = latest
        self.render = render
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_version = 0

    def start(self) -> "TerrainWatcher":
        self._thread = threading.Thread(target=self._run, name="terrain-watcher",
                                        daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.is_set():
            terrain = self.latest.wait_for_update(self.last_version,
                                                  timeout=self.poll_interval)
            if terrain is None:
                continue
            self.last_version = terrain.version
            try:
                self.render(terrain)
            except Exception:
                logger.exception(f"Render callback failed for terrain "
                                 f"v{terrain.version}")
