import io
import threading

import numpy as np
import pytest
import trimesh
from PIL import Image

from terrafuse.fusion import fuse
from terrafuse.models import Rotation
from terrafuse.presenter import (TerrainWatcher, encode_glb, encode_png,
                                 frame_camera, to_trimesh)
from terrafuse.session import LatestResult

from conftest import make_raster


@pytest.fixture
def pair(ramp_elevation, ramp_color):
    return fuse(ramp_elevation, ramp_color)


def test_frame_camera_looks_at_center(pair):
    mesh, _ = pair
    camera = frame_camera(mesh)
    # mesh frame is Z-up, the camera pose is glTF Y-up
    cx, cy, cz = mesh.center
    size = float(mesh.extents.max())
    assert camera.target == pytest.approx((cx, cz, -cy))
    assert camera.position == pytest.approx((cx, cz + size, -cy + size))


def test_camera_target_is_center_of_exported_glb():
    elevation = make_raster(20, 10, np.tile(np.arange(20), 10))
    color = make_raster(20, 10, *(np.full(200, 128),) * 3)
    mesh, texture = fuse(elevation, color)
    terrain = LatestResult().publish(mesh, texture, Rotation.DEG_0)

    scene = trimesh.load(io.BytesIO(encode_glb(terrain)), file_type="glb")
    center = scene.bounds.mean(axis=0)
    camera = frame_camera(mesh)
    assert camera.target == pytest.approx(tuple(center))
    # camera sits above the model in the exported frame
    assert camera.position[1] > scene.bounds[1][1]


def test_to_trimesh_keeps_vertex_order(pair):
    mesh, texture = pair
    tm = to_trimesh(*pair)
    assert len(tm.vertices) == mesh.vertex_count
    assert len(tm.faces) == len(mesh.faces)
    # Z-up displacement becomes glTF Y-up
    assert tm.vertices[:, 1] == pytest.approx(mesh.displacements)


def test_encode_glb(pair):
    latest = LatestResult()
    terrain = latest.publish(*pair, Rotation.DEG_0)
    data = encode_glb(terrain)
    assert data[:4] == b"glTF"


def test_encode_png(pair):
    _, texture = pair
    image = Image.open(io.BytesIO(encode_png(texture)))
    assert image.size == (3, 3)


def test_watcher_renders_latest_version(pair):
    latest = LatestResult()
    rendered = threading.Event()
    versions = []

    def render(terrain):
        versions.append(terrain.version)
        rendered.set()

    watcher = TerrainWatcher(latest, render, poll_interval=0.05).start()
    try:
        latest.publish(*pair, Rotation.DEG_0)
        assert rendered.wait(5)
    finally:
        watcher.stop(timeout=5)
    assert versions == [1]
    assert watcher.last_version == 1
