import numpy as np
import pytest

from terrafuse.errors import InvalidElevationData
from terrafuse.models import FusionConfig
from terrafuse.terrain import (build_terrain_mesh, elevation_range,
                               grid_faces, normalised_displacements)

from conftest import make_raster


def test_vertex_and_face_counts(ramp_elevation):
    mesh = build_terrain_mesh(ramp_elevation)
    assert mesh.vertex_count == 9
    assert mesh.normals.shape == (9, 3)
    assert mesh.uv.shape == (9, 2)
    assert len(mesh.faces) == 2 * 2 * 2


def test_displacements_are_proportional():
    mesh = build_terrain_mesh(make_raster(2, 2, [0, 10, 20, 30]))
    scale = mesh.elevation_scale
    assert mesh.displacements == pytest.approx(
        [0.0, scale / 3, 2 * scale / 3, scale])


def test_elevation_scale_is_fraction_of_grid_width():
    config = FusionConfig(world_scale_divisor=10.0, elevation_scale_fraction=0.2)
    mesh = build_terrain_mesh(make_raster(20, 10, np.arange(200)), config)
    assert mesh.elevation_scale == pytest.approx(2.0 * 0.2)
    assert mesh.displacements.max() == pytest.approx(mesh.elevation_scale)


def test_footprint_preserves_aspect_ratio():
    mesh = build_terrain_mesh(make_raster(40, 20, np.zeros(800)))
    width, height, _ = mesh.extents
    assert width == pytest.approx(4.0)
    assert height == pytest.approx(2.0)
    assert mesh.center[:2] == pytest.approx([0.0, 0.0])


def test_flat_raster_has_zero_displacement():
    mesh = build_terrain_mesh(make_raster(4, 4, np.zeros(16)))
    assert np.all(mesh.displacements == 0.0)
    assert np.all(np.isfinite(mesh.vertices))
    assert mesh.normals == pytest.approx(np.tile([0.0, 0.0, 1.0], (16, 1)))


def test_vertex_order_matches_raster_order():
    mesh = build_terrain_mesh(make_raster(3, 2, [0, 1, 2, 3, 4, 5]))
    # column 0 at -X, row 0 at +Y
    assert mesh.vertices[0, 0] < mesh.vertices[2, 0]
    assert mesh.vertices[0, 1] > mesh.vertices[3, 1]
    assert np.all(np.diff(mesh.displacements) > 0)
    assert tuple(mesh.uv[0]) == (0.0, 1.0)
    assert tuple(mesh.uv[5]) == (1.0, 0.0)


def test_normals_lean_away_from_slope():
    # Elevation rises toward +X in every row
    mesh = build_terrain_mesh(make_raster(3, 3, [0, 1, 2] * 3))
    assert np.all(mesh.normals[:, 0] < 0)
    assert np.all(mesh.normals[:, 2] > 0)
    assert np.linalg.norm(mesh.normals, axis=1) == pytest.approx(np.ones(9))


def test_non_finite_samples_are_ignored():
    mesh = build_terrain_mesh(make_raster(2, 2, [np.nan, 10, np.inf, 20]))
    assert (mesh.min_elevation, mesh.max_elevation) == (10.0, 20.0)
    assert mesh.displacements[0] == 0.0
    assert mesh.displacements[2] == 0.0
    assert np.all(np.isfinite(mesh.vertices))


def test_all_non_finite_elevation_fails():
    with pytest.raises(InvalidElevationData) as exc:
        build_terrain_mesh(make_raster(2, 2, [np.nan, np.inf, -np.inf, np.nan]))
    assert exc.value.stage == "elevation"


def test_single_row_grid_has_no_faces():
    mesh = build_terrain_mesh(make_raster(4, 1, [1, 2, 3, 4]))
    assert mesh.vertex_count == 4
    assert len(mesh.faces) == 0
    assert mesh.normals == pytest.approx(np.tile([0.0, 0.0, 1.0], (4, 1)))


def test_grid_faces_wind_consistently():
    faces = grid_faces(3, 2)
    assert faces.shape == (4, 3)
    assert faces.min() == 0 and faces.max() == 5


def test_elevation_range_and_flat_normalisation():
    assert elevation_range(np.array([3.0, np.nan, -1.0])) == (-1.0, 3.0)
    assert np.all(normalised_displacements(np.ones(5), 1.0, 1.0, 2.0) == 0)


def test_mesh_arrays_are_read_only(ramp_elevation):
    mesh = build_terrain_mesh(ramp_elevation)
    with pytest.raises(ValueError):
        mesh.vertices[0, 2] = 1.0
