"""Elevation raster to displaced grid mesh.

Provides functions for:
1. Finding the finite elevation range of a DSM band
2. Normalising elevations into per-vertex displacements
3. Building the regular grid mesh (vertices, faces, UVs) and its normals
"""

import logging

import numpy as np
import trimesh

from .errors import FusionError, InvalidElevationData
from .models import FusionConfig, Raster, TerrainMesh

logger = logging.getLogger(__name__)


def elevation_range(samples: np.ndarray) -> tuple:
    """Return (min, max) over the finite samples.

    Raises InvalidElevationData when no sample is finite.
    """
    values = np.asarray(samples, dtype=np.float64)
    finite = np.isfinite(values)
    if not finite.any():
        raise InvalidElevationData(
            f"Elevation raster has no finite samples ({len(values)} checked)")
    valid = values[finite]
    return float(valid.min()), float(valid.max())


def normalised_displacements(samples: np.ndarray, min_elevation: float,
                             max_elevation: float,
                             elevation_scale: float) -> np.ndarray:
    """Map elevations onto [0, elevation_scale].

    A flat band (max == min) maps to all zeros. Non-finite samples also
    map to zero so no NaN reaches the mesh.
    """
    values = np.asarray(samples, dtype=np.float64)
    span = max_elevation - min_elevation
    if span == 0:
        return np.zeros(len(values), dtype=np.float64)
    disp = (values - min_elevation) / span * elevation_scale
    disp[~np.isfinite(values)] = 0.0
    return disp


def grid_vertices(width: int, height: int, grid_width: float,
                  grid_height: float) -> np.ndarray:
    """Flat grid positions, row-major, centered on the origin.

    Column 0 sits at -X, row 0 at +Y; Z is left at zero.
    """
    dx = grid_width / (width - 1) if width > 1 else 0.0
    dy = grid_height / (height - 1) if height > 1 else 0.0
    xs = np.arange(width, dtype=np.float64) * dx - (dx * (width - 1)) / 2.0
    ys = (dy * (height - 1)) / 2.0 - np.arange(height, dtype=np.float64) * dy
    xx, yy = np.meshgrid(xs, ys)               # both (height, width)

    verts = np.zeros((width * height, 3), dtype=np.float64)
    verts[:, 0] = xx.ravel()
    verts[:, 1] = yy.ravel()
    return verts


def grid_faces(width: int, height: int) -> np.ndarray:
    """Two triangles per grid cell, wound for +Z normals on a flat grid."""
    n_cx, n_cy = width - 1, height - 1
    if n_cx <= 0 or n_cy <= 0:
        return np.zeros((0, 3), dtype=np.int64)

    iy_g, ix_g = np.meshgrid(
        np.arange(n_cy), np.arange(n_cx), indexing='ij')
    iy_f = iy_g.ravel()
    ix_f = ix_g.ravel()

    v00 = iy_f * width + ix_f                  # (iy,   ix)
    v10 = iy_f * width + (ix_f + 1)            # (iy,   ix+1)
    v01 = (iy_f + 1) * width + ix_f            # (iy+1, ix)
    v11 = (iy_f + 1) * width + (ix_f + 1)      # (iy+1, ix+1)

    # Rows run toward -Y: v00→v01→v10 and v10→v01→v11 face +Z
    tri1 = np.column_stack([v00, v01, v10])
    tri2 = np.column_stack([v10, v01, v11])
    return np.vstack([tri1, tri2]).astype(np.int64)


def grid_uv(width: int, height: int) -> np.ndarray:
    """Texture coordinates with image row 0 on the top (+Y) edge."""
    us = np.linspace(0.0, 1.0, width) if width > 1 else np.zeros(1)
    vs = np.linspace(1.0, 0.0, height) if height > 1 else np.ones(1)
    uu, vv = np.meshgrid(us, vs)
    return np.column_stack([uu.ravel(), vv.ravel()])


def compute_vertex_normals(vertices: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Face-averaged unit normals per vertex.

    Vertices not referenced by any face (a single-row or single-column
    grid) point straight up.
    """
    normals = np.zeros_like(vertices)
    normals[:, 2] = 1.0
    if len(faces) == 0:
        return normals

    mesh = trimesh.Trimesh(vertices=vertices, faces=faces, process=False)
    computed = np.array(mesh.vertex_normals, dtype=np.float64)
    lengths = np.linalg.norm(computed, axis=1)
    ok = lengths > 0
    normals[ok] = computed[ok]
    return normals


def build_terrain_mesh(elevation: Raster, config: FusionConfig | None = None,
                       log=None) -> TerrainMesh:
    """Build the displaced grid mesh for an elevation raster.

    Parameters
    ----------
    elevation : Raster: band 0 holds heights, row-major
    config : FusionConfig: world-scale constants
    log : callable(str) or None: stage messages

    Returns
    -------
    TerrainMesh: vertex ``j`` displaced by sample ``j`` of band 0
    """
    config = config or FusionConfig()
    log = log or logger.info
    if elevation.band_count < 1:
        raise FusionError("Elevation raster has no bands", stage="elevation")

    width, height = elevation.width, elevation.height
    grid_width, grid_height = config.footprint(width, height)
    log(f"Creating geometry with dimensions: {grid_width} x {grid_height}")
    verts = grid_vertices(width, height, grid_width, grid_height)
    faces = grid_faces(width, height)
    log(f"Vertex array length: {verts.size}")

    log("Calculating elevation range...")
    samples = elevation.bands[0]
    min_elev, max_elev = elevation_range(samples)
    log(f"Elevation range: {min_elev} to {max_elev}")

    elevation_scale = config.elevation_scale(width)
    log("Processing elevation data...")
    verts[:, 2] = normalised_displacements(samples, min_elev, max_elev,
                                           elevation_scale)

    # Normals only after every displacement is in place
    log("Computing vertex normals...")
    normals = compute_vertex_normals(verts, faces)

    for arr in (verts, normals, faces):
        arr.setflags(write=False)
    uv = grid_uv(width, height)
    uv.setflags(write=False)

    logger.info(f"Terrain grid mesh: {len(verts)} verts, {len(faces)} faces, "
                f"elevation scale {elevation_scale:.3f}")
    return TerrainMesh(
        width=width,
        height=height,
        vertices=verts,
        normals=normals,
        faces=faces,
        uv=uv,
        min_elevation=min_elev,
        max_elevation=max_elev,
        elevation_scale=elevation_scale,
    )
