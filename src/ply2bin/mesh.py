"""
Output mesh container and mesh utilities.

Vertex layout (36 bytes, little-endian, declaration order):
    x, y, z     float32   position (engine space)
    normal      uint32    byte-packed flat normal
    color       uint32    ABGR color
    u, v        float32   texture coordinates
    data        uint32    reserved, always 0
    tangent     uint32    octahedral-packed tangent
"""

import numpy as np
from typing import Dict, Any
from dataclasses import dataclass
import logging

import trimesh

logger = logging.getLogger(__name__)

VERTEX_DTYPE = np.dtype([
    ('x', '<f4'),
    ('y', '<f4'),
    ('z', '<f4'),
    ('normal', '<u4'),
    ('color', '<u4'),
    ('u', '<f4'),
    ('v', '<f4'),
    ('data', '<u4'),
    ('tangent', '<u4'),
])

INDEX_DTYPE = np.dtype('<u4')

# Default tolerance on positions and uvs when comparing vertices
VERTEX_EPSILON = 0.001


@dataclass
class Mesh:
    """
    Final engine mesh: a vertex array and a triangle-list index array.

    Built once by the geometry processor and not mutated afterwards;
    optional passes return a new Mesh.
    """
    vertices: np.ndarray  # structured array of VERTEX_DTYPE
    indices: np.ndarray   # uint32 array, 3 per triangle

    @property
    def vertices_num(self) -> int:
        return len(self.vertices)

    @property
    def indices_num(self) -> int:
        return len(self.indices)

    @property
    def positions(self) -> np.ndarray:
        """Return Nx3 float32 array of vertex positions."""
        return np.column_stack([self.vertices['x'], self.vertices['y'], self.vertices['z']])

    @property
    def uvs(self) -> np.ndarray:
        """Return Nx2 float32 array of texture coordinates."""
        return np.column_stack([self.vertices['u'], self.vertices['v']])

    @property
    def faces(self) -> np.ndarray:
        """Return Mx3 array of triangle indices."""
        return self.indices.reshape(-1, 3)


def vertices_equal(a: np.void, b: np.void, tolerance: float = VERTEX_EPSILON) -> bool:
    """
    Compare two vertex records.

    Positions and uvs match when every component differs by at most
    `tolerance`, computed in float32. Packed normal and tangent must
    match exactly. Color and data are not compared.
    """
    tolerance = np.float32(tolerance)
    for name in ('x', 'y', 'z', 'u', 'v'):
        if np.abs(np.float32(a[name]) - np.float32(b[name])) > tolerance:
            return False
    if a['normal'] != b['normal']:
        return False
    if a['tangent'] != b['tangent']:
        return False
    return True


def compute_mesh_stats(positions: np.ndarray, faces: np.ndarray) -> Dict[str, Any]:
    """
    Compute mesh statistics for logging and run summaries.

    Args:
        positions: Nx3 array of vertex positions
        faces: Mx3 array of triangle indices

    Returns:
        Dictionary of mesh statistics
    """
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)

    if len(faces) == 0 or len(positions) == 0:
        return {
            "n_vertices": len(positions),
            "n_faces": len(faces),
            "bounds": None,
            "extents": None,
            "surface_area": 0.0,
            "n_degenerate_faces": 0,
            "is_winding_consistent": None,
        }

    mesh = trimesh.Trimesh(vertices=positions, faces=faces, process=False)
    bounds = mesh.bounds

    return {
        "n_vertices": len(mesh.vertices),
        "n_faces": len(mesh.faces),
        "bounds": {
            "min": bounds[0].tolist(),
            "max": bounds[1].tolist()
        },
        "extents": mesh.extents.tolist(),
        "surface_area": float(mesh.area),
        "n_degenerate_faces": int(np.count_nonzero(mesh.area_faces == 0)),
        "is_winding_consistent": bool(mesh.is_winding_consistent),
    }
