"""
Geometry processing: raw PLY -> flat-shaded engine mesh.

Algorithm:
1. Expand every (face, corner) into its own vertex (no sharing)
2. Transform positions and uvs into engine space
3. Flat normal per face from the edge cross product
4. Tangent per face from edge vectors and uv deltas
5. Pack normals (bytes) and tangents (octahedral) into every corner

Degenerate cases:
- Zero-area triangle: normal is the zero vector
- Zero-area uv parallelogram: resolved by DegenerateUVPolicy
- Zero tangent with valid uvs (coincident positions): packed like any
  other vector, which gives 0x7FFF7FFF
"""

import numpy as np
from typing import Tuple
import logging

from .config import ConverterConfig, DegenerateUVPolicy, DEFAULT_CONFIG
from .encoding import F32, cross, normalize, encode_normal, encode_octahedral
from .errors import DegenerateUVError
from .mesh import Mesh, VERTEX_DTYPE, INDEX_DTYPE
from .ply_reader import RawPly

logger = logging.getLogger(__name__)

# Packed tangent written for uv-degenerate faces under DegenerateUVPolicy.ZERO
ZERO_TANGENT = np.uint32(0)


def expand_vertices(raw: RawPly, config: ConverterConfig = DEFAULT_CONFIG) -> np.ndarray:
    """
    Create one output vertex per face corner.

    Normal and tangent are left at 0; they are filled in per face.

    Args:
        raw: Imported PLY data
        config: Coordinate transform settings

    Returns:
        Structured array of VERTEX_DTYPE, length 3 * face_count
    """
    corners = raw.vertices[raw.indices]

    scale = F32(config.position_scale)
    x_sign = F32(-1.0) if config.flip_x else F32(1.0)
    v_sign = F32(-1.0) if config.flip_v else F32(1.0)

    vertices = np.zeros(len(corners), dtype=VERTEX_DTYPE)
    vertices['x'] = x_sign * corners[:, 0] * scale
    vertices['y'] = corners[:, 1] * scale
    vertices['z'] = corners[:, 2] * scale
    vertices['u'] = corners[:, 6]
    vertices['v'] = v_sign * corners[:, 7]
    vertices['color'] = config.vertex_color
    vertices['data'] = 0
    return vertices


def _triangle_positions(vertices: np.ndarray) -> np.ndarray:
    pos = np.column_stack([vertices['x'], vertices['y'], vertices['z']])
    return pos.reshape(-1, 3, 3)


def _triangle_uvs(vertices: np.ndarray) -> np.ndarray:
    uv = np.column_stack([vertices['u'], vertices['v']])
    return uv.reshape(-1, 3, 2)


def compute_face_normals(vertices: np.ndarray) -> np.ndarray:
    """
    Flat normal per triangle: normalize(cross(p1 - p0, p2 - p0)).

    Zero-area triangles get the zero vector.

    Returns:
        (F, 3) float32 array
    """
    tri = _triangle_positions(vertices)
    edge1 = tri[:, 1] - tri[:, 0]
    edge2 = tri[:, 2] - tri[:, 0]
    return normalize(cross(edge1, edge2))


def orthogonal_vectors(normals: np.ndarray) -> np.ndarray:
    """
    Some unit vector orthogonal to each normal.

    Crosses with the x axis unless the normal is nearly parallel to it,
    then with the y axis. Zero normals get (1, 0, 0).
    """
    normals = np.asarray(normals, dtype=F32).reshape(-1, 3)
    x_axis = np.array([1.0, 0.0, 0.0], dtype=F32)
    y_axis = np.array([0.0, 1.0, 0.0], dtype=F32)

    use_y = np.abs(normals[:, 0]) >= F32(0.9)
    axes = np.where(use_y[:, np.newaxis], y_axis, x_axis)
    result = normalize(cross(normals, axes))

    zero = ~np.any(result != 0, axis=1)
    result[zero] = x_axis
    return result


def compute_face_tangents(
    vertices: np.ndarray,
    normals: np.ndarray,
    policy: DegenerateUVPolicy = DegenerateUVPolicy.ZERO
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Tangent per triangle from edge vectors and uv deltas.

    f = 1 / (dU1 * dV2 - dU2 * dV1)
    t = normalize(f * (dV2 * e1 - dV1 * e2))

    A triangle is uv-degenerate when the determinant is zero or the
    unnormalized tangent is not finite. Those triangles are handled by
    `policy`.

    Args:
        vertices: Expanded vertex array (3 per triangle)
        normals: (F, 3) face normals, used by the ORTHOGONAL policy
        policy: What to do with uv-degenerate triangles

    Returns:
        Tuple of ((F, 3) float32 tangents, (F,) bool degenerate mask)

    Raises:
        DegenerateUVError: policy is FAIL and a degenerate triangle exists
    """
    tri = _triangle_positions(vertices)
    uv = _triangle_uvs(vertices)

    edge1 = tri[:, 1] - tri[:, 0]
    edge2 = tri[:, 2] - tri[:, 0]

    delta_u1 = uv[:, 1, 0] - uv[:, 0, 0]
    delta_v1 = uv[:, 1, 1] - uv[:, 0, 1]
    delta_u2 = uv[:, 2, 0] - uv[:, 0, 0]
    delta_v2 = uv[:, 2, 1] - uv[:, 0, 1]

    det = delta_u1 * delta_v2 - delta_u2 * delta_v1

    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        f = F32(1.0) / det
        tangents = f[:, np.newaxis] * (
            delta_v2[:, np.newaxis] * edge1 - delta_v1[:, np.newaxis] * edge2
        )

    degenerate = (det == 0) | ~np.all(np.isfinite(tangents), axis=1)
    tangents[degenerate] = 0
    tangents = normalize(tangents)

    n_degenerate = int(np.count_nonzero(degenerate))
    if n_degenerate:
        if policy is DegenerateUVPolicy.FAIL:
            raise DegenerateUVError(int(np.flatnonzero(degenerate)[0]), n_degenerate)

        logger.warning(f"{n_degenerate} of {len(tangents)} faces have degenerate uvs, "
                       f"tangent policy: {policy.value}")
        if policy is DegenerateUVPolicy.ORTHOGONAL:
            tangents[degenerate] = orthogonal_vectors(normals[degenerate])

    return tangents, degenerate


def build_mesh(raw: RawPly, config: ConverterConfig = DEFAULT_CONFIG) -> Mesh:
    """
    Build the flat-shaded engine mesh from raw PLY data.

    Every triangle gets three fresh vertices, so indices are the
    identity permutation and vertices_num == indices_num == 3 * faces.

    Args:
        raw: Imported PLY data
        config: Conversion settings

    Returns:
        Mesh with packed normals and tangents
    """
    vertices = expand_vertices(raw, config)

    normals = compute_face_normals(vertices)
    tangents, degenerate = compute_face_tangents(vertices, normals, config.degenerate_uv_policy)

    packed_tangents = encode_octahedral(tangents)
    if config.degenerate_uv_policy is DegenerateUVPolicy.ZERO:
        packed_tangents[degenerate] = ZERO_TANGENT

    vertices['normal'] = np.repeat(encode_normal(normals), 3)
    vertices['tangent'] = np.repeat(packed_tangents, 3)

    indices = np.arange(len(vertices), dtype=INDEX_DTYPE)

    logger.info(f"Built mesh: {len(vertices)} vertices, {len(indices)} indices "
                f"from {raw.face_count} faces")
    return Mesh(vertices=vertices, indices=indices)
