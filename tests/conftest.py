"""
Shared fixtures: synthesize small binary PLY files in-test.
"""

import struct
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

VERTEX_PROPERTIES = [
    "property float x",
    "property float y",
    "property float z",
    "property float nx",
    "property float ny",
    "property float nz",
    "property float s",
    "property float t",
]


def build_ply_bytes(
    vertices: Sequence[Sequence[float]],
    faces: Sequence[Sequence[int]],
    magic: str = "ply",
    format_line: str = "format binary_little_endian 1.0",
    extra_header: Optional[List[str]] = None,
    vertex_properties: Optional[List[str]] = None,
    vertex_count: Optional[int] = None,
    face_count: Optional[int] = None,
    newline: str = "\n",
) -> bytes:
    """
    Build a binary little-endian PLY image.

    vertices are 8-tuples (x, y, z, nx, ny, nz, u, v); faces may have any
    corner count so non-triangle records can be produced.
    """
    header = [magic, format_line, "comment synthesized by tests"]
    header += extra_header or []
    header.append(f"element vertex {len(vertices) if vertex_count is None else vertex_count}")
    header += VERTEX_PROPERTIES if vertex_properties is None else vertex_properties
    header.append(f"element face {len(faces) if face_count is None else face_count}")
    header.append("property list uchar uint vertex_indices")
    header.append("end_header")
    text = newline.join(header) + newline

    body = b"".join(struct.pack("<8f", *v) for v in vertices)
    for face in faces:
        body += struct.pack("<B", len(face)) + struct.pack(f"<{len(face)}I", *face)

    return text.encode("ascii") + body


# x, y, z, nx, ny, nz, u, v
TRIANGLE_VERTICES = [
    (0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0),
    (1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 1.0, 0.0),
    (0.0, 1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 1.0),
]
TRIANGLE_FACES = [(0, 1, 2)]

QUAD_VERTICES = [
    (0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0),
    (1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 1.0, 0.0),
    (1.0, 1.0, 0.0, 0.0, 0.0, 1.0, 1.0, 1.0),
    (0.0, 1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 1.0),
]
QUAD_AS_TRIANGLES = [(0, 1, 2), (0, 2, 3)]


@pytest.fixture
def ply_bytes():
    """Factory returning PLY file bytes."""
    return build_ply_bytes


@pytest.fixture
def write_ply(tmp_path):
    """Factory writing a PLY file under tmp_path and returning its path."""
    def _write(vertices, faces, name: str = "model.ply", **kwargs) -> Path:
        path = tmp_path / name
        path.write_bytes(build_ply_bytes(vertices, faces, **kwargs))
        return path
    return _write


@pytest.fixture
def triangle_ply(write_ply):
    """Minimal valid PLY: 3 vertices, 1 triangle."""
    return write_ply(TRIANGLE_VERTICES, TRIANGLE_FACES, name="triangle.ply")


@pytest.fixture
def quad_ply(write_ply):
    """Planar unit square split into 2 triangles with a linear uv map."""
    return write_ply(QUAD_VERTICES, QUAD_AS_TRIANGLES, name="quad.ply")


@pytest.fixture
def random_unit_vectors():
    rng = np.random.default_rng(7)
    v = rng.normal(size=(200, 3))
    return (v / np.linalg.norm(v, axis=1, keepdims=True)).astype(np.float32)
