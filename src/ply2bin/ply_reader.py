"""
Binary little-endian PLY reader.

Only the layout the engine exporter produces is supported:
- header: `ply`, `format binary_little_endian 1.0`, element counts
- vertex record: 8 float32 (x, y, z, nx, ny, nz, u, v)
- face record: uint8 corner count (must be 3) + 3 uint32 indices

Property declarations are read for diagnostics only; the record layout
above is always assumed.
"""

import re
import logging
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple
from dataclasses import dataclass, field
import numpy as np

from .errors import IoError, FormatError, UnsupportedTopologyError

logger = logging.getLogger(__name__)

PLY_MAGIC = "ply"
PLY_FORMAT = "format binary_little_endian 1.0"

# float32 values per raw vertex record
RAW_VERTEX_STRIDE = 8
RAW_VERTEX_DTYPE = np.dtype('<f4')

FACE_RECORD_DTYPE = np.dtype([
    ('count', 'u1'),
    ('indices', '<u4', (3,)),
])

_VERTEX_COUNT_RE = re.compile(r"element vertex\s*(\d+)")
_FACE_COUNT_RE = re.compile(r"element face\s*(\d+)")

_FLOAT_TYPES = {"float", "float32"}
_LIST_COUNT_TYPES = {"uchar", "uint8"}
_LIST_INDEX_TYPES = {"uint", "uint32", "int", "int32"}


@dataclass
class PlyElement:
    """An `element` declaration and the `property` lines that follow it."""
    name: str
    count: int
    properties: List[str] = field(default_factory=list)


@dataclass
class PlyHeader:
    """
    Parsed PLY header.

    vertex_count and face_count are what drive body parsing. They stay 0
    when the corresponding `element` line is missing or malformed.
    """
    format_line: str = PLY_FORMAT
    vertex_count: int = 0
    face_count: int = 0
    elements: List[PlyElement] = field(default_factory=list)
    comments: List[str] = field(default_factory=list)

    def element(self, name: str) -> Optional[PlyElement]:
        for element in self.elements:
            if element.name == name:
                return element
        return None


@dataclass
class RawPly:
    """
    Raw PLY contents, ready for expansion.

    vertices is (N_vertex, 8) float32. indices holds 3 entries per face
    with the winding already fixed.
    """
    header: PlyHeader
    vertices: np.ndarray
    indices: np.ndarray

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def face_count(self) -> int:
        return len(self.indices) // 3

    @property
    def positions(self) -> np.ndarray:
        """Return Nx3 raw positions (file space)."""
        return self.vertices[:, 0:3]

    @property
    def uvs(self) -> np.ndarray:
        """Return Nx2 raw texture coordinates (file space)."""
        return self.vertices[:, 6:8]

    @property
    def faces(self) -> np.ndarray:
        """Return Mx3 winding-fixed triangle indices."""
        return self.indices.reshape(-1, 3)


def _read_header_line(stream: BinaryIO) -> Optional[str]:
    line = stream.readline()
    if not line:
        return None
    return line.decode('ascii', errors='replace').rstrip("\r\n")


def _parse_element(text: str) -> PlyElement:
    parts = text.split()
    name = parts[1] if len(parts) > 1 else ""
    count = int(parts[2]) if len(parts) > 2 and parts[2].isdigit() else 0
    return PlyElement(name=name, count=count)


def read_ply_header(stream: BinaryIO) -> PlyHeader:
    """
    Read and validate a PLY header, leaving the stream at the body.

    Args:
        stream: Binary stream positioned at the start of the file

    Returns:
        PlyHeader with element counts

    Raises:
        FormatError: Wrong magic, wrong format line or no end_header
    """
    source = getattr(stream, 'name', '<stream>')

    if _read_header_line(stream) != PLY_MAGIC:
        raise FormatError(f"{source} is not a ply file")

    format_line = _read_header_line(stream)
    if format_line != PLY_FORMAT:
        raise FormatError(f"{source} is not in binary_little_endian 1.0 format")

    header = PlyHeader(format_line=format_line)

    while True:
        text = _read_header_line(stream)
        if text is None:
            raise FormatError(f"{source}: header has no end_header line")

        if text.startswith("end_header"):
            break

        if text.startswith("element"):
            header.elements.append(_parse_element(text))
            if text.startswith("element vertex"):
                match = _VERTEX_COUNT_RE.match(text)
                if match:
                    header.vertex_count = int(match.group(1))
                else:
                    logger.warning(f"{source}: malformed vertex count line {text!r}")
            elif text.startswith("element face"):
                match = _FACE_COUNT_RE.match(text)
                if match:
                    header.face_count = int(match.group(1))
                else:
                    logger.warning(f"{source}: malformed face count line {text!r}")
        elif text.startswith("property") and header.elements:
            header.elements[-1].properties.append(text[len("property"):].strip())
        elif text.startswith("comment"):
            header.comments.append(text[len("comment"):].strip())

    logger.debug(f"{source}: header declares {header.vertex_count} vertices, "
                 f"{header.face_count} faces")
    return header


def check_schema(header: PlyHeader) -> List[str]:
    """
    Compare declared properties against the fixed record layout.

    Mismatches are reported, never fatal: the body is always parsed
    with the fixed layout.

    Returns:
        List of human-readable mismatch descriptions
    """
    problems = []

    vertex = header.element("vertex")
    if vertex is not None and vertex.properties:
        types = [p.split()[0] for p in vertex.properties if p.split()]
        if len(types) != RAW_VERTEX_STRIDE or any(t not in _FLOAT_TYPES for t in types):
            problems.append(
                f"vertex element declares {len(types)} properties "
                f"({', '.join(types)}); expected {RAW_VERTEX_STRIDE} floats"
            )

    face = header.element("face")
    if face is not None and face.properties:
        parts = face.properties[0].split()
        if (len(face.properties) != 1 or len(parts) < 3 or parts[0] != "list"
                or parts[1] not in _LIST_COUNT_TYPES or parts[2] not in _LIST_INDEX_TYPES):
            problems.append(
                f"face element declares {face.properties!r}; "
                f"expected a single 'list uchar uint' property"
            )

    return problems


def parse_ply_body(header: PlyHeader, body: bytes, source: str = "<body>") -> Tuple[np.ndarray, np.ndarray]:
    """
    Decode the vertex block and the triangle list.

    Args:
        header: Parsed header supplying the element counts
        body: Bytes following end_header
        source: Name used in error messages

    Returns:
        Tuple of (vertices (N, 8) float32, winding-fixed flat uint32 indices)

    Raises:
        UnsupportedTopologyError: A face is not a triangle
        FormatError: Body shorter than declared or index out of range
    """
    n_vertices = header.vertex_count
    n_faces = header.face_count

    vertex_bytes = n_vertices * RAW_VERTEX_STRIDE * RAW_VERTEX_DTYPE.itemsize
    if len(body) < vertex_bytes:
        raise FormatError(
            f"{source}: vertex data truncated ({len(body)} of {vertex_bytes} bytes)"
        )
    vertices = np.frombuffer(body, dtype=RAW_VERTEX_DTYPE, count=n_vertices * RAW_VERTEX_STRIDE)
    vertices = vertices.reshape(n_vertices, RAW_VERTEX_STRIDE).astype(np.float32)

    # Records up to the first non-triangle are correctly aligned, so the
    # first bad corner count is always found where it really is.
    face_data = body[vertex_bytes:vertex_bytes + n_faces * FACE_RECORD_DTYPE.itemsize]
    n_complete = len(face_data) // FACE_RECORD_DTYPE.itemsize
    records = np.frombuffer(face_data, dtype=FACE_RECORD_DTYPE, count=n_complete)

    bad = np.flatnonzero(records['count'] != 3)
    if bad.size:
        face_index = int(bad[0])
        raise UnsupportedTopologyError(face_index, int(records['count'][face_index]))

    if n_complete < n_faces:
        tail = face_data[n_complete * FACE_RECORD_DTYPE.itemsize:]
        if tail and tail[0] != 3:
            raise UnsupportedTopologyError(n_complete, tail[0])
        raise FormatError(
            f"{source}: face data truncated ({n_complete} of {n_faces} faces)"
        )

    # Fix winding: (a, b, c) -> (a, c, b)
    indices = records['indices'][:, [0, 2, 1]].astype(np.uint32).reshape(-1)

    if indices.size and int(indices.max()) >= n_vertices:
        raise FormatError(
            f"{source}: face index {int(indices.max())} out of range "
            f"for {n_vertices} vertices"
        )

    trailing = len(body) - vertex_bytes - len(face_data)
    if trailing:
        logger.debug(f"{source}: ignoring {trailing} trailing bytes")

    return vertices, indices


def import_ply(path: Path) -> RawPly:
    """
    Load a binary little-endian PLY triangle mesh.

    The whole file is read before anything is returned; on error no
    partial result escapes.

    Args:
        path: Path to .ply file

    Returns:
        RawPly with raw vertex records and winding-fixed indices

    Raises:
        IoError: File cannot be opened or read
        FormatError: Not a binary little-endian PLY 1.0 file, or malformed body
        UnsupportedTopologyError: A face is not a triangle
    """
    path = Path(path)

    try:
        with open(path, 'rb') as fp:
            header = read_ply_header(fp)
            body = fp.read()
    except OSError as e:
        raise IoError(f"Cannot open {path}: {e}") from e

    for problem in check_schema(header):
        logger.warning(f"{path}: {problem}")

    vertices, indices = parse_ply_body(header, body, source=str(path))

    raw = RawPly(header=header, vertices=vertices, indices=indices)
    logger.info(f"Loaded {raw.vertex_count} vertices, {raw.face_count} faces from {path}")
    return raw
