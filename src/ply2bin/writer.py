"""
Engine mesh binary writer.

File layout:
    0x00  u64  format_indicator = 2
    0x08  u64  dimensions_x = 1
    0x10  u64  dimensions_y = 1
    0x18  u64  dimensions_z = 1
    0x20  u8   meshes_num = 1
    0x21  u64  vertices_num   (byte-swapped)
    0x29  u64  indices_num    (byte-swapped)
    0x31  vertex records, 36 bytes each (see mesh.VERTEX_DTYPE)
    ....  u32 indices

All fields are little-endian except the two counts, which the engine
reads with the opposite byte order. Keep it that way: existing files
and the engine loader depend on it.
"""

import struct
import logging
from pathlib import Path
from typing import Tuple
from dataclasses import dataclass
import numpy as np

from .errors import IoError, FormatError
from .mesh import Mesh, VERTEX_DTYPE, INDEX_DTYPE

logger = logging.getLogger(__name__)

FORMAT_INDICATOR = 2
DIMENSIONS = (1, 1, 1)
MESHES_NUM = 1

HEADER_STRUCT = struct.Struct('<QQQQBQQ')
HEADER_SIZE = HEADER_STRUCT.size  # 49


@dataclass
class MeshHeader:
    """Fixed file header. Counts are stored here in natural byte order."""
    vertices_num: int
    indices_num: int
    format_indicator: int = FORMAT_INDICATOR
    dimensions: Tuple[int, int, int] = DIMENSIONS
    meshes_num: int = MESHES_NUM

    @classmethod
    def for_mesh(cls, mesh: Mesh) -> "MeshHeader":
        return cls(vertices_num=mesh.vertices_num, indices_num=mesh.indices_num)


def byteswap_u64(value: int) -> int:
    """Reverse the byte order of a 64-bit unsigned integer."""
    return int.from_bytes(int(value).to_bytes(8, 'little'), 'big')


def pack_header(header: MeshHeader) -> bytes:
    """
    Encode the 49-byte file header.

    The two count fields are byte-swapped before packing; all other
    fields are written as-is.
    """
    return HEADER_STRUCT.pack(
        header.format_indicator,
        *header.dimensions,
        header.meshes_num,
        byteswap_u64(header.vertices_num),
        byteswap_u64(header.indices_num),
    )


def unpack_header(data: bytes) -> MeshHeader:
    """Decode a file header, undoing the count byte swap."""
    if len(data) < HEADER_SIZE:
        raise FormatError(f"Mesh header truncated ({len(data)} of {HEADER_SIZE} bytes)")
    fmt, dim_x, dim_y, dim_z, meshes, vswap, iswap = HEADER_STRUCT.unpack_from(data)
    return MeshHeader(
        vertices_num=byteswap_u64(vswap),
        indices_num=byteswap_u64(iswap),
        format_indicator=fmt,
        dimensions=(dim_x, dim_y, dim_z),
        meshes_num=meshes,
    )


def serialize_mesh(mesh: Mesh) -> bytes:
    """
    Encode a mesh as a complete file image.

    Args:
        mesh: Mesh to encode

    Returns:
        Header + vertex records + indices
    """
    header = pack_header(MeshHeader.for_mesh(mesh))
    vertex_blob = np.ascontiguousarray(mesh.vertices, dtype=VERTEX_DTYPE).tobytes()
    index_blob = np.ascontiguousarray(mesh.indices, dtype=INDEX_DTYPE).tobytes()
    return header + vertex_blob + index_blob


def write_mesh(mesh: Mesh, path: Path) -> Path:
    """
    Write a mesh file.

    The file image is built in memory and written in one go.

    Args:
        mesh: Mesh to write
        path: Output path

    Returns:
        Path to written file

    Raises:
        IoError: Output cannot be opened or written
    """
    path = Path(path)
    blob = serialize_mesh(mesh)

    try:
        with open(path, 'wb') as f:
            f.write(blob)
    except OSError as e:
        raise IoError(f"Cannot open output file {path}: {e}") from e

    logger.info(f"Wrote {path} ({mesh.vertices_num} verts, {mesh.indices_num} indices, "
                f"{len(blob)} bytes)")
    return path


def read_mesh(path: Path) -> Mesh:
    """
    Load a mesh file written by write_mesh.

    Raises:
        IoError: File cannot be read
        FormatError: File is shorter than its header declares
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise IoError(f"Cannot open {path}: {e}") from e

    header = unpack_header(data)
    vertex_end = HEADER_SIZE + header.vertices_num * VERTEX_DTYPE.itemsize
    index_end = vertex_end + header.indices_num * INDEX_DTYPE.itemsize
    if len(data) < index_end:
        raise FormatError(f"{path}: mesh data truncated ({len(data)} of {index_end} bytes)")

    vertices = np.frombuffer(data, dtype=VERTEX_DTYPE, count=header.vertices_num,
                             offset=HEADER_SIZE).copy()
    indices = np.frombuffer(data, dtype=INDEX_DTYPE, count=header.indices_num,
                            offset=vertex_end).copy()
    return Mesh(vertices=vertices, indices=indices)
