"""
ply2bin - PLY to engine mesh converter.

Pipeline:
- ply_reader: binary little-endian PLY -> raw vertex records + triangles
- geometry: flat normals, uv tangents, packed per-corner vertices
- optimizer: optional vertex welding
- writer: fixed header + vertex records + indices

Usage:
    converter input.ply output.bin
"""

__version__ = "1.0.0"

from .config import ConverterConfig, DegenerateUVPolicy, DEFAULT_CONFIG
from .errors import (
    ConverterError, IoError, FormatError, UnsupportedTopologyError,
    DegenerateUVError, ConfigError,
)
from .ply_reader import import_ply, read_ply_header, RawPly, PlyHeader
from .encoding import normalize, cross, float_to_int16, encode_normal, encode_octahedral, decode_octahedral
from .mesh import Mesh, VERTEX_DTYPE, vertices_equal, compute_mesh_stats
from .geometry import build_mesh
from .optimizer import MeshOptimizer, MERGE_EQUAL_VERTICES
from .writer import write_mesh, serialize_mesh, read_mesh
from .converter import convert_ply

__all__ = [
    'ConverterConfig', 'DegenerateUVPolicy', 'DEFAULT_CONFIG',
    'ConverterError', 'IoError', 'FormatError', 'UnsupportedTopologyError',
    'DegenerateUVError', 'ConfigError',
    'import_ply', 'read_ply_header', 'RawPly', 'PlyHeader',
    'normalize', 'cross', 'float_to_int16', 'encode_normal', 'encode_octahedral', 'decode_octahedral',
    'Mesh', 'VERTEX_DTYPE', 'vertices_equal', 'compute_mesh_stats',
    'build_mesh',
    'MeshOptimizer', 'MERGE_EQUAL_VERTICES',
    'write_mesh', 'serialize_mesh', 'read_mesh',
    'convert_ply',
]
