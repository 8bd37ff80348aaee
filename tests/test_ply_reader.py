"""
Tests for the binary PLY reader.

Tests cover:
- Header validation (magic, format line, end_header)
- Element count parsing and its leniency
- Body decoding, winding fix
- Topology and truncation errors
"""

import io

import numpy as np
import pytest

from ply2bin.errors import FormatError, IoError, UnsupportedTopologyError
from ply2bin.ply_reader import (
    RAW_VERTEX_STRIDE,
    PlyHeader,
    check_schema,
    import_ply,
    parse_ply_body,
    read_ply_header,
)


VERTICES = [
    (0.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0),
    (1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 1.0, 0.0),
    (0.0, 1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 1.0),
    (1.0, 1.0, 0.0, 0.0, 0.0, 1.0, 1.0, 1.0),
]


# ============== Header Tests ==============

class TestReadHeader:
    """Test header parsing and validation."""

    def test_counts_parsed(self, ply_bytes):
        stream = io.BytesIO(ply_bytes(VERTICES, [(0, 1, 2), (1, 3, 2)]))
        header = read_ply_header(stream)

        assert header.vertex_count == 4
        assert header.face_count == 2

    def test_stream_left_at_body(self, ply_bytes):
        data = ply_bytes(VERTICES[:3], [(0, 1, 2)])
        stream = io.BytesIO(data)
        read_ply_header(stream)

        body = stream.read()
        assert len(body) == 3 * RAW_VERTEX_STRIDE * 4 + 13

    def test_elements_and_properties_recorded(self, ply_bytes):
        header = read_ply_header(io.BytesIO(ply_bytes(VERTICES[:3], [(0, 1, 2)])))

        vertex = header.element("vertex")
        face = header.element("face")
        assert vertex is not None and vertex.count == 3
        assert len(vertex.properties) == 8
        assert face.properties == ["list uchar uint vertex_indices"]
        assert header.comments == ["synthesized by tests"]

    def test_wrong_magic(self, ply_bytes):
        stream = io.BytesIO(ply_bytes(VERTICES[:3], [(0, 1, 2)], magic="plx"))
        with pytest.raises(FormatError, match="not a ply file"):
            read_ply_header(stream)

    def test_ascii_format_rejected(self, ply_bytes):
        data = ply_bytes(VERTICES[:3], [(0, 1, 2)], format_line="format ascii 1.0")
        with pytest.raises(FormatError, match="binary_little_endian"):
            read_ply_header(io.BytesIO(data))

    def test_big_endian_rejected(self, ply_bytes):
        data = ply_bytes(VERTICES[:3], [(0, 1, 2)], format_line="format binary_big_endian 1.0")
        with pytest.raises(FormatError):
            read_ply_header(io.BytesIO(data))

    def test_empty_file(self):
        with pytest.raises(FormatError):
            read_ply_header(io.BytesIO(b""))

    def test_missing_end_header(self):
        data = b"ply\nformat binary_little_endian 1.0\nelement vertex 3\n"
        with pytest.raises(FormatError, match="end_header"):
            read_ply_header(io.BytesIO(data))

    def test_crlf_line_endings(self, ply_bytes):
        data = ply_bytes(VERTICES[:3], [(0, 1, 2)], newline="\r\n")
        header = read_ply_header(io.BytesIO(data))
        assert header.vertex_count == 3
        assert header.face_count == 1

    def test_element_order_independent(self):
        data = (b"ply\nformat binary_little_endian 1.0\n"
                b"element face 7\nelement vertex 9\nend_header\n")
        header = read_ply_header(io.BytesIO(data))
        assert header.vertex_count == 9
        assert header.face_count == 7

    def test_malformed_count_left_at_zero(self):
        data = (b"ply\nformat binary_little_endian 1.0\n"
                b"element vertex lots\nelement face 2\nend_header\n")
        header = read_ply_header(io.BytesIO(data))
        assert header.vertex_count == 0
        assert header.face_count == 2

    def test_missing_counts_default_to_zero(self):
        data = b"ply\nformat binary_little_endian 1.0\nend_header\n"
        header = read_ply_header(io.BytesIO(data))
        assert header.vertex_count == 0
        assert header.face_count == 0


# ============== Schema Tests ==============

class TestCheckSchema:
    """Declared properties are checked but never fatal."""

    def test_expected_layout_has_no_problems(self, ply_bytes):
        header = read_ply_header(io.BytesIO(ply_bytes(VERTICES[:3], [(0, 1, 2)])))
        assert check_schema(header) == []

    def test_short_vertex_layout_reported(self, ply_bytes):
        data = ply_bytes(VERTICES[:3], [(0, 1, 2)], vertex_properties=[
            "property float x", "property float y", "property float z",
        ])
        header = read_ply_header(io.BytesIO(data))
        problems = check_schema(header)
        assert len(problems) == 1
        assert "vertex" in problems[0]

    def test_double_properties_reported(self, ply_bytes):
        props = [f"property double p{i}" for i in range(8)]
        data = ply_bytes(VERTICES[:3], [(0, 1, 2)], vertex_properties=props)
        header = read_ply_header(io.BytesIO(data))
        assert len(check_schema(header)) == 1

    def test_schema_mismatch_still_imports(self, write_ply, caplog):
        path = write_ply(VERTICES[:3], [(0, 1, 2)], vertex_properties=["property float x"])
        raw = import_ply(path)
        assert raw.face_count == 1
        assert "expected 8 floats" in caplog.text


# ============== Body Tests ==============

class TestImportPly:
    """Test full import of PLY files."""

    def test_minimal_triangle(self, triangle_ply):
        raw = import_ply(triangle_ply)

        assert raw.vertex_count == 3
        assert raw.face_count == 1
        assert raw.vertices.shape == (3, 8)
        assert raw.vertices.dtype == np.float32
        assert raw.indices.dtype == np.uint32

    def test_vertex_values(self, triangle_ply):
        raw = import_ply(triangle_ply)

        np.testing.assert_array_equal(raw.positions[1], [1.0, 0.0, 0.0])
        np.testing.assert_array_equal(raw.uvs[2], [0.0, 1.0])

    def test_winding_fix_swaps_last_two_corners(self, write_ply):
        path = write_ply(VERTICES, [(0, 1, 2), (3, 2, 1)])
        raw = import_ply(path)

        np.testing.assert_array_equal(raw.indices, [0, 2, 1, 3, 1, 2])
        np.testing.assert_array_equal(raw.faces, [[0, 2, 1], [3, 1, 2]])

    def test_quad_face_rejected(self, write_ply):
        path = write_ply(VERTICES, [(0, 1, 2, 3)])
        with pytest.raises(UnsupportedTopologyError) as exc_info:
            import_ply(path)

        assert exc_info.value.face_index == 0
        assert exc_info.value.corner_count == 4

    def test_quad_after_triangles_reports_its_index(self, write_ply):
        path = write_ply(VERTICES, [(0, 1, 2), (1, 3, 2), (0, 1, 3, 2)])
        with pytest.raises(UnsupportedTopologyError) as exc_info:
            import_ply(path)
        assert exc_info.value.face_index == 2

    def test_short_last_face_is_topology_error(self, write_ply):
        path = write_ply(VERTICES, [(0, 1, 2), (0, 1)])
        with pytest.raises(UnsupportedTopologyError) as exc_info:
            import_ply(path)
        assert exc_info.value.face_index == 1
        assert exc_info.value.corner_count == 2

    def test_truncated_vertices(self, write_ply):
        path = write_ply(VERTICES[:2], [], vertex_count=3)
        with pytest.raises(FormatError, match="truncated"):
            import_ply(path)

    def test_truncated_faces(self, write_ply):
        path = write_ply(VERTICES, [(0, 1, 2)], face_count=2)
        with pytest.raises(FormatError, match="truncated"):
            import_ply(path)

    def test_index_out_of_range(self, write_ply):
        path = write_ply(VERTICES[:3], [(0, 1, 5)])
        with pytest.raises(FormatError, match="out of range"):
            import_ply(path)

    def test_no_faces(self, write_ply):
        raw = import_ply(write_ply(VERTICES, []))
        assert raw.face_count == 0
        assert raw.indices.size == 0

    def test_missing_file(self, tmp_path):
        with pytest.raises(IoError):
            import_ply(tmp_path / "nope.ply")

    def test_trailing_bytes_ignored(self, tmp_path, ply_bytes):
        path = tmp_path / "trailing.ply"
        path.write_bytes(ply_bytes(VERTICES[:3], [(0, 1, 2)]) + b"\x00" * 5)
        raw = import_ply(path)
        assert raw.face_count == 1


class TestParseBody:
    """Test body decoding directly from bytes."""

    def test_parse_body_with_explicit_header(self):
        header = PlyHeader(vertex_count=1, face_count=0)
        body = np.arange(8, dtype='<f4').tobytes()

        vertices, indices = parse_ply_body(header, body)

        np.testing.assert_array_equal(vertices[0], np.arange(8))
        assert indices.size == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
