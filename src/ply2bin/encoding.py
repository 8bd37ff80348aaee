"""
Vector math and compact attribute encodings.

All arithmetic is done in float32 so results match the engine's own
tooling bit for bit. Every function accepts a single vector of shape
(3,) or a batch of shape (N, 3).

Encodings:
- Normals: three unsigned bytes, [-1, 1] -> [0, 255], top byte zero
- Tangents: octahedral projection, two signed 16-bit components
"""

import numpy as np

F32 = np.float32

INT16_SCALE = F32(32767.0)


def cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Cross product over the last axis."""
    a = np.asarray(a, dtype=F32)
    b = np.asarray(b, dtype=F32)
    ax, ay, az = a[..., 0], a[..., 1], a[..., 2]
    bx, by, bz = b[..., 0], b[..., 1], b[..., 2]
    return np.stack([
        ay * bz - az * by,
        az * bx - ax * bz,
        ax * by - ay * bx,
    ], axis=-1)


def vector_length(v: np.ndarray) -> np.ndarray:
    """Euclidean length over the last axis."""
    v = np.asarray(v, dtype=F32)
    return np.sqrt(v[..., 0] * v[..., 0] + v[..., 1] * v[..., 1] + v[..., 2] * v[..., 2])


def normalize(v: np.ndarray) -> np.ndarray:
    """
    Scale vectors to unit length.

    A vector whose length is exactly zero is returned as the zero
    vector instead of dividing by zero.

    Args:
        v: (3,) or (N, 3) array

    Returns:
        float32 array of the same shape
    """
    v = np.asarray(v, dtype=F32)
    length = vector_length(v)[..., np.newaxis]
    out = np.zeros_like(v)
    np.divide(v, length, out=out, where=np.broadcast_to(length != 0, v.shape))
    return out


def encode_normal(n: np.ndarray) -> np.ndarray:
    """
    Pack unit normals into uint32 as three unsigned bytes.

    Each component c becomes trunc((c + 1) * 0.5 * 255), stored as
    byte0 | byte1 << 8 | byte2 << 16. The top byte is always zero.
    """
    n = np.asarray(n, dtype=F32)
    scaled = (n + F32(1.0)) * F32(0.5) * F32(255.0)
    b = np.clip(scaled, 0, 255).astype(np.uint8).astype(np.uint32)
    return b[..., 0] | (b[..., 1] << np.uint32(8)) | (b[..., 2] << np.uint32(16))


def decode_normal(packed: np.ndarray) -> np.ndarray:
    """Unpack byte normals back to [-1, 1] floats (not renormalized)."""
    packed = np.asarray(packed, dtype=np.uint32)
    b = np.stack([
        packed & np.uint32(0xFF),
        (packed >> np.uint32(8)) & np.uint32(0xFF),
        (packed >> np.uint32(16)) & np.uint32(0xFF),
    ], axis=-1).astype(F32)
    return b / F32(255.0) * F32(2.0) - F32(1.0)


def float_to_int16(v):
    """
    Quantize [-1, 1] floats to signed 16-bit, truncating toward zero.

    Values outside [-1, 1] are clamped first. NaN clamps to +1, the way
    C fmin/fmax treat a NaN operand.
    """
    v = np.asarray(v, dtype=F32)
    clamped = np.fmax(F32(-1.0), np.fmin(v, F32(1.0)))
    return np.trunc(clamped * INT16_SCALE).astype(np.int16)


def _sign_not_negative(v: np.ndarray) -> np.ndarray:
    # sign() with sign(0) == +1
    return np.where(v >= 0, F32(1.0), F32(-1.0))


def encode_octahedral(t: np.ndarray) -> np.ndarray:
    """
    Pack unit vectors into uint32 with octahedral encoding.

    The vector is projected onto the octahedron |x|+|y|+|z| = 1. The
    lower hemisphere (z < 0) is folded over the diagonals so the
    result covers the [-1, 1] square. x goes to the high 16 bits, y to
    the low 16 bits, both as two's complement int16.

    The zero vector has no direction: 1/0 * 0 gives NaN in both
    components, which float_to_int16 clamps to +1, so it packs to
    0x7FFF7FFF.

    Args:
        t: (3,) or (N, 3) array

    Returns:
        uint32 scalar array or (N,) array
    """
    t = np.asarray(t, dtype=F32)
    l1 = np.abs(t[..., 0]) + np.abs(t[..., 1]) + np.abs(t[..., 2])
    with np.errstate(divide='ignore', invalid='ignore'):
        inv_len = F32(1.0) / l1
        x = t[..., 0] * inv_len
        y = t[..., 1] * inv_len
        z = t[..., 2] * inv_len

        lower = z < 0
        ox = (F32(1.0) - np.abs(y)) * _sign_not_negative(x)
        oy = (F32(1.0) - np.abs(x)) * _sign_not_negative(y)
        x = np.where(lower, ox, x)
        y = np.where(lower, oy, y)

    ix = float_to_int16(x).astype(np.uint16).astype(np.uint32)
    iy = float_to_int16(y).astype(np.uint16).astype(np.uint32)
    return (ix << np.uint32(16)) | iy


def decode_octahedral(packed: np.ndarray) -> np.ndarray:
    """
    Unpack octahedral-encoded uint32 values back to unit vectors.

    Inverse of encode_octahedral up to quantization error. A packed
    value of 0 decodes to (0, 0, 1).
    """
    packed = np.asarray(packed, dtype=np.uint32)
    ix = (packed >> np.uint32(16)).astype(np.uint16).astype(np.int16)
    iy = (packed & np.uint32(0xFFFF)).astype(np.uint16).astype(np.int16)

    x = ix.astype(F32) / INT16_SCALE
    y = iy.astype(F32) / INT16_SCALE
    z = F32(1.0) - np.abs(x) - np.abs(y)

    lower = z < 0
    fx = (F32(1.0) - np.abs(y)) * _sign_not_negative(x)
    fy = (F32(1.0) - np.abs(x)) * _sign_not_negative(y)
    x = np.where(lower, fx, x)
    y = np.where(lower, fy, y)

    return normalize(np.stack([x, y, z], axis=-1))
