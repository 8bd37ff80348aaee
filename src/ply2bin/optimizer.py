"""
Optional mesh optimization passes.

The converter emits three unshared vertices per triangle. Passes here
are opt-in and selected by capability name:

    optimizer = MeshOptimizer({MERGE_EQUAL_VERTICES})
    mesh = optimizer.optimize(mesh)
"""

import numpy as np
from typing import Callable, Dict, Iterable, List
import logging

from scipy.spatial import cKDTree

from .mesh import Mesh, VERTEX_EPSILON, INDEX_DTYPE, vertices_equal

logger = logging.getLogger(__name__)

MERGE_EQUAL_VERTICES = "merge-equal-vertices"


def merge_equal_vertices(mesh: Mesh, tolerance: float = VERTEX_EPSILON) -> Mesh:
    """
    Weld vertices that compare equal under vertices_equal.

    Vertices are visited in order; each one maps to the first earlier
    kept vertex it equals, otherwise it is kept itself. Kept vertices
    stay in first-appearance order.

    Args:
        mesh: Input mesh
        tolerance: Max per-component difference on positions and uvs

    Returns:
        New Mesh with remapped indices
    """
    n = mesh.vertices_num
    if n == 0:
        return Mesh(vertices=mesh.vertices.copy(), indices=mesh.indices.copy())

    # Candidate pairs within tolerance on x, y, z, u, v (Chebyshev metric).
    # The radius covers float32 rounding in vertices_equal.
    coords = np.column_stack([mesh.positions, mesh.uvs]).astype(np.float64)
    radius = float(np.float32(tolerance)) + float(np.abs(coords).max()) * float(np.finfo(np.float32).eps)
    tree = cKDTree(coords)
    pairs = tree.query_pairs(r=radius, p=np.inf, output_type='ndarray')

    neighbors: List[List[int]] = [[] for _ in range(n)]
    for i, j in pairs:
        lo, hi = (i, j) if i < j else (j, i)
        neighbors[hi].append(lo)

    remap = np.arange(n, dtype=np.int64)
    kept = np.zeros(n, dtype=bool)
    vertices = mesh.vertices

    for i in range(n):
        for j in sorted(neighbors[i]):
            if kept[j] and vertices_equal(vertices[i], vertices[j], tolerance):
                remap[i] = j
                break
        else:
            kept[i] = True

    kept_ids = np.flatnonzero(kept)
    new_id = np.full(n, -1, dtype=np.int64)
    new_id[kept_ids] = np.arange(len(kept_ids))

    new_vertices = vertices[kept_ids].copy()
    new_indices = new_id[remap[mesh.indices]].astype(INDEX_DTYPE)

    logger.info(f"Merged vertices: {n}→{len(new_vertices)}")
    return Mesh(vertices=new_vertices, indices=new_indices)


class MeshOptimizer:
    """
    Applies a set of named optimization passes to a mesh.

    Passes run in registry order regardless of the order they were
    requested in.
    """

    PASSES: Dict[str, Callable[..., Mesh]] = {
        MERGE_EQUAL_VERTICES: merge_equal_vertices,
    }

    def __init__(self, capabilities: Iterable[str] = (), tolerance: float = VERTEX_EPSILON):
        """
        Args:
            capabilities: Names of passes to enable
            tolerance: Vertex comparison tolerance for merging
        """
        capabilities = set(capabilities)
        unknown = capabilities - set(self.PASSES)
        if unknown:
            raise ValueError(f"Unknown optimizer capabilities: {sorted(unknown)}")
        self.capabilities = capabilities
        self.tolerance = tolerance

    @classmethod
    def available(cls) -> List[str]:
        return list(cls.PASSES)

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities

    def optimize(self, mesh: Mesh) -> Mesh:
        """Run every enabled pass and return the resulting mesh."""
        for name, run_pass in self.PASSES.items():
            if not self.supports(name):
                continue
            logger.debug(f"Running optimizer pass: {name}")
            mesh = run_pass(mesh, tolerance=self.tolerance)
        return mesh
