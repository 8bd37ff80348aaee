"""
End-to-end conversion: PLY file -> engine mesh file.

Reader -> geometry -> (optional) optimizer -> writer. The input is fully
imported and processed before the output path is opened, so a failed
import never leaves an output file behind.
"""

import logging
from pathlib import Path
from typing import Any, Dict
from datetime import datetime

from .config import ConverterConfig, DEFAULT_CONFIG
from .geometry import build_mesh
from .mesh import Mesh, compute_mesh_stats
from .optimizer import MeshOptimizer, MERGE_EQUAL_VERTICES
from .ply_reader import import_ply
from .writer import write_mesh

logger = logging.getLogger(__name__)


def optimize_mesh(mesh: Mesh, config: ConverterConfig = DEFAULT_CONFIG) -> Mesh:
    """Run the optimizer passes enabled in config (none by default)."""
    capabilities = {MERGE_EQUAL_VERTICES} if config.merge_vertices else set()
    if not capabilities:
        return mesh
    return MeshOptimizer(capabilities, tolerance=config.merge_tolerance).optimize(mesh)


def convert_ply(
    input_path: Path,
    output_path: Path,
    config: ConverterConfig = DEFAULT_CONFIG
) -> Dict[str, Any]:
    """
    Convert one PLY file to the engine mesh format.

    Args:
        input_path: Source .ply file
        output_path: Destination mesh file
        config: Conversion settings

    Returns:
        Summary dictionary (config, input stats, output counts)
    """
    input_path = Path(input_path)
    output_path = Path(output_path)

    raw = import_ply(input_path)
    input_stats = compute_mesh_stats(raw.positions, raw.faces)
    logger.debug(f"Input stats: {input_stats}")
    if input_stats["n_degenerate_faces"]:
        logger.warning(f"{input_stats['n_degenerate_faces']} zero-area faces "
                       f"in {input_path}; their normals will be zero")

    mesh = build_mesh(raw, config)
    # Raw buffers are not needed past this point
    del raw

    mesh = optimize_mesh(mesh, config)
    write_mesh(mesh, output_path)

    return {
        "timestamp": datetime.now().isoformat(),
        "input": str(input_path),
        "output": str(output_path),
        "config": config.to_dict(),
        "input_stats": input_stats,
        "vertices_num": mesh.vertices_num,
        "indices_num": mesh.indices_num,
    }
