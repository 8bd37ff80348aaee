#!/usr/bin/env python3
"""
ply2bin - command line entry point

Usage:
    converter model.ply model.bin
    converter model.ply model.bin --config convert.json --summary run.json
    python -m ply2bin model.ply model.bin --merge-vertices -v
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import ConverterConfig, DegenerateUVPolicy
from .converter import convert_ply
from .errors import ConverterError

logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="converter",
        description="Convert a binary little-endian PLY triangle mesh to the engine mesh format"
    )
    parser.add_argument(
        "input",
        type=Path,
        help="Input .ply file (binary_little_endian 1.0, triangles only)"
    )
    parser.add_argument(
        "output",
        type=Path,
        help="Output mesh file"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="JSON config file"
    )
    parser.add_argument(
        "--degenerate-uv",
        choices=[p.value for p in DegenerateUVPolicy],
        default=None,
        help="Tangent policy for faces with zero-area uvs (default: zero)"
    )
    parser.add_argument(
        "--merge-vertices",
        action="store_true",
        help="Weld equal vertices after conversion"
    )
    parser.add_argument(
        "--summary", "-s",
        type=Path,
        default=None,
        help="Write a JSON run summary to this path"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging"
    )
    return parser


def load_config(args: argparse.Namespace) -> ConverterConfig:
    """Config file values, overridden by command line flags."""
    data = {}
    if args.config is not None:
        data = ConverterConfig.from_json(args.config).to_dict()
    if args.degenerate_uv is not None:
        data["degenerate_uv_policy"] = args.degenerate_uv
    if args.merge_vertices:
        data["merge_vertices"] = True
    return ConverterConfig.from_dict(data)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        config = load_config(args)
        summary = convert_ply(args.input, args.output, config)
    except ConverterError as e:
        logger.error(f"Conversion failed: {e}")
        return 1

    if args.summary is not None:
        try:
            args.summary.parent.mkdir(parents=True, exist_ok=True)
            with open(args.summary, 'w') as f:
                json.dump(summary, f, indent=2)
        except OSError as e:
            logger.error(f"Cannot write summary {args.summary}: {e}")
            return 1
        logger.info(f"Summary saved to: {args.summary}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
