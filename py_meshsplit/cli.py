#!/usr/bin/env python3
"""
Split a stock mesh into Voronoi fragments and export them as OBJ files.

Usage:
    py-meshsplit [--shape cube] [--seeds 60] [--random-seed 0] [--output out]

Options not given on the command line come from MESHSPLIT_* environment
variables (see py_meshsplit.config).
"""

import argparse
import sys
from typing import List, Optional

import structlog
from pydantic import ValidationError

from .config import Settings, get_settings
from .core.errors import MeshSplitError
from .core.mesh_splitter import SplitResult, split_mesh
from .core.primitives import SHAPES, normalize_mesh
from .core.voronoi_cells import DomainBounds
from .io.export import save_fragments
from .logging_config import configure_logging
from .utils.random import generate_seeds

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Split a closed mesh along a 3D Voronoi tessellation")
    parser.add_argument("--shape", choices=sorted(SHAPES), help="Stock mesh to split")
    parser.add_argument("--seeds", type=int, dest="seed_count", help="Number of Voronoi seeds")
    parser.add_argument("--random-seed", type=int, help="Random seed for seed placement")
    parser.add_argument("--half-extent", type=float, dest="domain_half_extent", help="Domain half extent")
    parser.add_argument("--tolerance", type=float, help="Absolute numeric tolerance")
    parser.add_argument("--workers", type=int, dest="max_workers", help="Clip cells on this many threads")
    parser.add_argument("--output", dest="output_dir", help="Directory for the OBJ fragments")
    parser.add_argument("--no-export", action="store_true", help="Only report, do not write files")
    parser.add_argument("--log-level", help="Logging level")
    parser.add_argument("--log-format", choices=["json", "plain"], help="Logging format")
    return parser


def run(settings: Settings, export: bool = True) -> SplitResult:
    """Run one split request described by ``settings``."""
    domain = DomainBounds.cube(settings.domain_half_extent)
    mesh = normalize_mesh(SHAPES[settings.shape]())
    seeds = generate_seeds(domain, settings.seed_count, settings.random_seed, settings.tolerance)

    result = split_mesh(
        mesh,
        domain,
        seeds,
        tolerance=settings.tolerance,
        keep_empty=settings.keep_empty,
        max_workers=settings.max_workers,
    )

    open_fragments = result.check_watertight()
    if open_fragments:
        logger.warning("Fragments are not watertight", seed_ids=sorted(open_fragments))

    if export:
        save_fragments(result, settings.output_dir)
    return result


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {key: value for key, value in vars(args).items() if key != "no_export"}

    try:
        settings = get_settings(**overrides)
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level, settings.log_format)

    try:
        result = run(settings, export=not args.no_export)
    except MeshSplitError as exc:
        logger.error("Split failed", error=str(exc), error_type=type(exc).__name__)
        return 1

    fragments = result.non_empty()
    print(f"Shape:      {settings.shape}")
    print(f"Seeds:      {len(result.seeds)} (random seed {settings.random_seed})")
    print(f"Fragments:  {len(fragments)} non-empty, {len(result.empty_seed_ids)} empty")
    print(f"Volume:     {result.total_volume():.6f}")
    print(f"Warnings:   {len(result.warnings)}")
    if not args.no_export:
        print(f"Written to: {settings.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
