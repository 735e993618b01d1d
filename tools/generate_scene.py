#!/usr/bin/env python3
"""CLI helper to write a synthetic model/space pair as matrix JSON files."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from zeoffsets.point_io import save_matrices, save_offsets
from zeoffsets.synthetic import generate_scene


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a synthetic model/space scene with planted offsets.")
    parser.add_argument("--output-dir", type=Path, default=Path("scenes"), help="Destination directory (default: %(default)s)")
    parser.add_argument("--model-points", type=int, default=100, help="Model size (default: %(default)s)")
    parser.add_argument("--space-points", type=int, default=5000, help="Space size (default: %(default)s)")
    parser.add_argument("--model-spread", type=int, default=50, help="Model coordinate half-range (default: %(default)s)")
    parser.add_argument("--space-spread", type=int, default=200, help="Space coordinate half-range (default: %(default)s)")
    parser.add_argument("--planted", type=int, default=10, help="Number of planted model copies (default: %(default)s)")
    parser.add_argument("--rotations", action="store_true", help="Randomize the rotation block of every matrix")
    parser.add_argument("--scaling", action="store_true", help="Randomize a uniform scale on every matrix")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: %(default)s)")
    parser.add_argument("--log-level", default="INFO", help="Logging verbosity (default: %(default)s)")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.INFO))
    try:
        scene = generate_scene(
            model_points=args.model_points,
            space_points=args.space_points,
            model_spread=args.model_spread,
            space_spread=args.space_spread,
            planted=args.planted,
            include_rotations=args.rotations,
            include_scaling=args.scaling,
            seed=args.seed,
        )
    except ValueError as exc:
        parser.error(str(exc))
        return 2
    output_dir = args.output_dir.expanduser()
    save_matrices(scene.model_matrices, output_dir / "model.json")
    save_matrices(scene.space_matrices, output_dir / "space.json")
    save_offsets(scene.planted_offsets, output_dir / "planted_offsets.json")
    logging.info(
        "scene written to %s (%d model / %d space points, %d planted offsets)",
        output_dir,
        len(scene.model),
        len(scene.space),
        len(scene.planted_offsets),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
