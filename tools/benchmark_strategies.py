#!/usr/bin/env python3
"""Benchmark harness comparing the three offset search strategies."""
from __future__ import annotations

import argparse
import csv
import inspect
import json
import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from zeoffsets.engine import OffsetSearchEngine, SearchConfig
from zeoffsets.lattice import LatticePoint, ModelSet, SpaceSet, estimate_bounds, offset_search_bounds
from zeoffsets.point_io import load_model_set, load_space_set
from zeoffsets.strategies import SearchStrategy
from zeoffsets.synthetic import generate_scene


@dataclass(frozen=True)
class SceneProfile:
    label: str
    overrides: dict[str, Any]
    description: str | None = None


@dataclass
class AttemptResult:
    scene: str
    strategy: SearchStrategy
    state: str
    count: int
    elapsed_s: float
    message: str
    agrees: bool | None = None
    offsets: frozenset[LatticePoint] = frozenset()


DEFAULT_SCENES: list[SceneProfile] = [
    SceneProfile(
        "tiny",
        {"model_points": 6, "space_points": 200, "model_spread": 3, "space_spread": 12, "planted": 3},
        "Small enough for the brute force scan.",
    ),
    SceneProfile(
        "sparse-space",
        {"model_points": 20, "space_points": 2000, "model_spread": 10, "space_spread": 200, "planted": 5},
        "Few points spread over a large volume.",
    ),
    SceneProfile(
        "large-model",
        {"model_points": 200, "space_points": 3000, "model_spread": 20, "space_spread": 60, "planted": 4},
        "Model cardinality close to the space size.",
    ),
]

_SCENE_FIELD_LUT = {
    name.lower(): name for name in inspect.signature(generate_scene).parameters if name != "seed"
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Time every search strategy on synthetic or recorded scenes.")
    parser.add_argument("--grid", type=Path, help="JSON file describing scene profiles.")
    parser.add_argument("--model", type=Path, help="Model matrices JSON (benchmarks this scene instead of synthetic ones).")
    parser.add_argument("--space", type=Path, help="Space matrices JSON (requires --model).")
    parser.add_argument(
        "--strategy",
        action="append",
        type=str.lower,
        choices=[member.value for member in SearchStrategy],
        help="Restrict to one or more strategies (default: all).",
    )
    parser.add_argument("--seed", type=int, default=42, help="Seed for synthetic scenes (default: %(default)s)")
    parser.add_argument(
        "--max-brute-volume",
        type=int,
        default=2_000_000,
        help="Skip brute force when the candidate cuboid is larger (default: %(default)s)",
    )
    parser.add_argument("--output-json", type=Path, help="Write the detailed run log to JSON.")
    parser.add_argument("--output-csv", type=Path, help="Write a flat run log to CSV.")
    parser.add_argument("--log-level", default="WARNING", help="Harness log level (default: %(default)s)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format="%(levelname)s: %(message)s")
    if bool(args.model) != bool(args.space):
        parser.error("--model and --space must be given together")
    strategies = [SearchStrategy.parse(value) for value in args.strategy] if args.strategy else list(SearchStrategy)
    if args.model:
        scenes = [("files", load_model_set(args.model), load_space_set(args.space))]
    else:
        try:
            profiles = load_scenes(args.grid)
        except ValueError as exc:
            parser.error(str(exc))
            return 2
        scenes = [
            (profile.label, *_synthesize(profile, args.seed))
            for profile in profiles
        ]
    results: list[AttemptResult] = []
    for label, model, space in scenes:
        results.extend(run_scene(label, model, space, strategies, max_brute_volume=args.max_brute_volume))
    write_outputs(results, args)
    disagreements = [entry for entry in results if entry.agrees is False]
    for entry in disagreements:
        logging.error("%s/%s disagrees with the reference result", entry.scene, entry.strategy.value)
    return 1 if disagreements else 0


def _synthesize(profile: SceneProfile, seed: int) -> tuple[ModelSet, SpaceSet]:
    scene = generate_scene(seed=seed, **profile.overrides)
    return scene.model, scene.space


def run_scene(
    label: str,
    model: ModelSet,
    space: SpaceSet,
    strategies: Iterable[SearchStrategy],
    *,
    max_brute_volume: int | None = None,
    log: Callable[[str], None] | None = None,
) -> list[AttemptResult]:
    """Run each strategy on one scene and flag results that disagree."""
    emitter = log or print
    emitter(f"[{label}] model={len(model)} space={len(space)}")
    results: list[AttemptResult] = []
    reference: frozenset[LatticePoint] | None = None
    engine = OffsetSearchEngine(model, space, SearchConfig())
    for strategy in strategies:
        if strategy is SearchStrategy.BRUTE_FORCE and max_brute_volume and space and model:
            volume = offset_search_bounds(estimate_bounds(model), estimate_bounds(space)).volume
            if volume > max_brute_volume:
                emitter(f"    {strategy.label:<12} SKIP candidate volume {volume} > {max_brute_volume}")
                results.append(AttemptResult(label, strategy, "skipped", 0, 0.0, f"volume {volume}"))
                continue
        start = time.perf_counter()
        try:
            result = engine.run(strategy)
        except ValueError as exc:
            emitter(f"    {strategy.label:<12} ERR {exc}")
            results.append(AttemptResult(label, strategy, "error", 0, 0.0, str(exc)))
            continue
        elapsed = time.perf_counter() - start
        agrees: bool | None = None
        if reference is None:
            reference = result.offsets
        else:
            agrees = result.offsets == reference
        attempt = AttemptResult(
            label,
            strategy,
            result.state.value,
            result.count,
            elapsed,
            result.message,
            agrees,
            result.offsets,
        )
        results.append(attempt)
        verdict = "" if agrees is None else (" agrees" if agrees else " DIFFERS")
        emitter(f"    {strategy.label:<12} {attempt.count:6d} offsets {elapsed:8.3f}s{verdict}")
    return results


def write_outputs(results: list[AttemptResult], args: argparse.Namespace) -> None:
    if args.output_json:
        payload = {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "seed": args.seed,
            "runs": [
                {
                    "scene": entry.scene,
                    "strategy": entry.strategy.value,
                    "state": entry.state,
                    "count": entry.count,
                    "elapsed_s": entry.elapsed_s,
                    "message": entry.message,
                    "agrees": entry.agrees,
                }
                for entry in results
            ],
        }
        args.output_json.parent.mkdir(parents=True, exist_ok=True)
        args.output_json.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logging.info("wrote JSON results to %s", args.output_json)
    if args.output_csv:
        args.output_csv.parent.mkdir(parents=True, exist_ok=True)
        fieldnames = ["scene", "strategy", "state", "count", "elapsed_s", "agrees", "message"]
        with args.output_csv.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.DictWriter(handle, fieldnames=fieldnames)
            writer.writeheader()
            for entry in results:
                writer.writerow(
                    {
                        "scene": entry.scene,
                        "strategy": entry.strategy.value,
                        "state": entry.state,
                        "count": entry.count,
                        "elapsed_s": f"{entry.elapsed_s:.3f}",
                        "agrees": "" if entry.agrees is None else entry.agrees,
                        "message": entry.message,
                    }
                )
        logging.info("wrote CSV results to %s", args.output_csv)


def load_scenes(grid_path: Path | None) -> list[SceneProfile]:
    if grid_path is None:
        return [SceneProfile(entry.label, dict(entry.overrides), entry.description) for entry in DEFAULT_SCENES]
    payload = json.loads(grid_path.read_text(encoding="utf-8"))
    raw_entries: Iterable[Any]
    if isinstance(payload, dict) and "scenes" in payload:
        raw_entries = payload["scenes"]
    elif isinstance(payload, list):
        raw_entries = payload
    else:
        raise ValueError("grid file must be a list or an object with a 'scenes' array")
    scenes: list[SceneProfile] = []
    for idx, entry in enumerate(raw_entries, 1):
        if not isinstance(entry, dict):
            raise ValueError("each grid entry must be a JSON object")
        label = entry.get("label") or entry.get("name") or f"scene-{idx}"
        description = entry.get("description") or entry.get("notes")
        overrides = entry.get("overrides")
        if overrides is None:
            overrides = {
                key: value for key, value in entry.items() if key not in {"label", "name", "description", "notes"}
            }
        if not isinstance(overrides, dict):
            raise ValueError(f"grid entry '{label}' overrides must be an object")
        scenes.append(SceneProfile(label, normalize_overrides(overrides), description))
    if not scenes:
        raise ValueError("grid file did not define any scenes")
    return scenes


def normalize_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in raw.items():
        canonical = _SCENE_FIELD_LUT.get(key.lower())
        if not canonical:
            raise ValueError(f"unknown scene parameter '{key}' in overrides")
        normalized[canonical] = value
    return normalized


if __name__ == "__main__":
    raise SystemExit(main())
