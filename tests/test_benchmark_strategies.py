from __future__ import annotations

import json
from pathlib import Path

import pytest

from tools import benchmark_strategies as bench
from zeoffsets.strategies import SearchStrategy


def test_normalize_overrides_is_case_insensitive() -> None:
    overrides = bench.normalize_overrides({"MODEL_POINTS": 12, "Planted": 2})
    assert overrides == {"model_points": 12, "planted": 2}


def test_normalize_overrides_rejects_unknown_keys() -> None:
    with pytest.raises(ValueError, match="unknown scene parameter"):
        bench.normalize_overrides({"seed": 3})


def test_load_scenes_parses_inline_overrides(tmp_path: Path) -> None:
    grid = tmp_path / "grid.json"
    payload = {
        "scenes": [
            {"label": "small", "model_points": 4, "space_points": 30},
            {"name": "wide", "overrides": {"space_spread": 80}, "description": "wide space"},
            {"planted": 1},
        ]
    }
    grid.write_text(json.dumps(payload), encoding="utf-8")
    scenes = bench.load_scenes(grid)
    assert [scene.label for scene in scenes] == ["small", "wide", "scene-3"]
    assert scenes[0].overrides == {"model_points": 4, "space_points": 30}
    assert scenes[1].description == "wide space"


def test_load_scenes_defaults_are_copies() -> None:
    scenes = bench.load_scenes(None)
    assert [scene.label for scene in scenes] == [scene.label for scene in bench.DEFAULT_SCENES]
    scenes[0].overrides["planted"] = 99
    assert bench.DEFAULT_SCENES[0].overrides["planted"] != 99


def test_run_scene_strategies_agree(l_scene) -> None:
    model, space, planted = l_scene
    lines: list[str] = []
    results = bench.run_scene("l", model, space, list(SearchStrategy), log=lines.append)
    assert [entry.strategy for entry in results] == list(SearchStrategy)
    assert results[0].agrees is None
    assert all(entry.agrees for entry in results[1:])
    assert all(entry.offsets == planted for entry in results)
    assert lines[0].startswith("[l]")


def test_run_scene_skips_large_brute_force(l_scene) -> None:
    model, space, _ = l_scene
    results = bench.run_scene(
        "l", model, space, [SearchStrategy.BRUTE_FORCE], max_brute_volume=10, log=lambda _: None
    )
    assert results[0].state == "skipped"


def test_run_scene_records_input_errors() -> None:
    results = bench.run_scene(
        "single", [(0, 0, 0)], frozenset({(1, 1, 1)}), [SearchStrategy.MODEL_BASED], log=lambda _: None
    )
    assert results[0].state == "error"
    assert "insufficient model points" in results[0].message


def test_main_writes_reports(tmp_path: Path) -> None:
    grid = tmp_path / "grid.json"
    grid.write_text(
        json.dumps([{"label": "mini", "model_points": 4, "space_points": 60, "model_spread": 2, "space_spread": 6, "planted": 2}]),
        encoding="utf-8",
    )
    out_json = tmp_path / "runs.json"
    out_csv = tmp_path / "runs.csv"
    code = bench.main(["--grid", str(grid), "--output-json", str(out_json), "--output-csv", str(out_csv)])
    assert code == 0
    payload = json.loads(out_json.read_text(encoding="utf-8"))
    assert [run["strategy"] for run in payload["runs"]] == [member.value for member in SearchStrategy]
    assert out_csv.read_text(encoding="utf-8").startswith("scene,strategy,state")
