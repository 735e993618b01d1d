from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np
import pytest

from zeoffsets.engine import RunState, SearchResult
from zeoffsets.errors import PointSetFormatError
from zeoffsets.lattice import LatticePoint
from zeoffsets.point_io import (
    load_matrices,
    load_model_set,
    load_offsets,
    load_space_set,
    matrices_from_positions,
    positions_from_matrices,
    save_matrices,
    save_offsets,
)
from zeoffsets.strategies import SearchStrategy


def _write(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _translation(x: float, y: float, z: float) -> list[list[float]]:
    matrix = np.eye(4)
    matrix[:3, 3] = (x, y, z)
    return matrix.tolist()


def test_positions_are_rounded_translations(tmp_path: Path):
    path = _write(
        tmp_path / "model.json",
        {"matrices": [_translation(1.2, -0.6, 3.0), _translation(2.5, 3.5, -2.5)]},
    )
    model = load_model_set(path)
    # half-way values round to even
    assert model == (LatticePoint(1, -1, 3), LatticePoint(2, 4, -2))


def test_linear_block_is_ignored():
    matrix = np.array(_translation(4, 5, 6))
    matrix[:3, :3] = [[0.0, -2.0, 0.0], [2.0, 0.0, 0.0], [0.0, 0.0, 2.0]]
    assert positions_from_matrices(matrix[None]) == [LatticePoint(4, 5, 6)]


def test_invalid_matrices_are_skipped(tmp_path: Path, caplog):
    path = _write(
        tmp_path / "space.json",
        {"matrices": [_translation(1, 1, 1), [[1, 0], [0, 1]], "nope", _translation(1, 1, 1)]},
    )
    with caplog.at_level(logging.WARNING, logger="zeoffsets.point_io"):
        space = load_space_set(path)
    assert space == frozenset({LatticePoint(1, 1, 1)})
    assert "skipped 2 invalid matrices" in caplog.text


def test_missing_matrices_key_is_a_format_error(tmp_path: Path):
    path = _write(tmp_path / "bad.json", {"points": []})
    with pytest.raises(PointSetFormatError, match="missing 'matrices'"):
        load_matrices(path)


def test_invalid_json_is_a_format_error(tmp_path: Path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(PointSetFormatError, match="invalid JSON"):
        load_model_set(path)


def test_empty_matrix_list_gives_empty_sets(tmp_path: Path):
    path = _write(tmp_path / "empty.json", {"matrices": []})
    assert load_matrices(path).shape == (0, 4, 4)
    assert load_space_set(path) == frozenset()


def test_saved_matrices_load_back(tmp_path: Path):
    positions = [(0, 0, 0), (-3, 7, 2)]
    target = save_matrices(matrices_from_positions(positions), tmp_path / "out" / "m.json")
    assert target.exists()
    assert list(load_model_set(target)) == [LatticePoint(*p) for p in positions]


def test_save_offsets_writes_sorted_records(tmp_path: Path):
    result = SearchResult(
        strategy=SearchStrategy.MODEL_BASED,
        state=RunState.COMPLETED,
        offsets=frozenset({LatticePoint(3, 0, 0), LatticePoint(-1, 2, 2)}),
        exhaustive=True,
        message="found 2 valid offsets",
    )
    target = save_offsets(result, tmp_path / "offsets.json")
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["count"] == 2
    assert payload["offsets"] == [{"x": -1, "y": 2, "z": 2}, {"x": 3, "y": 0, "z": 0}]
    assert payload["strategy"] == "model_based"
    assert payload["exhaustive"] is True
    assert len(payload["timestamp"]) == len("2024-01-01 00:00:00")
    assert load_offsets(target) == set(result.offsets)


def test_save_offsets_accepts_plain_tuples(tmp_path: Path):
    target = save_offsets([(1, 2, 3)], tmp_path / "plain.json")
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["count"] == 1
    assert "strategy" not in payload


def test_load_offsets_rejects_malformed_entries(tmp_path: Path):
    path = _write(tmp_path / "offsets.json", {"offsets": [{"x": 1, "y": 2}]})
    with pytest.raises(PointSetFormatError, match="malformed offset"):
        load_offsets(path)
