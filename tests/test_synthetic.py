from __future__ import annotations

import numpy as np
import pytest

from zeoffsets.point_io import positions_from_matrices
from zeoffsets.strategies import SearchStrategy, find_offsets, is_valid_offset
from zeoffsets.synthetic import generate_scene


def test_planted_offsets_are_valid():
    scene = generate_scene(model_points=8, space_points=300, model_spread=4, space_spread=20, planted=3, seed=7)
    assert len(scene.model) == 8
    assert len(scene.space) >= 300
    assert len(scene.planted_offsets) == 3
    for offset in scene.planted_offsets:
        assert is_valid_offset(scene.model, scene.space, offset)


def test_search_recovers_planted_offsets():
    scene = generate_scene(model_points=12, space_points=400, model_spread=5, space_spread=30, planted=4, seed=3)
    found = find_offsets(scene.model, scene.space, SearchStrategy.HASH_BASED)
    assert scene.planted_offsets <= found


def test_same_seed_same_scene():
    a = generate_scene(model_points=5, space_points=50, model_spread=3, space_spread=10, planted=2, seed=11)
    b = generate_scene(model_points=5, space_points=50, model_spread=3, space_spread=10, planted=2, seed=11)
    assert a.model == b.model
    assert a.space == b.space
    assert a.planted_offsets == b.planted_offsets


def test_rotated_matrices_keep_exact_translations():
    scene = generate_scene(
        model_points=6,
        space_points=40,
        model_spread=3,
        space_spread=10,
        planted=1,
        include_rotations=True,
        include_scaling=True,
        seed=5,
    )
    assert scene.model_matrices.shape == (6, 4, 4)
    assert not np.allclose(scene.model_matrices[:, :3, :3], np.eye(3))
    assert tuple(positions_from_matrices(scene.model_matrices)) == scene.model
    assert set(positions_from_matrices(scene.space_matrices)) == scene.space


def test_too_many_points_for_spread():
    with pytest.raises(ValueError, match="unique positions"):
        generate_scene(model_points=100, space_points=10, model_spread=2, planted=1, seed=1)


def test_model_must_not_be_empty():
    with pytest.raises(ValueError, match="model_points"):
        generate_scene(model_points=0)


def test_generate_scene_tool_writes_files(tmp_path):
    from tools import generate_scene as tool
    from zeoffsets.point_io import load_model_set, load_offsets

    args = ["--output-dir", str(tmp_path), "--model-points", "5", "--space-points", "80"]
    args += ["--model-spread", "3", "--space-spread", "12", "--planted", "2", "--rotations"]
    assert tool.main(args) == 0
    assert len(load_model_set(tmp_path / "model.json")) == 5
    assert len(load_offsets(tmp_path / "planted_offsets.json")) == 2
    assert (tmp_path / "space.json").exists()
