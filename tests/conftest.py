from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import numpy as np
import pytest

from zeoffsets.lattice import LatticePoint, ModelSet, SpaceSet, as_model_set, as_space_set

# Small L-shaped model planted twice in a sparse space, plus one near miss
# at (20, 20, 20) where the third model point is missing.
L_MODEL = [(0, 0, 0), (1, 0, 0), (0, 2, 0), (0, 0, 1)]
L_OFFSETS = [(5, 5, 5), (-3, 4, 10)]
NEAR_MISS = (20, 20, 20)


def _build_l_space() -> list[tuple[int, int, int]]:
    space: list[tuple[int, int, int]] = []
    for ox, oy, oz in L_OFFSETS:
        space.extend((x + ox, y + oy, z + oz) for x, y, z in L_MODEL)
    nx, ny, nz = NEAR_MISS
    space.extend([(nx, ny, nz), (nx + 1, ny, nz), (nx, ny, nz + 1)])
    space.extend([(9, -2, 4), (-6, -6, -6), (0, 0, 0)])
    return space


@pytest.fixture(scope="module")
def l_scene() -> tuple[ModelSet, SpaceSet, set[LatticePoint]]:
    return as_model_set(L_MODEL), as_space_set(_build_l_space()), {LatticePoint(*o) for o in L_OFFSETS}


@pytest.fixture(scope="module")
def dense_cube() -> SpaceSet:
    """Every lattice point of the 5x5x5 cube [0, 4]^3."""
    return as_space_set((x, y, z) for x in range(5) for y in range(5) for z in range(5))


def _random_scene(seed: int, *, model_size: int = 4, space_size: int = 60, extent: int = 5) -> tuple[ModelSet, SpaceSet]:
    """Random model/space pair with distinct anchors and at least one planted copy."""
    rng = np.random.default_rng(seed)
    model_arr = rng.integers(0, 3, size=(model_size, 3))
    while tuple(model_arr[0]) == tuple(model_arr[1]):
        model_arr[1] = rng.integers(0, 3, size=3)
    space_arr = rng.integers(-extent, extent + 1, size=(space_size, 3))
    shift = rng.integers(-extent, extent + 1, size=3)
    planted = model_arr + shift
    model = as_model_set(model_arr.tolist())
    space = as_space_set(np.vstack((space_arr, planted)).tolist())
    return model, space


def _reference_offsets(model: ModelSet, space: SpaceSet) -> set[LatticePoint]:
    """Independent oracle: every valid offset maps model[0] onto some space point."""
    anchor = model[0]
    found: set[LatticePoint] = set()
    for point in space:
        offset = point.delta(anchor)
        if all(p.shifted(offset) in space for p in model):
            found.add(offset)
    return found


@pytest.fixture
def random_scene():
    return _random_scene


@pytest.fixture
def reference_offsets():
    return _reference_offsets
