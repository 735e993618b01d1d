from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .lattice import LatticePoint, ModelSet, SpaceSet, as_model_set, as_space_set
from .point_io import matrices_from_positions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyntheticScene:
    """Model/space pair with a known set of planted offsets."""

    model: ModelSet
    space: SpaceSet
    planted_offsets: frozenset[LatticePoint]
    model_matrices: np.ndarray
    space_matrices: np.ndarray


def _unique_positions(
    rng: np.random.Generator,
    count: int,
    spread: int,
    used: set[tuple[int, int, int]],
) -> list[tuple[int, int, int]]:
    inside = sum(1 for p in used if all(-spread <= c < spread for c in p))
    capacity = (2 * spread) ** 3 - inside
    if count > capacity:
        raise ValueError(f"cannot draw {count} unique positions from a spread of {spread}")
    out: list[tuple[int, int, int]] = []
    while len(out) < count:
        batch = rng.integers(-spread, spread, size=(max(8, 2 * (count - len(out))), 3))
        for row in batch:
            pos = (int(row[0]), int(row[1]), int(row[2]))
            if pos in used:
                continue
            used.add(pos)
            out.append(pos)
            if len(out) == count:
                break
    return out


def _rotation_matrix_xyz(rx: float, ry: float, rz: float) -> np.ndarray:
    cx, sx = np.cos(rx), np.sin(rx)
    cy, sy = np.cos(ry), np.sin(ry)
    cz, sz = np.cos(rz), np.sin(rz)
    rx_m = np.array([[1.0, 0.0, 0.0], [0.0, cx, -sx], [0.0, sx, cx]])
    ry_m = np.array([[cy, 0.0, sy], [0.0, 1.0, 0.0], [-sy, 0.0, cy]])
    rz_m = np.array([[cz, -sz, 0.0], [sz, cz, 0.0], [0.0, 0.0, 1.0]])
    return rz_m @ ry_m @ rx_m


def _matrices_for(
    positions: list[tuple[int, int, int]],
    rng: np.random.Generator,
    *,
    include_rotations: bool,
    include_scaling: bool,
) -> np.ndarray:
    matrices = matrices_from_positions(positions)
    for matrix in matrices:
        # Only the linear block changes; the translation column stays exact.
        if include_rotations:
            angles = np.radians(rng.integers(0, 360, size=3))
            matrix[:3, :3] = _rotation_matrix_xyz(*angles)
        if include_scaling:
            scale = float(rng.random() * 2.0 + 0.5)
            matrix[0, 0] = matrix[1, 1] = matrix[2, 2] = scale
    return matrices


def generate_scene(
    *,
    model_points: int = 100,
    space_points: int = 5000,
    model_spread: int = 50,
    space_spread: int = 200,
    planted: int = 10,
    include_rotations: bool = False,
    include_scaling: bool = False,
    seed: int | None = 42,
) -> SyntheticScene:
    """Build a random scene whose space contains the model at *planted* offsets.

    Filler points are added until the space holds *space_points* positions
    (more if the planted copies alone exceed it). Filler can create extra
    valid offsets by chance, so ``planted_offsets`` is a subset of the true
    result, not necessarily all of it.
    """
    if model_points < 1:
        raise ValueError("model_points must be >= 1")
    rng = np.random.default_rng(seed)
    model_pos = _unique_positions(rng, model_points, model_spread, set())
    offsets = _unique_positions(rng, planted, max(1, space_spread // 2), set())
    used: set[tuple[int, int, int]] = set()
    space_pos: list[tuple[int, int, int]] = []
    for ox, oy, oz in offsets:
        for x, y, z in model_pos:
            pos = (x + ox, y + oy, z + oz)
            if pos not in used:
                used.add(pos)
                space_pos.append(pos)
    filler = max(0, space_points - len(space_pos))
    space_pos.extend(_unique_positions(rng, filler, space_spread, used))
    logger.debug(
        "synthetic scene: %d model points, %d space points, %d planted offsets",
        len(model_pos),
        len(space_pos),
        len(offsets),
    )
    return SyntheticScene(
        model=as_model_set(model_pos),
        space=as_space_set(space_pos),
        planted_offsets=frozenset(LatticePoint(*o) for o in offsets),
        model_matrices=_matrices_for(
            model_pos, rng, include_rotations=include_rotations, include_scaling=include_scaling
        ),
        space_matrices=_matrices_for(
            space_pos, rng, include_rotations=include_rotations, include_scaling=include_scaling
        ),
    )
