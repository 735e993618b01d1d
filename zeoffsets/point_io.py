from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Sequence

import numpy as np

from .engine import SearchResult
from .errors import PointSetFormatError
from .lattice import LatticePoint, ModelSet, SpaceSet, as_lattice_point, as_model_set, as_space_set

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise PointSetFormatError(f"{path}: invalid JSON ({exc})") from exc


def load_matrices(path: Path | str) -> np.ndarray:
    """Return the ``(N, 4, 4)`` transform matrices stored in *path*.

    Entries that are not 4x4 numeric matrices are skipped with a warning.
    """
    source = Path(path).expanduser()
    payload = _read_json(source)
    raw = payload.get("matrices") if isinstance(payload, dict) else None
    if not isinstance(raw, list):
        raise PointSetFormatError(f"{source}: missing 'matrices' array")
    kept: list[np.ndarray] = []
    skipped = 0
    for entry in raw:
        try:
            matrix = np.asarray(entry, dtype=np.float64)
        except (TypeError, ValueError):
            skipped += 1
            continue
        if matrix.shape != (4, 4) or not np.all(np.isfinite(matrix)):
            skipped += 1
            continue
        kept.append(matrix)
    if skipped:
        logger.warning("%s: skipped %d invalid matrices (not 4x4)", source, skipped)
    logger.debug("loaded %d matrices from %s", len(kept), source)
    if not kept:
        return np.zeros((0, 4, 4), dtype=np.float64)
    return np.stack(kept)


def positions_from_matrices(matrices: np.ndarray) -> list[LatticePoint]:
    """Round each matrix translation column to the nearest lattice point."""
    data = np.asarray(matrices, dtype=np.float64)
    if data.size == 0:
        return []
    if data.ndim != 3 or data.shape[1:] != (4, 4):
        raise PointSetFormatError(f"expected (N, 4, 4) matrices, got shape {data.shape}")
    # np.rint rounds half to even, matching the producer's rounding rule
    translations = np.rint(data[:, :3, 3]).astype(np.int64)
    return [LatticePoint(int(x), int(y), int(z)) for x, y, z in translations]


def matrices_from_positions(positions: Iterable[Sequence[int]]) -> np.ndarray:
    points = np.array([tuple(as_lattice_point(p)) for p in positions], dtype=np.float64).reshape(-1, 3)
    matrices = np.repeat(np.eye(4, dtype=np.float64)[None, :, :], points.shape[0], axis=0)
    matrices[:, :3, 3] = points
    return matrices


def load_model_set(path: Path | str) -> ModelSet:
    return as_model_set(positions_from_matrices(load_matrices(path)))


def load_space_set(path: Path | str) -> SpaceSet:
    return as_space_set(positions_from_matrices(load_matrices(path)))


def save_matrices(matrices: np.ndarray, path: Path | str) -> Path:
    target = Path(path).expanduser()
    data = np.asarray(matrices, dtype=np.float64).reshape(-1, 4, 4)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps({"matrices": data.tolist()}, indent=2), encoding="utf-8")
    logger.debug("wrote %d matrices to %s", data.shape[0], target)
    return target


def save_offsets(result: SearchResult | Iterable[Sequence[int]], path: Path | str) -> Path:
    """Write offsets as ``{"offsets": [{"x", "y", "z"}], "count", "timestamp"}``."""
    target = Path(path).expanduser()
    payload: dict[str, Any] = {}
    if isinstance(result, SearchResult):
        offsets = result.sorted_offsets()
        payload.update(
            strategy=result.strategy.value,
            state=result.state.value,
            exhaustive=result.exhaustive,
        )
    else:
        offsets = sorted(as_lattice_point(o) for o in result)
    payload["offsets"] = [{"x": o.x, "y": o.y, "z": o.z} for o in offsets]
    payload["count"] = len(offsets)
    payload["timestamp"] = datetime.now().strftime(TIMESTAMP_FORMAT)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.info("exported %d offsets to %s", len(offsets), target)
    return target


def load_offsets(path: Path | str) -> set[LatticePoint]:
    source = Path(path).expanduser()
    payload = _read_json(source)
    raw = payload.get("offsets") if isinstance(payload, dict) else None
    if not isinstance(raw, list):
        raise PointSetFormatError(f"{source}: missing 'offsets' array")
    offsets: set[LatticePoint] = set()
    for entry in raw:
        try:
            offsets.add(as_lattice_point((entry["x"], entry["y"], entry["z"])))
        except (KeyError, TypeError, ValueError) as exc:
            raise PointSetFormatError(f"{source}: malformed offset entry {entry!r}") from exc
    return offsets
