from __future__ import annotations

import itertools
import logging
import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional, Sequence

from .errors import InputError
from .lattice import (
    LatticePoint,
    ModelSet,
    SpaceSet,
    as_model_set,
    as_space_set,
    estimate_bounds,
    offset_search_bounds,
)

logger = logging.getLogger(__name__)

CancelCheck = Optional[Callable[[], bool]]


class SearchStrategy(str, Enum):
    BRUTE_FORCE = "brute_force"
    HASH_BASED = "hash_based"
    MODEL_BASED = "model_based"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, value: "SearchStrategy | str") -> "SearchStrategy":
        if isinstance(value, cls):
            return value
        key = re.sub(r"[^a-z]", "", str(value).lower())
        key = key.removesuffix("faster")
        try:
            return _ALIASES[key]
        except KeyError:
            choices = ", ".join(member.value for member in cls)
            raise ValueError(f"unknown search strategy {value!r} (choices: {choices})") from None


_LABELS = {
    SearchStrategy.BRUTE_FORCE: "brute force",
    SearchStrategy.HASH_BASED: "hash based",
    SearchStrategy.MODEL_BASED: "model based",
}

_ALIASES = {
    "bruteforce": SearchStrategy.BRUTE_FORCE,
    "brute": SearchStrategy.BRUTE_FORCE,
    "hashbased": SearchStrategy.HASH_BASED,
    "hash": SearchStrategy.HASH_BASED,
    "histogram": SearchStrategy.HASH_BASED,
    "modelbased": SearchStrategy.MODEL_BASED,
    "model": SearchStrategy.MODEL_BASED,
    "anchor": SearchStrategy.MODEL_BASED,
}

# Units of work between two progress reports (candidates, pairs, space points).
DEFAULT_BATCH_SIZES: dict[SearchStrategy, int] = {
    SearchStrategy.BRUTE_FORCE: 1000,
    SearchStrategy.HASH_BASED: 100_000,
    SearchStrategy.MODEL_BASED: 1000,
}


@dataclass(frozen=True, slots=True)
class SearchProgress:
    fraction: float
    phase: str
    processed: int = 0
    total: int = 0
    # valid offsets certified so far
    found: int = 0


class OffsetAccumulator:
    """Collects the valid offsets of a single run."""

    def __init__(self) -> None:
        self._offsets: set[LatticePoint] = set()
        self.exhaustive = True
        self.note: str | None = None

    def __len__(self) -> int:
        return len(self._offsets)

    def __contains__(self, offset: object) -> bool:
        return offset in self._offsets

    @property
    def offsets(self) -> frozenset[LatticePoint]:
        return frozenset(self._offsets)

    def add(self, offset: Sequence[int]) -> None:
        self._offsets.add(LatticePoint(*offset))

    def discard(self) -> None:
        self._offsets.clear()

    def mark_partial(self, note: str) -> None:
        self.exhaustive = False
        self.note = note


def _cancelled(cancel_check: CancelCheck) -> bool:
    return bool(cancel_check is not None and cancel_check())


def _unique(points: Iterable[LatticePoint]) -> tuple[LatticePoint, ...]:
    return tuple(dict.fromkeys(points))


def is_valid_offset(model: Iterable[Sequence[int]], space: SpaceSet, offset: Sequence[int]) -> bool:
    ox, oy, oz = offset
    return all((x + ox, y + oy, z + oz) in space for x, y, z in model)


def validate_inputs(strategy: SearchStrategy | str, model: ModelSet, space: SpaceSet) -> SearchStrategy:
    strategy = SearchStrategy.parse(strategy)
    if not model:
        raise InputError("model set is empty")
    if strategy is SearchStrategy.MODEL_BASED:
        if len(model) < 2:
            raise InputError(
                f"insufficient model points for model based search (need 2, got {len(model)})"
            )
        if model[1] == model[0]:
            raise InputError(
                f"degenerate anchor pair: model points 0 and 1 coincide at {tuple(model[0])}"
            )
    return strategy


def brute_force_steps(
    model: ModelSet,
    space: SpaceSet,
    accumulator: OffsetAccumulator,
    *,
    batch_size: int,
    cancel_check: CancelCheck = None,
) -> Iterator[SearchProgress]:
    phase = "brute force: scanning candidate offsets"
    if not space:
        yield SearchProgress(1.0, "brute force: space set is empty")
        return
    bounds = offset_search_bounds(estimate_bounds(model), estimate_bounds(space))
    total = bounds.volume
    logger.info("brute force over %d candidate offsets (%s)", total, bounds.describe())
    checks = _unique(model)
    processed = 0
    for ox, oy, oz in itertools.product(*bounds.ranges()):
        if _cancelled(cancel_check):
            accumulator.mark_partial(f"cancelled after {processed} of {total} candidate offsets")
            return
        if all((x + ox, y + oy, z + oz) in space for x, y, z in checks):
            accumulator.add((ox, oy, oz))
        processed += 1
        if processed % batch_size == 0:
            yield SearchProgress(processed / total, phase, processed, total, len(accumulator))
    yield SearchProgress(1.0, "brute force: done", processed, total, len(accumulator))


def hash_based_steps(
    model: ModelSet,
    space: SpaceSet,
    accumulator: OffsetAccumulator,
    *,
    batch_size: int,
    cancel_check: CancelCheck = None,
) -> Iterator[SearchProgress]:
    phase = "hash based: counting pair differences"
    total = len(model) * len(space)
    counts: Counter[tuple[int, int, int]] = Counter()
    processed = 0
    for mx, my, mz in model:
        for sx, sy, sz in space:
            if _cancelled(cancel_check):
                # A partial histogram undercounts; no offset can be certified from it.
                counts.clear()
                accumulator.discard()
                accumulator.mark_partial(
                    f"cancelled after {processed} of {total} pairs; histogram incomplete, no offsets certified"
                )
                return
            counts[(sx - mx, sy - my, sz - mz)] += 1
            processed += 1
            if processed % batch_size == 0:
                yield SearchProgress(processed / total, phase, processed, total, 0)
    required = len(model)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("difference histogram holds %d distinct offsets from %d pairs", len(counts), processed)
    for offset, count in counts.items():
        if count == required:
            accumulator.add(offset)
    yield SearchProgress(1.0, "hash based: done", processed, total, len(accumulator))


def model_based_steps(
    model: ModelSet,
    space: SpaceSet,
    accumulator: OffsetAccumulator,
    *,
    batch_size: int,
    cancel_check: CancelCheck = None,
) -> Iterator[SearchProgress]:
    ax, ay, az = model[0]
    bx, by, bz = model[1]
    dx, dy, dz = bx - ax, by - ay, bz - az
    total = len(space)
    phase = "model based: collecting anchor candidates"
    candidates: set[tuple[int, int, int]] = set()
    processed = 0
    for sx, sy, sz in space:
        if _cancelled(cancel_check):
            accumulator.mark_partial(
                f"cancelled after {processed} of {total} space points; candidate list incomplete, nothing verified"
            )
            return
        if (sx + dx, sy + dy, sz + dz) in space:
            candidates.add((sx - ax, sy - ay, sz - az))
        processed += 1
        if processed % batch_size == 0:
            yield SearchProgress(0.5 * processed / total, phase, processed, total, 0)
    logger.info("model based: %d anchor candidates from %d space points", len(candidates), total)

    rest = _unique(model[2:])
    total = len(candidates)
    phase = "model based: verifying candidates"
    yield SearchProgress(0.5, phase, 0, total, 0)
    checked = 0
    for ox, oy, oz in candidates:
        if _cancelled(cancel_check):
            accumulator.mark_partial(f"cancelled after verifying {checked} of {total} candidates")
            return
        if all((x + ox, y + oy, z + oz) in space for x, y, z in rest):
            accumulator.add((ox, oy, oz))
        checked += 1
        if checked % batch_size == 0:
            yield SearchProgress(0.5 + 0.5 * checked / total, phase, checked, total, len(accumulator))
    yield SearchProgress(1.0, "model based: done", checked, total, len(accumulator))


_STEPS = {
    SearchStrategy.BRUTE_FORCE: brute_force_steps,
    SearchStrategy.HASH_BASED: hash_based_steps,
    SearchStrategy.MODEL_BASED: model_based_steps,
}


def plan_search(
    strategy: SearchStrategy | str,
    model: ModelSet,
    space: SpaceSet,
    accumulator: OffsetAccumulator,
    *,
    batch_size: int | None = None,
    cancel_check: CancelCheck = None,
) -> Iterator[SearchProgress]:
    """Validate inputs now and return the batch generator of *strategy*.

    Each ``next()`` on the returned iterator performs one bounded batch of
    work; the offsets end up in *accumulator*.
    """
    strategy = validate_inputs(strategy, model, space)
    if batch_size is None:
        batch_size = DEFAULT_BATCH_SIZES[strategy]
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return _STEPS[strategy](model, space, accumulator, batch_size=batch_size, cancel_check=cancel_check)


def find_offsets(
    model: Iterable[Sequence[int]],
    space: Iterable[Sequence[int]],
    strategy: SearchStrategy | str = SearchStrategy.HASH_BASED,
) -> set[LatticePoint]:
    """Run *strategy* to completion and return the valid offsets."""
    accumulator = OffsetAccumulator()
    for _ in plan_search(strategy, as_model_set(model), as_space_set(space), accumulator):
        pass
    return set(accumulator.offsets)
