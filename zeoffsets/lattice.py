from __future__ import annotations

import itertools
import numbers
from dataclasses import dataclass
from typing import Iterable, Iterator, NamedTuple, Sequence

import numpy as np

from .errors import InputError


class LatticePoint(NamedTuple):
    """Integer position on the 3D lattice; also used as a translation."""

    x: int
    y: int
    z: int

    def shifted(self, offset: Sequence[int]) -> "LatticePoint":
        return LatticePoint(self.x + offset[0], self.y + offset[1], self.z + offset[2])

    def delta(self, other: Sequence[int]) -> "LatticePoint":
        return LatticePoint(self.x - other[0], self.y - other[1], self.z - other[2])


Offset = LatticePoint
ModelSet = tuple[LatticePoint, ...]
SpaceSet = frozenset[LatticePoint]

ORIGIN = LatticePoint(0, 0, 0)


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        raise ValueError(f"lattice coordinate must be an integer, got {value!r}")
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real) and float(value).is_integer():
        return int(value)
    raise ValueError(f"lattice coordinate must be an integer, got {value!r}")


def as_lattice_point(value: Sequence[object]) -> LatticePoint:
    if isinstance(value, LatticePoint):
        return value
    if len(value) != 3:
        raise ValueError(f"lattice point needs 3 coordinates, got {len(value)}")
    return LatticePoint(_as_int(value[0]), _as_int(value[1]), _as_int(value[2]))


def as_model_set(points: Iterable[Sequence[object]]) -> ModelSet:
    return tuple(as_lattice_point(p) for p in points)


def as_space_set(points: Iterable[Sequence[object]]) -> SpaceSet:
    return frozenset(as_lattice_point(p) for p in points)


def points_from_array(array: np.ndarray) -> list[LatticePoint]:
    """Convert an ``(N, 3)`` array of integral values to lattice points."""
    data = np.asarray(array)
    if data.size == 0:
        return []
    if data.ndim != 2 or data.shape[1] != 3:
        raise ValueError(f"expected an (N, 3) array, got shape {data.shape}")
    if not np.issubdtype(data.dtype, np.integer):
        if not np.all(np.isfinite(data)) or not np.array_equal(data, np.rint(data)):
            raise ValueError("array contains non-integral coordinates")
    ints = data.astype(np.int64)
    return [LatticePoint(int(x), int(y), int(z)) for x, y, z in ints]


@dataclass(frozen=True, slots=True)
class AxisRange:
    lo: int
    hi: int

    @property
    def span(self) -> int:
        return max(0, self.hi - self.lo + 1)

    def __contains__(self, value: int) -> bool:
        return self.lo <= value <= self.hi


@dataclass(frozen=True, slots=True)
class LatticeBounds:
    x: AxisRange
    y: AxisRange
    z: AxisRange

    @property
    def axes(self) -> tuple[AxisRange, AxisRange, AxisRange]:
        return self.x, self.y, self.z

    @property
    def volume(self) -> int:
        return self.x.span * self.y.span * self.z.span

    def contains(self, point: Sequence[int]) -> bool:
        return point[0] in self.x and point[1] in self.y and point[2] in self.z

    def ranges(self) -> tuple[range, range, range]:
        return tuple(range(axis.lo, axis.hi + 1) for axis in self.axes)  # type: ignore[return-value]

    def iter_points(self) -> Iterator[LatticePoint]:
        """Yield every lattice point of the cuboid, x-major."""
        for x, y, z in itertools.product(*self.ranges()):
            yield LatticePoint(x, y, z)

    def describe(self) -> str:
        return "x:{}..{}, y:{}..{}, z:{}..{}".format(
            self.x.lo, self.x.hi, self.y.lo, self.y.hi, self.z.lo, self.z.hi
        )


def estimate_bounds(points: Iterable[Sequence[int]]) -> LatticeBounds:
    """Return per-axis (min, max) of a non-empty point collection."""
    data = np.array(list(points), dtype=np.int64)
    if data.size == 0:
        raise InputError("cannot estimate bounds of an empty point set")
    data = data.reshape(-1, 3)
    mins = data.min(axis=0)
    maxs = data.max(axis=0)
    return LatticeBounds(*(AxisRange(int(lo), int(hi)) for lo, hi in zip(mins, maxs)))


def offset_search_bounds(model_bounds: LatticeBounds, space_bounds: LatticeBounds) -> LatticeBounds:
    """Cuboid that contains every offset keeping the model inside the space bounds."""
    return LatticeBounds(
        *(
            AxisRange(space_axis.lo - model_axis.hi, space_axis.hi - model_axis.lo)
            for model_axis, space_axis in zip(model_bounds.axes, space_bounds.axes)
        )
    )
