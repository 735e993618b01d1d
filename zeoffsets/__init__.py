"""Translation-only point-pattern matching on the integer 3D lattice."""

from .engine import OffsetSearchEngine, RunState, SearchConfig, SearchResult
from .errors import InputError, OffsetSearchError, PointSetFormatError
from .lattice import LatticeBounds, LatticePoint, estimate_bounds, offset_search_bounds
from .settings_store import (
    SETTINGS_PATH,
    SETTINGS_SCHEMA_VERSION,
    PersistentSettings,
    load_persistent_settings,
    save_persistent_settings,
)
from .strategies import (
    OffsetAccumulator,
    SearchProgress,
    SearchStrategy,
    find_offsets,
    is_valid_offset,
    plan_search,
)

__all__ = [
    "InputError",
    "LatticeBounds",
    "LatticePoint",
    "OffsetAccumulator",
    "OffsetSearchEngine",
    "OffsetSearchError",
    "PersistentSettings",
    "PointSetFormatError",
    "RunState",
    "SETTINGS_PATH",
    "SETTINGS_SCHEMA_VERSION",
    "SearchConfig",
    "SearchProgress",
    "SearchResult",
    "SearchStrategy",
    "estimate_bounds",
    "find_offsets",
    "is_valid_offset",
    "load_persistent_settings",
    "offset_search_bounds",
    "plan_search",
    "save_persistent_settings",
]
