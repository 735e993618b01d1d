from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence

from .errors import OffsetSearchError
from .lattice import LatticePoint, as_model_set, as_space_set
from .strategies import (
    CancelCheck,
    OffsetAccumulator,
    SearchProgress,
    SearchStrategy,
    plan_search,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SearchProgress], None]


def _env_batch_size(default: int | None = None) -> int | None:
    raw = os.environ.get("ZE_OFFSETS_BATCH_SIZE")
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class SearchConfig:
    strategy: SearchStrategy | str = SearchStrategy.HASH_BASED
    # None selects the per-strategy default cadence
    batch_size: int | None = field(default_factory=_env_batch_size)
    pause_s: float = 0.0
    log_level: str = "INFO"


@dataclass(frozen=True)
class SearchResult:
    strategy: SearchStrategy
    state: RunState
    offsets: frozenset[LatticePoint]
    exhaustive: bool
    message: str
    processed: int = 0
    elapsed_s: float = 0.0

    @property
    def count(self) -> int:
        return len(self.offsets)

    @property
    def is_complete(self) -> bool:
        return self.state is RunState.COMPLETED

    def sorted_offsets(self) -> list[LatticePoint]:
        return sorted(self.offsets)

    def to_payload(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "state": self.state.value,
            "exhaustive": self.exhaustive,
            "message": self.message,
            "processed": self.processed,
            "elapsed_s": round(self.elapsed_s, 6),
            "count": self.count,
            "offsets": [list(offset) for offset in self.sorted_offsets()],
        }


@dataclass
class _PreparedRun:
    strategy: SearchStrategy
    steps: Iterator[SearchProgress]
    accumulator: OffsetAccumulator


class OffsetSearchEngine:
    """Runs one offset search at a time over a fixed model/space pair.

    The engine is an ordinary object created by the caller; it keeps no state
    between runs except the last result, which a new run discards. A run is
    split into bounded batches (see :mod:`zeoffsets.strategies`); progress is
    published and cancellation is observed only between them.
    """

    def __init__(
        self,
        model: Iterable[Sequence[int]],
        space: Iterable[Sequence[int]],
        config: SearchConfig | None = None,
    ) -> None:
        self.model = as_model_set(model)
        self.space = as_space_set(space)
        self.config = config or SearchConfig()
        self._lock = threading.Lock()
        self._state = RunState.IDLE
        self._cancel_event = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._future: Optional[Future[SearchResult]] = None
        self._progress: Optional[SearchProgress] = None
        self._last_result: Optional[SearchResult] = None

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    @property
    def running(self) -> bool:
        return self.state is RunState.RUNNING

    @property
    def progress(self) -> Optional[SearchProgress]:
        return self._progress

    @property
    def last_result(self) -> Optional[SearchResult]:
        with self._lock:
            return self._last_result

    def _begin(self, strategy: SearchStrategy | str | None, cancel_check: CancelCheck) -> Optional[_PreparedRun]:
        strategy = SearchStrategy.parse(strategy if strategy is not None else self.config.strategy)
        with self._lock:
            if self._state is RunState.RUNNING:
                return None
            event = self._cancel_event

            def _should_stop() -> bool:
                return event.is_set() or bool(cancel_check is not None and cancel_check())

            accumulator = OffsetAccumulator()
            steps = plan_search(
                strategy,
                self.model,
                self.space,
                accumulator,
                batch_size=self.config.batch_size,
                cancel_check=_should_stop,
            )
            event.clear()
            self._last_result = None
            self._progress = None
            self._state = RunState.RUNNING
        logger.info(
            "starting %s search: %d model points, %d space points",
            strategy.label,
            len(self.model),
            len(self.space),
        )
        return _PreparedRun(strategy, steps, accumulator)

    def _drive(self, prepared: _PreparedRun, progress_cb: Optional[ProgressCallback]) -> SearchResult:
        start = time.perf_counter()
        pause_s = max(0.0, float(self.config.pause_s or 0.0))
        try:
            for progress in prepared.steps:
                self._progress = progress
                if progress_cb is not None:
                    progress_cb(progress)
                if pause_s > 0:
                    time.sleep(pause_s)
        except BaseException:
            with self._lock:
                self._state = RunState.IDLE
            raise
        elapsed = time.perf_counter() - start
        accumulator = prepared.accumulator
        if accumulator.exhaustive:
            state = RunState.COMPLETED
            message = f"found {len(accumulator)} valid offsets"
        else:
            state = RunState.CANCELLED
            message = accumulator.note or "cancelled"
        result = SearchResult(
            strategy=prepared.strategy,
            state=state,
            offsets=accumulator.offsets,
            exhaustive=accumulator.exhaustive,
            message=message,
            processed=self._progress.processed if self._progress is not None else 0,
            elapsed_s=elapsed,
        )
        with self._lock:
            self._state = state
            self._last_result = result
        if state is RunState.COMPLETED:
            logger.info("%s search completed in %.2fs: %s", prepared.strategy.label, elapsed, message)
        else:
            logger.warning("%s search cancelled after %.2fs: %s", prepared.strategy.label, elapsed, message)
        return result

    def _release(self) -> None:
        with self._lock:
            if self._state in (RunState.COMPLETED, RunState.CANCELLED):
                self._state = RunState.IDLE

    def run(
        self,
        strategy: SearchStrategy | str | None = None,
        *,
        progress_cb: Optional[ProgressCallback] = None,
        cancel_check: CancelCheck = None,
    ) -> SearchResult:
        """Run a search in the calling thread and return its result."""
        prepared = self._begin(strategy, cancel_check)
        if prepared is None:
            raise OffsetSearchError("a search is already running on this engine")
        result = self._drive(prepared, progress_cb)
        self._release()
        return result

    def start(
        self,
        strategy: SearchStrategy | str | None = None,
        *,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> Future[SearchResult]:
        """Start a search on the engine's worker thread.

        Input errors are raised here, before anything is scheduled. While a
        started run is in flight further calls are ignored and return its
        future; while a blocking :meth:`run` is in flight they raise.
        """
        prepared = self._begin(strategy, None)
        if prepared is None:
            future = self._future
            if future is None or future.done():
                raise OffsetSearchError("a search is already running on this engine")
            logger.warning("search already running; start request ignored")
            return future
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="zeoffsets")
        self._future = self._executor.submit(self._drive, prepared, progress_cb)
        return self._future

    def cancel(self) -> bool:
        """Request cooperative cancellation; returns False when nothing is running."""
        if not self.running:
            return False
        logger.info("cancellation requested")
        self._cancel_event.set()
        return True

    def wait(self, timeout: float | None = None) -> SearchResult:
        """Block until the started run finishes and hand its result over."""
        future = self._future
        if future is None:
            raise OffsetSearchError("no search has been started")
        result = future.result(timeout=timeout)
        self._release()
        return result

    def close(self) -> None:
        self.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "OffsetSearchEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
