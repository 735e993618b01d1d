from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Callable

from .engine import OffsetSearchEngine, RunState, SearchConfig, SearchResult
from .errors import InputError, PointSetFormatError
from .lattice import LatticePoint
from .point_io import load_model_set, load_offsets, load_space_set, save_offsets
from .settings_store import (
    LOG_LEVEL_CHOICES,
    STRATEGY_CHOICES,
    PersistentSettings,
    load_persistent_settings,
    save_persistent_settings,
)
from .strategies import SearchProgress, SearchStrategy

logger = logging.getLogger(__name__)

EXIT_COMPLETED = 0
EXIT_CANCELLED = 1
EXIT_INPUT_ERROR = 2
EXIT_MISMATCH = 3


class _ProgressLogger:
    def __init__(self, step: float = 0.05, clock: Callable[[], float] = time.perf_counter) -> None:
        self._step = step
        self._next = 0.0
        self._phase: str | None = None
        self._clock = clock
        self._phase_start = clock()
        self._last_processed = 0

    def rate(self, progress: SearchProgress) -> float:
        """Work units per second within the current phase."""
        elapsed = self._clock() - self._phase_start
        return progress.processed / elapsed if elapsed > 0 else 0.0

    def __call__(self, progress: SearchProgress) -> None:
        if progress.phase != self._phase:
            self._phase = progress.phase
            logger.info("%s", progress.phase)
        if progress.processed < self._last_processed:
            # counters restart with each model based phase
            self._phase_start = self._clock()
        self._last_processed = progress.processed
        if progress.fraction + 1e-12 < self._next:
            return
        self._next = progress.fraction + self._step
        logger.info(
            "%5.1f%% (%d/%d, found %d, %.0f/s)",
            100.0 * progress.fraction,
            progress.processed,
            progress.total,
            progress.found,
            self.rate(progress),
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find every lattice offset that maps a model point set into a space point set."
    )
    parser.add_argument("model", nargs="?", help="JSON file with the model transform matrices")
    parser.add_argument("space", nargs="?", help="JSON file with the space transform matrices")
    parser.add_argument("--strategy", type=str.lower, choices=STRATEGY_CHOICES, help="Search strategy")
    parser.add_argument("--batch-size", type=int, help="Work units between progress checkpoints")
    parser.add_argument("--pause-s", type=float, help="Sleep between batches in seconds")
    parser.add_argument("--output", type=Path, help="Write found offsets to this JSON file")
    parser.add_argument("--expected", type=Path, help="Offsets JSON to compare the result against")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVEL_CHOICES)
    parser.add_argument("--progress", action="store_true", help="Log progress while searching")
    parser.add_argument("--remember", action="store_true", help="Persist the options as new defaults")
    return parser


def _settings_from_args(args: argparse.Namespace, defaults: PersistentSettings) -> PersistentSettings:
    return PersistentSettings(
        strategy=args.strategy or defaults.strategy,
        batch_size=args.batch_size if args.batch_size is not None else defaults.batch_size,
        pause_s=args.pause_s if args.pause_s is not None else defaults.pause_s,
        log_level=args.log_level or defaults.log_level,
        model_path=args.model or defaults.model_path,
        space_path=args.space or defaults.space_path,
        output_path=str(args.output) if args.output else defaults.output_path,
    )


def _compare_expected(result: SearchResult, expected: set[LatticePoint], expected_path: Path) -> bool:
    missing = expected - result.offsets
    extra = result.offsets - expected
    if missing or extra:
        logger.error("result differs from %s: %d missing, %d unexpected", expected_path, len(missing), len(extra))
        return False
    logger.info("result matches %s (%d offsets)", expected_path, len(expected))
    return True


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = _settings_from_args(args, load_persistent_settings())
    logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")
    if not settings.model_path or not settings.space_path:
        logger.error("model and space files are required (none stored in settings)")
        return EXIT_INPUT_ERROR
    if args.remember:
        save_persistent_settings(settings)
    try:
        model = load_model_set(settings.model_path)
        space = load_space_set(settings.space_path)
        expected = load_offsets(args.expected) if args.expected else None
    except (OSError, PointSetFormatError) as exc:
        logger.error("could not load input files: %s", exc)
        return EXIT_INPUT_ERROR
    logger.info("loaded %d model points and %d space points", len(model), len(space))
    config = SearchConfig(
        strategy=SearchStrategy.parse(settings.strategy),
        batch_size=settings.batch_size or None,
        pause_s=settings.pause_s,
        log_level=settings.log_level,
    )
    with OffsetSearchEngine(model, space, config) as engine:
        try:
            engine.start(progress_cb=_ProgressLogger() if args.progress else None)
        except InputError as exc:
            logger.error("%s", exc)
            return exc.exit_code
        try:
            result = engine.wait()
        except KeyboardInterrupt:
            logger.warning("interrupted; cancelling search")
            engine.cancel()
            result = engine.wait()
    if settings.output_path:
        save_offsets(result, settings.output_path)
    else:
        for offset in result.sorted_offsets():
            print(f"{offset.x} {offset.y} {offset.z}")
    if result.state is RunState.CANCELLED:
        logger.warning("search cancelled: %s", result.message)
        return EXIT_CANCELLED
    if expected is not None and not _compare_expected(result, expected, args.expected):
        return EXIT_MISMATCH
    return EXIT_COMPLETED


zeoffsets = main


if __name__ == "__main__":
    raise SystemExit(main())
