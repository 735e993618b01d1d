from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from .strategies import SearchStrategy

logger = logging.getLogger(__name__)

SETTINGS_PATH = Path.home() / ".zeoffsets_settings.json"
# Increment when the on-disk settings layout or recommended defaults change
SETTINGS_SCHEMA_VERSION = 1

STRATEGY_CHOICES = tuple(member.value for member in SearchStrategy)
LOG_LEVEL_CHOICES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class PersistentSettings:
    schema_version: int = SETTINGS_SCHEMA_VERSION
    strategy: str = SearchStrategy.HASH_BASED.value
    batch_size: int = 0  # 0 = per-strategy default
    pause_s: float = 0.0
    log_level: str = "INFO"
    model_path: Optional[str] = None
    space_path: Optional[str] = None
    output_path: Optional[str] = None


def _resolve_settings_path() -> Path:
    """Return the active settings path, honoring runtime overrides."""
    pkg = sys.modules.get("zeoffsets")
    if pkg is not None:
        override = getattr(pkg, "SETTINGS_PATH", None)
        if override:
            return Path(override).expanduser()
    return SETTINGS_PATH


def load_persistent_settings() -> PersistentSettings:
    path = _resolve_settings_path()
    if not path.exists():
        return PersistentSettings()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.warning("ignoring unreadable settings file %s", path)
        return PersistentSettings()
    if not isinstance(payload, dict):
        return PersistentSettings()

    def _str_or_none(value: object) -> Optional[str]:
        if isinstance(value, str) and value.strip():
            return value
        return None

    def _normalize_strategy(value: object) -> str:
        try:
            return SearchStrategy.parse(str(value)).value
        except ValueError:
            return SearchStrategy.HASH_BASED.value

    def _normalize_level(value: object) -> str:
        level = str(value or "INFO").strip().upper()
        return level if level in LOG_LEVEL_CHOICES else "INFO"

    try:
        batch_size = max(0, int(payload.get("batch_size", 0) or 0))
    except (TypeError, ValueError):
        batch_size = 0
    try:
        pause_s = max(0.0, float(payload.get("pause_s", 0.0) or 0.0))
    except (TypeError, ValueError):
        pause_s = 0.0
    return PersistentSettings(
        schema_version=int(payload.get("schema_version", SETTINGS_SCHEMA_VERSION) or SETTINGS_SCHEMA_VERSION),
        strategy=_normalize_strategy(payload.get("strategy", SearchStrategy.HASH_BASED.value)),
        batch_size=batch_size,
        pause_s=pause_s,
        log_level=_normalize_level(payload.get("log_level")),
        model_path=_str_or_none(payload.get("model_path")),
        space_path=_str_or_none(payload.get("space_path")),
        output_path=_str_or_none(payload.get("output_path")),
    )


def save_persistent_settings(settings: PersistentSettings) -> None:
    path = _resolve_settings_path()
    data = asdict(settings)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


__all__ = [
    "LOG_LEVEL_CHOICES",
    "PersistentSettings",
    "SETTINGS_PATH",
    "SETTINGS_SCHEMA_VERSION",
    "STRATEGY_CHOICES",
    "load_persistent_settings",
    "save_persistent_settings",
]
