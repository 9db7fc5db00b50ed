"""Runtime settings, read from the environment with sane defaults."""

import os
from dataclasses import dataclass
from pathlib import Path


def env_first(*names: str, default: str = "") -> str:
    """Return the first non-empty environment variable among *names*."""
    for name in names:
        value = (os.environ.get(name) or "").strip()
        if value:
            return value
    return default


def _env_int(name: str, default: int) -> int:
    raw = env_first(name, default=str(default))
    try:
        return int(raw)
    except ValueError:
        return default


HISTORY_KEY = "qr_history"
HISTORY_LIMIT = 5
HISTORY_TTL_DAYS = 30
THUMBNAIL_SIZE = 100
DENSITY_WARNING_CHARS = 500
MIN_MARGIN = 2
DEFAULT_DARK_THRESHOLD = 100
DEFAULT_DEBOUNCE_MS = 300


@dataclass(frozen=True)
class Settings:
    history_path: Path
    log_level: str
    log_file: str | None
    debounce_ms: int
    dark_threshold: int


def load_settings() -> Settings:
    log_file = env_first("QRCRAFT_LOG_FILE")
    return Settings(
        history_path=Path(env_first("QRCRAFT_HISTORY_PATH", default=str(Path.home() / ".qrcraft" / "store.json"))),
        log_level=env_first("QRCRAFT_LOG_LEVEL", default="INFO").upper(),
        log_file=log_file or None,
        debounce_ms=max(0, _env_int("QRCRAFT_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS)),
        dark_threshold=min(255, max(1, _env_int("QRCRAFT_DARK_THRESHOLD", DEFAULT_DARK_THRESHOLD))),
    )
