"""History Store: the last few generated codes, deduplicated and persisted."""

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from PIL import Image

from qrcraft.config import HISTORY_KEY, HISTORY_LIMIT, HISTORY_TTL_DAYS, THUMBNAIL_SIZE
from qrcraft.content import ContentRecord, ContentType, TextContent, UrlContent
from qrcraft.errors import GenerationError, InvalidOptionsError
from qrcraft.generator import render
from qrcraft.logging import audit, get_logger, trace
from qrcraft.options import RenderOptions
from qrcraft.validator import is_complete

log = get_logger("history")

_DAY_SECONDS = 86400


class PersistenceAdapter(Protocol):
    """Durable string key/value storage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, ttl_days: int) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryPersistence:
    """Process-local store; expiry is ignored."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str, ttl_days: int) -> None:
        self.values[key] = value

    def remove(self, key: str) -> None:
        self.values.pop(key, None)


class JsonFilePersistence:
    """JSON-file-backed key/value store with per-key expiry.

    File layout: ``{"<key>": {"value": "...", "expires": <epoch seconds>}}``.
    Single writer; every set/remove rewrites the file.
    """

    def __init__(self, path: str | Path, clock=time.time):
        self.path = Path(path)
        self._clock = clock

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.warning("store %s unreadable, starting empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str) -> str | None:
        item = self._read().get(key)
        if not isinstance(item, dict):
            return None
        expires = item.get("expires")
        if not isinstance(expires, (int, float)) or expires <= self._clock():
            return None
        return item.get("value")

    def set(self, key: str, value: str, ttl_days: int) -> None:
        data = self._read()
        data[key] = {"value": value, "expires": self._clock() + ttl_days * _DAY_SECONDS}
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    payload: str
    content_type: str
    timestamp: int
    options: RenderOptions

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.payload,
            "type": self.content_type,
            "timestamp": self.timestamp,
            "options": self.options.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        return cls(
            id=str(data["id"]),
            payload=str(data["content"]),
            content_type=str(data["type"]),
            timestamp=int(data["timestamp"]),
            options=RenderOptions.from_dict(data.get("options") or {}),
        )


class HistoryStore:
    """Newest-first list of at most *limit* entries, unique by payload."""

    def __init__(
        self,
        persistence: PersistenceAdapter,
        key: str = HISTORY_KEY,
        limit: int = HISTORY_LIMIT,
        ttl_days: int = HISTORY_TTL_DAYS,
        clock=time.time,
    ):
        self._persistence = persistence
        self._key = key
        self._limit = limit
        self._ttl_days = ttl_days
        self._clock = clock
        self._entries: list[HistoryEntry] = []
        self._thumbnails: dict[str, Image.Image] = {}
        self._last_id = 0

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    @trace
    def load(self) -> list[HistoryEntry]:
        """Read the persisted list; anything unreadable yields an empty history."""
        entries: list[HistoryEntry] = []
        try:
            raw = self._persistence.get(self._key)
            if raw:
                decoded = json.loads(raw)
                entries = [HistoryEntry.from_dict(item) for item in decoded][: self._limit]
        except (OSError, ValueError, TypeError, KeyError, AttributeError) as e:
            log.error("Error loading QR history: %s", e)
            entries = []
        self._entries = entries
        self._thumbnails.clear()
        audit("history.loaded", logger=log, count=len(entries))
        return list(entries)

    def _next_id(self) -> str:
        # millisecond ids, bumped when two records land in the same millisecond
        known = [int(e.id) for e in self._entries if e.id.isdigit()]
        candidate = max([int(self._clock() * 1000), self._last_id + 1] + [k + 1 for k in known])
        self._last_id = candidate
        return str(candidate)

    def _persist(self) -> None:
        value = json.dumps([e.to_dict() for e in self._entries])
        self._persistence.set(self._key, value, self._ttl_days)

    @trace
    def record(self, record: ContentRecord, payload: str, options: RenderOptions) -> HistoryEntry | None:
        """Prepend an entry for *payload*, replacing any older entry with the same payload.

        Incomplete records are never recorded.
        """
        if not payload or not is_complete(record):
            log.debug("history skip: incomplete %s record", record.content_type.value)
            return None

        entry_id = self._next_id()
        entry = HistoryEntry(
            id=entry_id,
            payload=payload,
            content_type=record.content_type.value,
            timestamp=int(self._clock() * 1000),
            options=options,
        )
        kept = [e for e in self._entries if e.payload != payload]
        replaced = len(kept) < len(self._entries)
        updated = [entry] + kept
        dropped = [e for e in self._entries if e not in updated[: self._limit]]
        self._entries = updated[: self._limit]
        for stale in dropped:
            self._thumbnails.pop(stale.id, None)
        self._persist()

        audit("history.recorded", logger=log,
              id=entry.id, type=entry.content_type, payload=payload[:80],
              count=len(self._entries), replaced=replaced)
        return entry

    def clear(self) -> None:
        self._entries = []
        self._thumbnails.clear()
        self._persistence.remove(self._key)
        audit("history.cleared", logger=log)

    def thumbnail(self, entry: HistoryEntry) -> Image.Image | None:
        """Small plain rendering of *entry* using its own colour snapshot, cached by id."""
        cached = self._thumbnails.get(entry.id)
        if cached is not None:
            return cached
        thumb_options = RenderOptions(
            size=THUMBNAIL_SIZE,
            margin=1,
            error_correction="M",
            foreground_color=entry.options.foreground_color,
            background_color=entry.options.background_color,
        )
        try:
            img = render(entry.payload, thumb_options.validate())
        except (GenerationError, InvalidOptionsError) as e:
            log.error("Error generating history thumbnail for %s: %s", entry.id, e)
            return None
        self._thumbnails[entry.id] = img
        return img

    @staticmethod
    def restore(entry: HistoryEntry) -> ContentRecord | None:
        """Rebuild the input record for simple entries (url, text); None otherwise."""
        if entry.content_type == ContentType.URL.value:
            return UrlContent(url=entry.payload)
        if entry.content_type == ContentType.TEXT.value:
            return TextContent(text=entry.payload)
        return None
