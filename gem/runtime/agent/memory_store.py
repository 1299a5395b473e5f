"""
Memory Store - JSON Lines persistence for episodic agent memory

WHAT: Append-only episodic record of actions and loop traces
WHERE: gem/runtime/agent/memory_store.py - one JSON object per line on disk
WHO: Control loop (writes, recency window) and session restore (reads)
TIME: Append p99 <5ms (single flushed line), restore O(n) in history length

Provides a minimal MemoryStore interface with a JSON Lines implementation.
Entries are stamped on append, written durably first, and only then added to
the in-memory sequence; the file is the source of truth on restart.

Boundary Notes:
- A single corrupt line is skipped and logged, never fatal
- Entries are never edited or deleted; insertion order is the only order
- ``get_recent`` bounds the policy context window
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Protocol, Tuple

from pydantic import BaseModel, ValidationError

from .errors import MemoryRecordCorrupt
from .models import MemoryEntry, utc_timestamp

logger = logging.getLogger(__name__)

DEFAULT_RECENT = 5


def ends_mid_record(path: Path) -> bool:
    """True when a JSON Lines file ends without a trailing newline (torn write)."""
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        return False
    if size == 0:
        return False
    with path.open("rb") as fh:
        fh.seek(-1, os.SEEK_END)
        return fh.read(1) != b"\n"


class MemoryStore(Protocol):
    """Abstract interface for episodic memory."""

    def load(self) -> int:
        """Read persisted entries into memory; returns the number restored."""

    def apply(self, action: BaseModel | Mapping[str, Any]) -> Tuple[MemoryEntry, ...]:
        """Stamp, persist and append a record; returns the full sequence."""

    def get_recent(self, n: int = DEFAULT_RECENT) -> Tuple[MemoryEntry, ...]:
        """Return the last ``n`` entries in insertion order."""


class JsonlMemoryStore(MemoryStore):
    """Write-through JSON Lines memory store."""

    def __init__(self, path: str | Path, *, autoload: bool = True) -> None:
        self.path = Path(path)
        self._entries: List[MemoryEntry] = []
        if autoload:
            self.load()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Tuple[MemoryEntry, ...]:
        return tuple(self._entries)

    # ------------------ restore ------------------
    def load(self) -> int:
        self._entries = []
        if not self.path.is_file():
            return 0

        skipped = 0
        with self.path.open("rb") as fh:
            for lineno, raw in enumerate(fh, start=1):
                if not raw.strip():
                    continue
                try:
                    self._entries.append(self._decode_line(raw, lineno))
                except MemoryRecordCorrupt as exc:
                    skipped += 1
                    logger.warning("Skipping memory record: %s", exc)

        logger.info(
            "Restored %d memory entries from %s (%d skipped)",
            len(self._entries),
            self.path,
            skipped,
        )
        return len(self._entries)

    def _decode_line(self, raw: bytes, lineno: int) -> MemoryEntry:
        try:
            return MemoryEntry.model_validate(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            raise MemoryRecordCorrupt(f"{self.path}:{lineno}: {exc}") from exc

    # ------------------ append -------------------
    def apply(self, action: BaseModel | Mapping[str, Any]) -> Tuple[MemoryEntry, ...]:
        record: Dict[str, Any]
        if isinstance(action, BaseModel):
            record = action.model_dump(mode="json")
        else:
            record = dict(action)
        if not record.get("type"):
            raise ValueError("memory records require a non-empty 'type'")

        entry = MemoryEntry.model_validate({**record, "timestamp": utc_timestamp()})
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        prefix = "\n" if ends_mid_record(self.path) else ""
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(prefix + line + "\n")
            fh.flush()

        self._entries.append(entry)
        return tuple(self._entries)

    # ------------------ recall -------------------
    def get_recent(self, n: int = DEFAULT_RECENT) -> Tuple[MemoryEntry, ...]:
        if n <= 0:
            return ()
        return tuple(self._entries[-n:])


__all__ = [
    "DEFAULT_RECENT",
    "JsonlMemoryStore",
    "MemoryStore",
    "ends_mid_record",
]
