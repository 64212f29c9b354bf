"""Deduplicating merge of candidate events into an existing collection."""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Set, Tuple

from pydantic import BaseModel

from events.schema import Event, EventKind

__all__ = ["ImportResult", "merge", "result_for"]


class ImportResult(BaseModel):
    success: bool
    count: int = 0
    message: str


def _key(event: Event) -> Tuple[datetime, EventKind]:
    return event.timestamp, EventKind(event.kind)


def merge(current: Iterable[Event], candidates: Iterable[Event]) -> Tuple[List[Event], List[Event]]:
    """Return ``(merged, added)``.

    A candidate is dropped when its id is already present, or when an
    existing event shares its ``(timestamp, kind)`` pair. Survivors are
    appended after the current events, in candidate order. Only the store
    side is consulted, so two new candidates at the same instant are both
    kept.
    """
    current = list(current)
    known_ids: Set[str] = {e.id for e in current}
    known_keys = {_key(e) for e in current}

    fresh = [e for e in candidates if e.id not in known_ids]
    added = [e for e in fresh if _key(e) not in known_keys]
    return current + added, added


def result_for(count: int) -> ImportResult:
    if count == 0:
        return ImportResult(success=True, count=0, message="No new data to import (duplicates detected).")
    return ImportResult(success=True, count=count, message=f"Imported {count} records.")
