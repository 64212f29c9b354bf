"""Render the event log as a PostgreSQL batch insert for manual loading."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from events.rows import EventRow, flatten_all
from events.schema import Event, sort_events

__all__ = ["EMPTY_DUMP", "TARGET_TABLE", "render_sql_dump"]

TARGET_TABLE = "baby_events"
EMPTY_DUMP = "-- No events to export"

_COLUMNS = (
    "event_datetime",
    "event_name",
    "event_type",
    "value_text",
    "value_numeric",
    "start_datetime",
    "end_datetime",
    "comment",
)


def _text(value: Optional[str]) -> str:
    if not value:
        return "NULL"
    return "'" + value.replace("'", "''") + "'"


def _number(value: Optional[float]) -> str:
    if value is None:
        return "NULL"
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def _timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return "NULL"
    utc = value.astimezone(timezone.utc)
    return "'" + utc.strftime("%Y-%m-%d %H:%M:%S.") + f"{utc.microsecond // 1000:03d}'"


def _values(row: EventRow) -> str:
    parts = [
        _timestamp(row.event_datetime),
        _text(row.event_name),
        _text(row.event_type),
        _text(row.value_text),
        _number(row.value_numeric),
        _timestamp(row.start_datetime),
        _timestamp(row.end_datetime),
        _text(row.comment),
    ]
    return "(" + ", ".join(parts) + ")"


def render_sql_dump(
    events: Iterable[Event],
    generated_at: Optional[datetime] = None,
    database: str = "babylog",
) -> str:
    """Build one ``INSERT ... VALUES`` statement over the flattened rows.

    Events are written oldest first. Only the ``Generated`` comment line
    depends on the clock; pass ``generated_at`` to pin it.
    """
    rows = flatten_all(sort_events(list(events)))
    if not rows:
        return EMPTY_DUMP

    generated_at = generated_at or datetime.now(timezone.utc)
    header: List[str] = [
        f"-- PostgreSQL Dump for {database}",
        f"-- Generated: {generated_at.isoformat(timespec='seconds')}",
        f"-- Target Table: {TARGET_TABLE}",
        "",
        f"INSERT INTO {TARGET_TABLE} ({', '.join(_COLUMNS)})",
        "VALUES",
    ]
    return "\n".join(header) + "\n" + ",\n".join(_values(r) for r in rows) + ";"
