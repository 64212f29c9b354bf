"""
Parse delimited text exports into candidate events.

The importer never touches the store; hand its output to
:func:`events.reconcile.merge` (or :func:`db.repository.import_events`).
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from pydantic import ValidationError

from events import labels
from events.schema import (
    BathEvent,
    DiaperEvent,
    DiaperStatus,
    Event,
    FeedingEvent,
    FeedingType,
    GrowthEvent,
    HealthEvent,
    HealthSubtype,
    MilestoneEvent,
    MoodEvent,
    PumpingEvent,
    SleepEvent,
    WalkEvent,
)
from events.tabular import detect_delimiter, parse_number, parse_timestamp, split_line

__all__ = ["TabularRow", "resolve_columns", "parse_csv"]

logger = logging.getLogger(__name__)


@dataclass
class TabularRow:
    """One data line after column resolution."""

    line_no: int
    name: str
    type_text: str
    value: float
    timestamp: datetime
    end_time: Optional[datetime]
    note: str

    def base(self) -> dict:
        return {
            "id": f"csv-{self.line_no}-{uuid4().hex[:8]}",
            "timestamp": self.timestamp,
            "note": self.note or None,
        }


def resolve_columns(headers: List[str]) -> Dict[str, Optional[int]]:
    """Map column keys (date, event, type, ...) to header positions.

    Exact header names win over substring matches; a column that cannot be
    found maps to ``None``.
    """
    lowered = [h.strip().lower() for h in headers]
    columns: Dict[str, Optional[int]] = {}
    for key, names in labels.HEADER_EXACT.items():
        idx = next((i for i, h in enumerate(lowered) if h in names), None)
        if idx is None:
            fragments = labels.HEADER_SUBSTRING.get(key, ())
            idx = next(
                (i for i, h in enumerate(lowered) if any(f in h for f in fragments)),
                None,
            )
        columns[key] = idx
    return columns


def _cell(cols: List[str], idx: Optional[int]) -> str:
    if idx is None or idx >= len(cols):
        return ""
    return cols[idx]


def _joined(*parts: str) -> Optional[str]:
    text = " ".join(p for p in parts if p)
    return text or None


# ---------- per-name builders ----------------------------------------

def _sleep(row: TabularRow) -> Event:
    subtype = labels.match_keyword(row.type_text, labels.SLEEP_KEYWORDS)
    return SleepEvent(**row.base(), subtype=subtype, end_time=row.end_time)


def _walk(row: TabularRow) -> Event:
    return WalkEvent(**row.base(), end_time=row.end_time)


def _bath(row: TabularRow) -> Event:
    return BathEvent(**row.base(), end_time=row.end_time)


def _breast(row: TabularRow) -> Event:
    return FeedingEvent(
        **row.base(),
        feeding_type=FeedingType.BREAST,
        amount_ml=row.value or None,
        side=labels.match_keyword(row.type_text, labels.SIDE_KEYWORDS),
        end_time=row.end_time,
    )


def _pumping(row: TabularRow) -> Event:
    return PumpingEvent(
        **row.base(),
        amount_ml=row.value,
        side=labels.match_keyword(row.type_text, labels.SIDE_KEYWORDS),
    )


def _bottle(row: TabularRow) -> Event:
    base = row.base()
    base["note"] = _joined(row.type_text, row.note)
    return FeedingEvent(**base, feeding_type=FeedingType.BOTTLE, amount_ml=row.value)


def _solids(row: TabularRow) -> Event:
    base = row.base()
    base["note"] = _joined(row.type_text, row.note)
    return FeedingEvent(**base, feeding_type=FeedingType.SOLIDS, amount_ml=row.value or None)


def _diaper(row: TabularRow) -> Event:
    status = labels.match_keyword(row.type_text, labels.DIAPER_KEYWORDS, DiaperStatus.MIXED)
    return DiaperEvent(**row.base(), status=status)


def _mood(row: TabularRow) -> Event:
    return MoodEvent(**row.base(), mood=row.type_text or "Normal")


def _milestone(row: TabularRow) -> Event:
    return MilestoneEvent(**row.base(), title=row.note or row.type_text or None)


def _health(row: TabularRow) -> Event:
    return HealthEvent(
        **row.base(),
        subtype=labels.CSV_HEALTH_NAMES[row.name],
        value=row.type_text,
        temperature=row.value or None,
    )


def _fallback(row: TabularRow) -> Event:
    base = row.base()
    base["note"] = _joined(row.name, row.type_text, row.note)
    return HealthEvent(**base, subtype=HealthSubtype.OTHER)


_BUILDERS: Dict[str, Callable[[TabularRow], Event]] = {
    labels.CSV_SLEEP: _sleep,
    labels.CSV_WALK: _walk,
    labels.CSV_BATH: _bath,
    labels.CSV_BREAST: _breast,
    labels.CSV_PUMPING: _pumping,
    labels.CSV_BOTTLE: _bottle,
    labels.CSV_SOLIDS: _solids,
    labels.CSV_DIAPER: _diaper,
    labels.CSV_MOOD: _mood,
    labels.CSV_MILESTONE: _milestone,
    **{name: _health for name in labels.CSV_HEALTH_NAMES},
}


def _build(row: TabularRow) -> Event:
    builder = _BUILDERS.get(row.name, _fallback)
    try:
        return builder(row)
    except ValidationError as exc:
        logger.warning("Line %d (%s) did not validate, keeping it as a note: %s", row.line_no, row.name, exc)
        return _fallback(row)


# ---------- entry point ----------------------------------------------

def parse_csv(text: str, tz: str | None = "UTC") -> List[Event]:
    """Parse delimited text into candidate events.

    Growth rows (weight, height, head circumference) sharing a timestamp are
    coalesced into one growth event, emitted after all other events. Rows
    without a readable timestamp are skipped; every other row yields an event.
    """
    lines = [line for line in re.split(r"\r?\n", text) if line.strip()]
    if len(lines) < 2:
        return []

    delimiter = detect_delimiter(lines[0])
    columns = resolve_columns(split_line(lines[0], delimiter))

    events: List[Event] = []
    growth: Dict[datetime, Dict[str, object]] = {}

    for line_no, line in enumerate(lines[1:], start=1):
        cols = split_line(line, delimiter)
        if len(cols) < 2:
            continue

        raw_value = _cell(cols, columns["value_numeric"]) or _cell(cols, columns["value"])
        start = _cell(cols, columns["start"])
        raw_ts = start if len(start) > 5 else _cell(cols, columns["date"])
        timestamp = parse_timestamp(raw_ts, tz)
        if timestamp is None:
            logger.warning("Skipping line %d: unreadable timestamp %r", line_no, raw_ts)
            continue

        end_time = parse_timestamp(_cell(cols, columns["end"]), tz)
        if end_time is not None and end_time < timestamp:
            logger.info("Line %d: end %s precedes start, dropping it", line_no, end_time)
            end_time = None

        row = TabularRow(
            line_no=line_no,
            name=_cell(cols, columns["event"]),
            type_text=_cell(cols, columns["type"]),
            value=parse_number(raw_value),
            timestamp=timestamp,
            end_time=end_time,
            note=_cell(cols, columns["comment"]),
        )

        field = labels.GROWTH_FIELDS.get(row.name)
        if field is not None:
            parts = growth.setdefault(timestamp, {})
            if row.value:
                parts[field] = row.value
            if row.note and "note" not in parts:
                parts["note"] = row.note
            continue

        events.append(_build(row))

    for timestamp, parts in growth.items():
        if not any(parts.get(f) for f in labels.GROWTH_FIELDS.values()):
            continue
        events.append(GrowthEvent(id=f"growth-{timestamp.isoformat()}", timestamp=timestamp, **parts))

    logger.info("Parsed %d events from %d data lines", len(events), len(lines) - 1)
    return events
