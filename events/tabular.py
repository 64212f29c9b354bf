"""
Tabular (CSV-like) side of the codec.

Text-level helpers used by :mod:`events.importer` plus the export direction
that renders events back into the same column layout.
"""
from __future__ import annotations

import csv
import io
import re
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil.parser import ParserError, parse

from events import labels
from events.schema import (
    BathEvent,
    DiaperEvent,
    Event,
    EventKind,
    FeedingEvent,
    FeedingType,
    GrowthEvent,
    HealthEvent,
    MilestoneEvent,
    MoodEvent,
    PumpingEvent,
    SleepEvent,
    WalkEvent,
    require_all_kinds,
    to_utc,
)

__all__ = [
    "detect_delimiter",
    "split_line",
    "parse_number",
    "parse_timestamp",
    "to_tabular_rows",
    "render_csv",
]

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_LEADING_NUMBER = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
_DEF_TZ = ZoneInfo("UTC")


def detect_delimiter(header: str) -> str:
    if ";" in header:
        return ";"
    if "\t" in header:
        return "\t"
    return ","


def split_line(line: str, delimiter: str) -> List[str]:
    """Split one line into trimmed fields.

    A double quote toggles the quoted state, ``""`` inside quotes is a
    literal quote, and the delimiter only separates fields outside quotes.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    fields.append("".join(current))
    return [f.strip() for f in fields]


def parse_number(raw: Optional[str]) -> float:
    """Locale-tolerant number parsing: ``"1 234,5 мл"`` -> ``1234.5``; 0 if absent."""
    if not raw:
        return 0.0
    cleaned = re.sub(r"\s", "", raw)
    cleaned = re.sub(r"[^\d,.\-]", "", cleaned).replace(",", ".")
    match = _LEADING_NUMBER.match(cleaned)
    return float(match.group(0)) if match else 0.0


def _zone(tz: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(tz or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        return _DEF_TZ


def parse_timestamp(raw: Optional[str], tz: str | None = "UTC") -> Optional[datetime]:
    """Parse a tabular timestamp into UTC, or ``None`` when it cannot be read.

    Naive values are interpreted in ``tz``. ISO dates are read year-first,
    anything else day-first (``10.01.2024 08:00``).
    """
    if not raw or not raw.strip():
        return None
    text = raw.strip()
    try:
        dt = parse(text, dayfirst=not _ISO_DATE.match(text))
    except (ParserError, ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_zone(tz))
    return to_utc(dt)


# ---------- Event -> tabular rows ------------------------------------

def _fmt_time(dt: Optional[datetime]) -> str:
    return dt.isoformat() if dt is not None else ""


def _fmt_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    return str(int(value)) if float(value).is_integer() else str(value)


def _tab_row(
    event: Event,
    name: str,
    type_text: Optional[str] = "",
    value: Optional[float] = None,
) -> List[str]:
    end = getattr(event, "end_time", None)
    return [
        _fmt_time(event.timestamp),
        name,
        type_text or "",
        _fmt_number(value),
        _fmt_time(event.timestamp),
        _fmt_time(end),
        (event.note or "").replace("\n", " "),
    ]


def _tab_sleep(event: SleepEvent) -> List[List[str]]:
    type_text = labels.SLEEP_ROW_NAMES[event.subtype] if event.subtype is not None else ""
    return [_tab_row(event, labels.CSV_SLEEP, type_text)]


def _tab_feeding(event: FeedingEvent) -> List[List[str]]:
    side = labels.SIDE_LABELS[event.side] if event.side is not None else ""
    if event.feeding_type is FeedingType.BREAST:
        return [_tab_row(event, labels.CSV_BREAST, side, event.amount_ml)]
    if event.feeding_type is FeedingType.SOLIDS:
        return [_tab_row(event, labels.CSV_SOLIDS, "", event.amount_ml)]
    return [_tab_row(event, labels.CSV_BOTTLE, "", event.amount_ml)]


def _tab_pumping(event: PumpingEvent) -> List[List[str]]:
    side = labels.SIDE_LABELS[event.side] if event.side is not None else ""
    return [_tab_row(event, labels.CSV_PUMPING, side, event.amount_ml)]


def _tab_diaper(event: DiaperEvent) -> List[List[str]]:
    return [_tab_row(event, labels.CSV_DIAPER, labels.DIAPER_LABELS[event.status])]


def _tab_walk(event: WalkEvent) -> List[List[str]]:
    return [_tab_row(event, labels.CSV_WALK)]


def _tab_bath(event: BathEvent) -> List[List[str]]:
    return [_tab_row(event, labels.CSV_BATH)]


def _tab_growth(event: GrowthEvent) -> List[List[str]]:
    # One row per measurement: the importer coalesces them back by timestamp.
    rows = []
    for name, field in labels.GROWTH_FIELDS.items():
        value = getattr(event, field)
        if value:
            rows.append(_tab_row(event, name, "", value))
    return rows


def _tab_health(event: HealthEvent) -> List[List[str]]:
    name = labels.CSV_HEALTH_LABELS[event.subtype]
    return [_tab_row(event, name, event.value, event.temperature)]


def _tab_mood(event: MoodEvent) -> List[List[str]]:
    return [_tab_row(event, labels.CSV_MOOD, event.mood)]


def _tab_milestone(event: MilestoneEvent) -> List[List[str]]:
    return [_tab_row(event, labels.CSV_MILESTONE, event.title)]


_TABULATORS: Dict[EventKind, Callable[..., List[List[str]]]] = {
    EventKind.SLEEP: _tab_sleep,
    EventKind.FEEDING: _tab_feeding,
    EventKind.PUMPING: _tab_pumping,
    EventKind.DIAPER: _tab_diaper,
    EventKind.WALK: _tab_walk,
    EventKind.BATH: _tab_bath,
    EventKind.GROWTH: _tab_growth,
    EventKind.HEALTH: _tab_health,
    EventKind.MOOD: _tab_mood,
    EventKind.MILESTONE: _tab_milestone,
}
require_all_kinds(_TABULATORS, "to_tabular_rows")


def to_tabular_rows(event: Event) -> List[List[str]]:
    """Render one event as tabular rows in :data:`labels.CSV_COLUMNS` order."""
    return _TABULATORS[EventKind(event.kind)](event)


def render_csv(events: Iterable[Event], delimiter: str = ",") -> str:
    """Render events, oldest first, as delimited text with a header line."""
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=delimiter, lineterminator="\n")
    writer.writerow(labels.CSV_COLUMNS)
    for event in sorted(events, key=lambda e: e.timestamp):
        writer.writerows(to_tabular_rows(event))
    return buf.getvalue()
