"""
Relational row codec.

``flatten`` turns one event into zero or more flat rows for the remote table
and the SQL dump; ``reconstruct`` maps a single row back to an event.
The mapping is not symmetric: a multi-measurement growth event flattens to
several rows and each row reconstructs to its own single-field event, and
health rows always come back with the OTHER subtype.
"""
from __future__ import annotations

import hashlib
import json
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from events import labels
from events.schema import (
    BathEvent,
    DiaperEvent,
    DiaperStatus,
    Event,
    EventKind,
    FeedingEvent,
    FeedingType,
    GrowthEvent,
    HealthEvent,
    HealthSubtype,
    MilestoneEvent,
    MoodEvent,
    PumpingEvent,
    Side,
    SleepEvent,
    SleepType,
    WalkEvent,
    coerce_datetime,
    require_all_kinds,
)

__all__ = ["EventRow", "flatten", "flatten_all", "reconstruct", "reconstruct_all"]


class EventRow(BaseModel):
    """One row of the remote ``baby_events`` table."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None
    event_datetime: datetime
    event_name: str
    event_type: str
    value_text: Optional[str] = None
    value_numeric: Optional[float] = None
    start_datetime: Optional[datetime] = None
    end_datetime: Optional[datetime] = None
    comment: Optional[str] = None

    @field_validator("event_datetime", "start_datetime", "end_datetime", mode="before")
    def _parse_datetimes(cls, v: datetime | str | None) -> datetime | None:
        return coerce_datetime(v)

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation; the server-side ``id`` is never sent."""
        return self.model_dump(mode="json", exclude={"id"})


# ---------- Event -> rows --------------------------------------------

def _row(
    event: Event,
    name: str,
    value_text: Optional[str] = None,
    value_numeric: Optional[float] = None,
) -> EventRow:
    return EventRow(
        event_datetime=event.timestamp,
        event_name=name,
        event_type=EventKind(event.kind).value,
        value_text=value_text,
        value_numeric=value_numeric,
        start_datetime=event.timestamp,
        end_datetime=getattr(event, "end_time", None),
        comment=event.note or None,
    )


def _flatten_growth(event: GrowthEvent) -> List[EventRow]:
    rows = []
    for name, field in labels.GROWTH_FIELDS.items():
        value = getattr(event, field)
        if value:
            rows.append(_row(event, name, None, value))
    return rows


def _flatten_feeding(event: FeedingEvent) -> List[EventRow]:
    details = [labels.FEEDING_LABELS[event.feeding_type]]
    if event.side is not None:
        details.append(labels.SIDE_LABELS[event.side])
    name = labels.FEEDING_ROW_NAMES[event.feeding_type]
    return [_row(event, name, ", ".join(details), event.amount_ml or None)]


def _flatten_sleep(event: SleepEvent) -> List[EventRow]:
    subtype = event.subtype if event.subtype is SleepType.NIGHT else SleepType.DAY
    code = event.subtype.value if event.subtype is not None else None
    return [_row(event, labels.SLEEP_ROW_NAMES[subtype], code)]


def _flatten_diaper(event: DiaperEvent) -> List[EventRow]:
    return [_row(event, labels.ROW_NAMES[EventKind.DIAPER], labels.DIAPER_LABELS[event.status])]


def _flatten_pumping(event: PumpingEvent) -> List[EventRow]:
    side = labels.SIDE_LABELS[event.side or Side.BOTH]
    return [_row(event, labels.ROW_NAMES[EventKind.PUMPING], side, event.amount_ml)]


def _flatten_health(event: HealthEvent) -> List[EventRow]:
    text = ": ".join(part for part in (event.subtype.value, event.value) if part)
    return [_row(event, labels.ROW_NAMES[EventKind.HEALTH], text, event.temperature or None)]


def _flatten_walk(event: WalkEvent) -> List[EventRow]:
    return [_row(event, labels.ROW_NAMES[EventKind.WALK])]


def _flatten_bath(event: BathEvent) -> List[EventRow]:
    return [_row(event, labels.ROW_NAMES[EventKind.BATH])]


def _flatten_mood(event: MoodEvent) -> List[EventRow]:
    return [_row(event, labels.ROW_NAMES[EventKind.MOOD], event.mood)]


def _flatten_milestone(event: MilestoneEvent) -> List[EventRow]:
    return [_row(event, labels.ROW_NAMES[EventKind.MILESTONE], event.title or None)]


_FLATTENERS: Dict[EventKind, Callable[[Any], List[EventRow]]] = {
    EventKind.GROWTH: _flatten_growth,
    EventKind.FEEDING: _flatten_feeding,
    EventKind.SLEEP: _flatten_sleep,
    EventKind.DIAPER: _flatten_diaper,
    EventKind.PUMPING: _flatten_pumping,
    EventKind.HEALTH: _flatten_health,
    EventKind.WALK: _flatten_walk,
    EventKind.BATH: _flatten_bath,
    EventKind.MOOD: _flatten_mood,
    EventKind.MILESTONE: _flatten_milestone,
}
require_all_kinds(_FLATTENERS, "flatten")


def flatten(event: Event) -> List[EventRow]:
    """Map one event to its relational rows (possibly none)."""
    return _FLATTENERS[EventKind(event.kind)](event)


def flatten_all(events: Iterable[Event]) -> List[EventRow]:
    rows: List[EventRow] = []
    for event in events:
        rows.extend(flatten(event))
    return rows


# ---------- row -> Event ---------------------------------------------

def _row_event_id(row: EventRow) -> str:
    millis = int(row.event_datetime.timestamp() * 1000)
    if row.id is not None:
        suffix = str(row.id)
    else:
        digest = json.dumps(row.to_payload(), sort_keys=True, ensure_ascii=False)
        suffix = hashlib.sha1(digest.encode("utf-8")).hexdigest()[:10]
    return f"db-{millis}-{suffix}"


def _base(row: EventRow) -> Dict[str, Any]:
    return {
        "id": _row_event_id(row),
        "timestamp": row.event_datetime,
        "note": row.comment or None,
    }


def _end_time(row: EventRow) -> Optional[datetime]:
    # An inverted interval cannot be represented; keep the event, drop the end.
    if row.end_datetime is not None and row.end_datetime >= row.event_datetime:
        return row.end_datetime
    return None


def _rebuild_sleep(row: EventRow) -> Event:
    night = "NIGHT" in (row.value_text or "") or "Ноч" in row.event_name
    subtype = SleepType.NIGHT if night else SleepType.DAY
    return SleepEvent(**_base(row), subtype=subtype, end_time=_end_time(row))


def _rebuild_feeding(row: EventRow) -> Event:
    text = row.value_text or ""
    feeding_type = FeedingType.BOTTLE
    if row.event_name == labels.FEEDING_ROW_NAMES[FeedingType.BREAST] or labels.FEEDING_LABELS[FeedingType.BREAST] in text:
        feeding_type = FeedingType.BREAST
    if row.event_name == labels.FEEDING_ROW_NAMES[FeedingType.SOLIDS] or labels.FEEDING_LABELS[FeedingType.SOLIDS] in text:
        feeding_type = FeedingType.SOLIDS
    return FeedingEvent(
        **_base(row),
        feeding_type=feeding_type,
        amount_ml=row.value_numeric or None,
        side=labels.match_keyword(text, labels.SIDE_KEYWORDS),
        end_time=_end_time(row),
    )


def _rebuild_growth(row: EventRow) -> Event:
    field = labels.GROWTH_FIELDS.get(row.event_name)
    if field is None:
        return _rebuild_unknown(row)
    value = row.value_numeric if row.value_numeric is not None else 0.0
    return GrowthEvent(**_base(row), **{field: value})


def _rebuild_diaper(row: EventRow) -> Event:
    status = labels.match_keyword(row.value_text, labels.DIAPER_KEYWORDS, DiaperStatus.MIXED)
    return DiaperEvent(**_base(row), status=status)


def _rebuild_walk(row: EventRow) -> Event:
    return WalkEvent(**_base(row), end_time=_end_time(row))


def _rebuild_bath(row: EventRow) -> Event:
    return BathEvent(**_base(row), end_time=_end_time(row))


def _rebuild_mood(row: EventRow) -> Event:
    return MoodEvent(**_base(row), mood=row.value_text or "Normal")


def _rebuild_milestone(row: EventRow) -> Event:
    return MilestoneEvent(**_base(row), title=row.value_text or row.event_name)


def _rebuild_pumping(row: EventRow) -> Event:
    return PumpingEvent(
        **_base(row),
        amount_ml=row.value_numeric or 0,
        side=labels.match_keyword(row.value_text, labels.SIDE_KEYWORDS),
    )


def _rebuild_health(row: EventRow) -> Event:
    return HealthEvent(
        **_base(row),
        subtype=HealthSubtype.OTHER,
        value=row.value_text or "",
        temperature=row.value_numeric or None,
    )


def _rebuild_unknown(row: EventRow) -> Event:
    return MilestoneEvent(**_base(row), title=row.event_name)


_REBUILDERS: Dict[EventKind, Callable[[EventRow], Event]] = {
    EventKind.SLEEP: _rebuild_sleep,
    EventKind.FEEDING: _rebuild_feeding,
    EventKind.GROWTH: _rebuild_growth,
    EventKind.DIAPER: _rebuild_diaper,
    EventKind.WALK: _rebuild_walk,
    EventKind.BATH: _rebuild_bath,
    EventKind.MOOD: _rebuild_mood,
    EventKind.MILESTONE: _rebuild_milestone,
    EventKind.PUMPING: _rebuild_pumping,
    EventKind.HEALTH: _rebuild_health,
}
require_all_kinds(_REBUILDERS, "reconstruct")


def reconstruct(row: Union[EventRow, Mapping[str, Any]]) -> Event:
    """Map a single relational row back to an event.

    Dispatch is on ``event_type``; rows with an unknown type become a
    milestone titled with the row's ``event_name``.
    """
    if not isinstance(row, EventRow):
        row = EventRow.model_validate(row)
    try:
        kind = EventKind(row.event_type)
    except ValueError:
        return _rebuild_unknown(row)
    return _REBUILDERS[kind](row)


def reconstruct_all(rows: Iterable[Union[EventRow, Mapping[str, Any]]]) -> List[Event]:
    return [reconstruct(row) for row in rows]
