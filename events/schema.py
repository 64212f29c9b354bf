from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Callable, Dict, List, Literal, Mapping, Optional, Union
from uuid import uuid4
from zoneinfo import ZoneInfo

from dateutil.parser import parse
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel

__all__ = [
    "EventKind",
    "SleepType",
    "FeedingType",
    "Side",
    "DiaperStatus",
    "HealthSubtype",
    "SleepEvent",
    "FeedingEvent",
    "PumpingEvent",
    "DiaperEvent",
    "WalkEvent",
    "BathEvent",
    "GrowthEvent",
    "HealthEvent",
    "MoodEvent",
    "MilestoneEvent",
    "Event",
    "EVENT_CLASSES",
    "parse_event",
    "dump_event",
    "require_all_kinds",
    "sort_events",
    "coerce_datetime",
    "to_utc",
    "new_event_id",
]


class EventKind(str, Enum):
    """Discriminator for the ten event variants."""

    SLEEP = "SLEEP"
    FEEDING = "FEEDING"
    PUMPING = "PUMPING"
    DIAPER = "DIAPER"
    WALK = "WALK"
    BATH = "BATH"
    HEALTH = "HEALTH"
    GROWTH = "GROWTH"
    MOOD = "MOOD"
    MILESTONE = "MILESTONE"


class SleepType(str, Enum):
    NIGHT = "NIGHT"
    DAY = "DAY"


class FeedingType(str, Enum):
    BREAST = "BREAST"
    BOTTLE = "BOTTLE"
    SOLIDS = "SOLIDS"


class Side(str, Enum):
    LEFT = "Left"
    RIGHT = "Right"
    BOTH = "Both"

    @classmethod
    def _missing_(cls, value: object) -> "Side":
        if isinstance(value, str):
            val = value.strip().lower()
            for member in cls:
                if member.value.lower() == val:
                    return member
        return super()._missing_(value)


class DiaperStatus(str, Enum):
    WET = "WET"
    DIRTY = "DIRTY"
    MIXED = "MIXED"


class HealthSubtype(str, Enum):
    DOCTOR = "DOCTOR"
    VACCINE = "VACCINE"
    SICKNESS = "SICKNESS"
    MEDICINE = "MEDICINE"
    TEMPERATURE = "TEMPERATURE"
    OTHER = "OTHER"


_DEF_TZ = ZoneInfo("UTC")


def to_utc(dt: datetime) -> datetime:
    """Ensure a datetime is timezone-aware and converted to UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_DEF_TZ)
    return dt.astimezone(_DEF_TZ)


def new_event_id() -> str:
    return uuid4().hex


def coerce_datetime(v: datetime | str | None) -> datetime | None:
    if v is None or v == "":
        return None
    if isinstance(v, str):
        try:
            v = parse(v)
        except OverflowError as exc:
            raise ValueError(f"timestamp out of range: {v!r}") from exc
    if not isinstance(v, datetime):
        raise ValueError(f"expected a datetime or string, got {type(v).__name__}")
    return to_utc(v)


class _EventBase(BaseModel):
    """Fields shared by every event variant."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_event_id)
    timestamp: datetime
    note: Optional[str] = None

    @field_validator("timestamp", mode="before")
    def _parse_timestamp(cls, v: datetime | str) -> datetime:
        parsed = coerce_datetime(v)
        if parsed is None:
            raise ValueError("timestamp is required")
        return parsed

    @property
    def is_duration(self) -> bool:
        return False


class _DurationEvent(_EventBase):
    """Base for kinds that may carry an end time; absent end time means in progress."""

    end_time: Optional[datetime] = None

    @field_validator("end_time", mode="before")
    def _parse_end_time(cls, v: datetime | str | None) -> datetime | None:
        return coerce_datetime(v)

    @model_validator(mode="after")
    def _check_times(self):
        if self.end_time is not None and self.end_time < self.timestamp:
            raise ValueError("endTime must not precede timestamp")
        return self

    @property
    def is_in_progress(self) -> bool:
        return self.is_duration and self.end_time is None

    @property
    def duration_seconds(self) -> Optional[int]:
        if self.is_duration and self.end_time is not None:
            return int((self.end_time - self.timestamp).total_seconds())
        return None


class SleepEvent(_DurationEvent):
    kind: Literal["SLEEP"] = "SLEEP"
    subtype: Optional[SleepType] = None

    @property
    def is_duration(self) -> bool:
        return True


class FeedingEvent(_DurationEvent):
    kind: Literal["FEEDING"] = "FEEDING"
    feeding_type: FeedingType
    amount_ml: Optional[float] = None
    side: Optional[Side] = None

    @property
    def is_duration(self) -> bool:
        return self.feeding_type is FeedingType.BREAST


class PumpingEvent(_EventBase):
    kind: Literal["PUMPING"] = "PUMPING"
    amount_ml: float
    side: Optional[Side] = None


class DiaperEvent(_EventBase):
    kind: Literal["DIAPER"] = "DIAPER"
    status: DiaperStatus


class WalkEvent(_DurationEvent):
    kind: Literal["WALK"] = "WALK"

    @property
    def is_duration(self) -> bool:
        return True


class BathEvent(_DurationEvent):
    kind: Literal["BATH"] = "BATH"

    @property
    def is_duration(self) -> bool:
        return True


class GrowthEvent(_EventBase):
    """Growth measurement; any subset of the three fields may be present."""

    kind: Literal["GROWTH"] = "GROWTH"
    weight_kg: Optional[float] = None
    height_cm: Optional[float] = None
    head_circumference_cm: Optional[float] = None

    @model_validator(mode="after")
    def _check_measurements(self) -> "GrowthEvent":
        if self.weight_kg is None and self.height_cm is None and self.head_circumference_cm is None:
            raise ValueError("growth event needs at least one measurement")
        return self


class HealthEvent(_EventBase):
    kind: Literal["HEALTH"] = "HEALTH"
    subtype: HealthSubtype = HealthSubtype.OTHER
    value: Optional[str] = None
    temperature: Optional[float] = None


class MoodEvent(_EventBase):
    kind: Literal["MOOD"] = "MOOD"
    mood: str


class MilestoneEvent(_EventBase):
    kind: Literal["MILESTONE"] = "MILESTONE"
    title: Optional[str] = None


Event = Annotated[
    Union[
        SleepEvent,
        FeedingEvent,
        PumpingEvent,
        DiaperEvent,
        WalkEvent,
        BathEvent,
        GrowthEvent,
        HealthEvent,
        MoodEvent,
        MilestoneEvent,
    ],
    Field(discriminator="kind"),
]

EVENT_CLASSES: Dict[EventKind, type] = {
    EventKind.SLEEP: SleepEvent,
    EventKind.FEEDING: FeedingEvent,
    EventKind.PUMPING: PumpingEvent,
    EventKind.DIAPER: DiaperEvent,
    EventKind.WALK: WalkEvent,
    EventKind.BATH: BathEvent,
    EventKind.GROWTH: GrowthEvent,
    EventKind.HEALTH: HealthEvent,
    EventKind.MOOD: MoodEvent,
    EventKind.MILESTONE: MilestoneEvent,
}

_EVENT_ADAPTER: TypeAdapter = TypeAdapter(Event)


def require_all_kinds(table: Mapping[EventKind, Callable[..., Any]], name: str) -> None:
    """Fail at import time when a dispatch table misses an event kind."""
    missing = [k.value for k in EventKind if k not in table]
    if missing:
        raise RuntimeError(f"{name} does not handle event kinds: {', '.join(missing)}")


require_all_kinds(EVENT_CLASSES, "EVENT_CLASSES")


def parse_event(data: Mapping[str, Any]) -> Event:
    """Validate a JSON-like record into the matching event variant.

    Records written by older clients carry the discriminator under ``type``
    rather than ``kind``; both are accepted.
    """
    record = dict(data)
    if "kind" not in record and "type" in record:
        record["kind"] = record.pop("type")
    return _EVENT_ADAPTER.validate_python(record)


def dump_event(event: Event) -> Dict[str, Any]:
    """Serialise an event to a JSON-compatible dict with camelCase keys."""
    return event.model_dump(mode="json", by_alias=True, exclude_none=True)


def sort_events(events: List[Event], descending: bool = False) -> List[Event]:
    return sorted(events, key=lambda e: e.timestamp, reverse=descending)
