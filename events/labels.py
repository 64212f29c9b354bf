"""
Russian label vocabulary shared by the relational and tabular codecs.

Each heuristic field (side, sleep subtype, diaper status) has exactly one
keyword table here so that parsing code never hard-codes fragments.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple, TypeVar

from events.schema import DiaperStatus, EventKind, FeedingType, HealthSubtype, Side, SleepType

T = TypeVar("T")

# ---------- relational rows ------------------------------------------

WEIGHT = "Вес"
HEIGHT = "Рост"
HEAD_CIRCUMFERENCE = "Окружность головы"

GROWTH_FIELDS: Dict[str, str] = {
    WEIGHT: "weight_kg",
    HEIGHT: "height_cm",
    HEAD_CIRCUMFERENCE: "head_circumference_cm",
}

FEEDING_ROW_NAMES: Dict[FeedingType, str] = {
    FeedingType.BREAST: "ГВ",
    FeedingType.BOTTLE: "Смесь",
    FeedingType.SOLIDS: "Еда",
}

FEEDING_LABELS: Dict[FeedingType, str] = {
    FeedingType.BREAST: "Грудь",
    FeedingType.BOTTLE: "Бутылка",
    FeedingType.SOLIDS: "Прикорм",
}

SIDE_LABELS: Dict[Side, str] = {
    Side.LEFT: "Левая",
    Side.RIGHT: "Правая",
    Side.BOTH: "Обе",
}

SLEEP_ROW_NAMES: Dict[SleepType, str] = {
    SleepType.NIGHT: "Ночной сон",
    SleepType.DAY: "Дневной сон",
}

DIAPER_LABELS: Dict[DiaperStatus, str] = {
    DiaperStatus.WET: "Мокрый",
    DiaperStatus.DIRTY: "Грязный",
    DiaperStatus.MIXED: "Смешанный",
}

ROW_NAMES: Dict[EventKind, str] = {
    EventKind.DIAPER: "Подгузник",
    EventKind.PUMPING: "Сцеживание",
    EventKind.HEALTH: "Здоровье",
    EventKind.WALK: "Прогулка",
    EventKind.BATH: "Купание",
    EventKind.MOOD: "Настроение",
    EventKind.MILESTONE: "Достижение",
}

# ---------- tabular text ---------------------------------------------

CSV_SLEEP = "Сон"
CSV_WALK = "Прогулка"
CSV_BATH = "Купание"
CSV_BREAST = "Кормление грудью"
CSV_PUMPING = "Сцеживание"
CSV_BOTTLE = "Бутылочка"
CSV_SOLIDS = "Прикорм"
CSV_DIAPER = "Подгузник"
CSV_MOOD = "Настроение"
CSV_MILESTONE = "Важное событие"

CSV_HEALTH_NAMES: Dict[str, HealthSubtype] = {
    "Визит врача": HealthSubtype.DOCTOR,
    "Прививка": HealthSubtype.VACCINE,
    "Болезнь": HealthSubtype.SICKNESS,
    "Прием лекарств": HealthSubtype.MEDICINE,
    "Температура": HealthSubtype.TEMPERATURE,
    "Здоровье": HealthSubtype.OTHER,
}

CSV_HEALTH_LABELS: Dict[HealthSubtype, str] = {v: k for k, v in CSV_HEALTH_NAMES.items()}

# Column keys mapped to header names. Exact names are tried first on every
# column, substring names only afterwards.
HEADER_EXACT: Dict[str, Tuple[str, ...]] = {
    "date": ("дата", "date"),
    "event": ("событие", "event"),
    "type": ("тип", "type"),
    "value_numeric": ("значение.число", "value_numeric", "value.number"),
    "value": ("значение", "value"),
    "start": ("начало", "start"),
    "end": ("окончание", "end"),
    "comment": ("комментарий", "comment", "note"),
}

HEADER_SUBSTRING: Dict[str, Tuple[str, ...]] = {
    "date": ("дата",),
    "event": ("событие",),
    "type": ("тип",),
    "value_numeric": ("значение.число",),
    "start": ("начало",),
    "end": ("окончание",),
    "comment": ("комментарий",),
}

CSV_COLUMNS: Tuple[str, ...] = (
    "Дата",
    "Событие",
    "Тип",
    "Значение.Число",
    "Начало",
    "Окончание",
    "Комментарий",
)

# ---------- keyword detection ----------------------------------------

# First match wins.
SIDE_KEYWORDS: List[Tuple[str, Side]] = [
    ("лев", Side.LEFT),
    ("прав", Side.RIGHT),
    ("обе", Side.BOTH),
]

# "днев" takes precedence over "ноч".
SLEEP_KEYWORDS: List[Tuple[str, SleepType]] = [
    ("днев", SleepType.DAY),
    ("ноч", SleepType.NIGHT),
]

DIAPER_KEYWORDS: List[Tuple[str, DiaperStatus]] = [
    ("мокр", DiaperStatus.WET),
    ("гряз", DiaperStatus.DIRTY),
]


def match_keyword(
    text: Optional[str],
    table: Sequence[Tuple[str, T]],
    default: Optional[T] = None,
) -> Optional[T]:
    """Return the value of the first keyword found in ``text`` (case-insensitive)."""
    if not text:
        return default
    lowered = text.lower()
    for fragment, value in table:
        if fragment in lowered:
            return value
    return default
