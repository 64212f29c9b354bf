import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from events.rows import EventRow, flatten, flatten_all, reconstruct
from events.schema import (
    BathEvent,
    DiaperEvent,
    DiaperStatus,
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
)

TS = "2024-01-10T08:30:00Z"


def _row(**kw):
    base = {"event_datetime": TS, "start_datetime": TS}
    base.update(kw)
    return EventRow(**base)


def test_growth_flattens_to_one_row_per_measurement():
    event = GrowthEvent(timestamp=TS, weight_kg=3.5, height_cm=52, head_circumference_cm=35, note="checkup")
    rows = flatten(event)
    assert [r.event_name for r in rows] == ["Вес", "Рост", "Окружность головы"]
    assert [r.value_numeric for r in rows] == [3.5, 52, 35]
    assert all(r.value_text is None for r in rows)
    assert all(r.event_type == "GROWTH" and r.comment == "checkup" for r in rows)


def test_growth_skips_zero_measurements():
    rows = flatten(GrowthEvent(timestamp=TS, weight_kg=0, height_cm=50))
    assert [r.event_name for r in rows] == ["Рост"]


@pytest.mark.parametrize(
    "field,value",
    [("weight_kg", 4.1), ("height_cm", 55.5), ("head_circumference_cm", 37)],
)
def test_single_measurement_growth_survives_flatten_and_reconstruct(field, value):
    event = GrowthEvent(timestamp=TS, **{field: value})
    (row,) = flatten(event)
    rebuilt = reconstruct(row)
    assert isinstance(rebuilt, GrowthEvent)
    assert getattr(rebuilt, field) == value
    others = {"weight_kg", "height_cm", "head_circumference_cm"} - {field}
    assert all(getattr(rebuilt, f) is None for f in others)


def test_multi_measurement_growth_rebuilds_as_separate_events():
    rows = flatten(GrowthEvent(timestamp=TS, weight_kg=3.5, height_cm=52))
    rebuilt = [reconstruct(r) for r in rows]
    assert len(rebuilt) == 2
    assert rebuilt[0].weight_kg == 3.5 and rebuilt[0].height_cm is None
    assert rebuilt[1].height_cm == 52 and rebuilt[1].weight_kg is None


def test_feeding_row_labels():
    breast = FeedingEvent(timestamp=TS, feeding_type=FeedingType.BREAST, side=Side.LEFT, end_time="2024-01-10T09:00:00Z")
    (row,) = flatten(breast)
    assert row.event_name == "ГВ"
    assert row.value_text == "Грудь, Левая"
    assert row.value_numeric is None
    assert row.end_datetime == breast.end_time

    (bottle_row,) = flatten(FeedingEvent(timestamp=TS, feeding_type=FeedingType.BOTTLE, amount_ml=120))
    assert bottle_row.event_name == "Смесь"
    assert bottle_row.value_text == "Бутылка"
    assert bottle_row.value_numeric == 120


def test_feeding_reconstruct_detects_type_and_side():
    breast = reconstruct(_row(event_name="ГВ", event_type="FEEDING", value_text="Грудь, Правая"))
    assert breast.feeding_type is FeedingType.BREAST
    assert breast.side is Side.RIGHT

    solids = reconstruct(_row(event_name="Еда", event_type="FEEDING", value_text="Прикорм", value_numeric=40))
    assert solids.feeding_type is FeedingType.SOLIDS
    assert solids.amount_ml == 40

    bottle = reconstruct(_row(event_name="Смесь", event_type="FEEDING", value_text="Бутылка"))
    assert bottle.feeding_type is FeedingType.BOTTLE
    assert bottle.side is None


def test_feeding_with_both_sides_round_trips():
    event = FeedingEvent(timestamp=TS, feeding_type=FeedingType.BREAST, side=Side.BOTH)
    (row,) = flatten(event)
    assert row.value_text == "Грудь, Обе"
    assert reconstruct(row).side is Side.BOTH


def test_sleep_rows_round_trip_subtype():
    (row,) = flatten(SleepEvent(timestamp=TS, subtype=SleepType.NIGHT))
    assert row.event_name == "Ночной сон"
    assert row.value_text == "NIGHT"
    assert reconstruct(row).subtype is SleepType.NIGHT

    (day_row,) = flatten(SleepEvent(timestamp=TS))
    assert day_row.event_name == "Дневной сон"
    assert day_row.value_text is None
    assert reconstruct(day_row).subtype is SleepType.DAY


def test_diaper_status_from_value_text():
    assert reconstruct(_row(event_name="Подгузник", event_type="DIAPER", value_text="Мокрый")).status is DiaperStatus.WET
    assert reconstruct(_row(event_name="Подгузник", event_type="DIAPER", value_text="Грязный")).status is DiaperStatus.DIRTY
    assert reconstruct(_row(event_name="Подгузник", event_type="DIAPER", value_text=None)).status is DiaperStatus.MIXED
    (row,) = flatten(DiaperEvent(timestamp=TS, status=DiaperStatus.WET))
    assert row.value_text == "Мокрый"


def test_pumping_without_side_flattens_as_both():
    (row,) = flatten(PumpingEvent(timestamp=TS, amount_ml=80))
    assert row.event_name == "Сцеживание"
    assert row.value_text == "Обе"
    assert row.value_numeric == 80


def test_health_rows_lose_subtype_on_reconstruct():
    event = HealthEvent(timestamp=TS, subtype=HealthSubtype.VACCINE, value="БЦЖ", temperature=37.2)
    (row,) = flatten(event)
    assert row.event_name == "Здоровье"
    assert row.value_text == "VACCINE: БЦЖ"
    assert row.value_numeric == 37.2

    rebuilt = reconstruct(row)
    assert rebuilt.subtype is HealthSubtype.OTHER
    assert rebuilt.value == "VACCINE: БЦЖ"
    assert rebuilt.temperature == 37.2


def test_simple_kinds_flatten_to_fixed_names():
    rows = flatten_all([
        BathEvent(timestamp=TS),
        MoodEvent(timestamp=TS, mood="Happy"),
        MilestoneEvent(timestamp=TS, title="First smile"),
    ])
    assert [(r.event_name, r.value_text) for r in rows] == [
        ("Купание", None),
        ("Настроение", "Happy"),
        ("Достижение", "First smile"),
    ]


def test_unknown_event_type_becomes_milestone():
    rebuilt = reconstruct(_row(event_name="Массаж", event_type="MASSAGE"))
    assert isinstance(rebuilt, MilestoneEvent)
    assert rebuilt.title == "Массаж"


def test_mood_defaults_when_missing():
    assert reconstruct(_row(event_name="Настроение", event_type="MOOD")).mood == "Normal"


def test_reconstructed_id_uses_server_id():
    event = reconstruct({"id": 42, "event_datetime": TS, "event_name": "Купание", "event_type": "BATH"})
    assert event.id.startswith("db-")
    assert event.id.endswith("-42")


def test_reconstructed_id_is_stable_without_server_id():
    row = _row(event_name="Прогулка", event_type="WALK", comment="park")
    assert reconstruct(row).id == reconstruct(row).id


def test_inverted_interval_keeps_event_without_end():
    rebuilt = reconstruct(_row(event_name="Прогулка", event_type="WALK", end_datetime="2024-01-10T07:00:00Z"))
    assert rebuilt.end_time is None


def test_payload_excludes_server_id():
    payload = _row(id=7, event_name="Купание", event_type="BATH").to_payload()
    assert "id" not in payload
    assert payload["event_type"] == "BATH"
