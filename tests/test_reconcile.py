import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from events.reconcile import merge, result_for
from events.schema import BathEvent, DiaperEvent, SleepEvent, WalkEvent


def _store():
    return [
        SleepEvent(id="s1", timestamp="2024-01-10T20:00:00Z"),
        DiaperEvent(id="d1", timestamp="2024-01-10T21:00:00Z", status="WET"),
    ]


def test_merge_is_idempotent():
    current = _store()
    candidates = [
        WalkEvent(id="w1", timestamp="2024-01-11T10:00:00Z"),
        BathEvent(id="b1", timestamp="2024-01-11T19:00:00Z"),
    ]
    once, added = merge(current, candidates)
    assert [e.id for e in added] == ["w1", "b1"]

    twice, added_again = merge(once, candidates)
    assert added_again == []
    assert twice == once


def test_same_instant_and_kind_counts_as_duplicate():
    candidate = SleepEvent(id="other-id", timestamp="2024-01-10T23:00:00+03:00")
    merged, added = merge(_store(), [candidate])
    assert added == []
    assert len(merged) == 2


def test_several_candidates_at_a_stored_instant_are_all_rejected():
    candidates = [
        SleepEvent(id="c1", timestamp="2024-01-10T20:00:00Z", note="first"),
        SleepEvent(id="c2", timestamp="2024-01-10T20:00:00Z", note="second"),
    ]
    merged, added = merge(_store(), candidates)
    assert added == []
    assert [e.id for e in merged] == ["s1", "d1"]


def test_same_instant_different_kind_is_kept():
    candidate = BathEvent(id="b2", timestamp="2024-01-10T20:00:00Z")
    _, added = merge(_store(), [candidate])
    assert added == [candidate]


def test_existing_ids_are_never_overwritten():
    replacement = SleepEvent(id="s1", timestamp="2024-02-01T20:00:00Z", note="changed")
    merged, added = merge(_store(), [replacement])
    assert added == []
    assert merged[0].note is None
    assert merged[0].timestamp.month == 1


def test_survivors_are_appended_in_candidate_order():
    candidates = [
        WalkEvent(id="w2", timestamp="2024-01-01T10:00:00Z"),
        WalkEvent(id="w1", timestamp="2024-01-02T10:00:00Z"),
    ]
    merged, _ = merge(_store(), candidates)
    assert [e.id for e in merged] == ["s1", "d1", "w2", "w1"]


def test_candidates_are_not_deduplicated_against_each_other():
    candidates = [
        WalkEvent(id="w1", timestamp="2024-01-02T10:00:00Z"),
        WalkEvent(id="w2", timestamp="2024-01-02T10:00:00Z"),
    ]
    _, added = merge([], candidates)
    assert len(added) == 2


def test_result_messages():
    assert result_for(0).message == "No new data to import (duplicates detected)."
    assert result_for(0).success
    assert result_for(3).count == 3
    assert result_for(3).message == "Imported 3 records."
