from __future__ import annotations

import json
import logging
from typing import Iterable, List

from pydantic import ValidationError

from events.schema import Event, dump_event, parse_event

__all__ = ["export_json", "parse_json"]

logger = logging.getLogger(__name__)


def export_json(events: Iterable[Event], indent: int | None = 2) -> str:
    """Full-fidelity backup: a JSON array of event records."""
    return json.dumps([dump_event(e) for e in events], ensure_ascii=False, indent=indent)


def parse_json(text: str) -> List[Event]:
    """Read a backup produced by :func:`export_json`.

    Raises ``ValueError`` if the payload is not a JSON array. Individual
    records that fail validation are logged and skipped.
    """
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("backup must be a JSON array of events")

    events: List[Event] = []
    for idx, record in enumerate(data):
        if not isinstance(record, dict):
            logger.warning("Skipping backup record %d: not an object", idx)
            continue
        try:
            events.append(parse_event(record))
        except ValidationError as exc:
            logger.warning("Skipping backup record %d: %s", idx, exc)
    return events
