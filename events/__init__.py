from .schema import Event, EventKind, dump_event, parse_event  # noqa: F401
from .rows import EventRow, flatten, flatten_all, reconstruct  # noqa: F401
from .importer import parse_csv  # noqa: F401
from .reconcile import ImportResult, merge  # noqa: F401

__all__ = [
    "Event",
    "EventKind",
    "EventRow",
    "ImportResult",
    "dump_event",
    "flatten",
    "flatten_all",
    "merge",
    "parse_csv",
    "parse_event",
    "reconstruct",
]
