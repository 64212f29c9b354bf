from .engine import SessionLocal, Base  # noqa: F401
from .repository import (  # noqa: F401
    add_event,
    delete_event,
    get_all,
    get_event,
    import_events,
    import_text,
    list_events,
    replace_all,
    update_event,
)

__all__ = [
    "SessionLocal",
    "Base",
    "add_event",
    "delete_event",
    "get_all",
    "get_event",
    "import_events",
    "import_text",
    "list_events",
    "replace_all",
    "update_event",
]
