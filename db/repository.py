"""
Event store: one named slot holding the whole event collection.

Every mutation is a read-modify-write of the full collection inside a single
transaction, so a reader never observes a half-written slot. Callers that
share the store across threads must serialise these calls themselves.
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import List, Literal, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config.settings import db_path, import_timezone, slot_name
from db.engine import SessionLocal as _DefaultSessionLocal, engine as _default_engine, get_engine, init_db
from db.models import EventSlotORM
from events.backup import export_json, parse_json
from events.importer import parse_csv
from events.reconcile import ImportResult, merge, result_for
from events.schema import Event, sort_events

logger = logging.getLogger(__name__)

_engine = _default_engine
_SessionLocal = _DefaultSessionLocal
_engine_path = Path(_engine.url.database).resolve()


@contextmanager
def session_scope():
    """
    Provide a transactional database session scoped to the current engine.

    If BABYLOG_DB_PATH (or the working directory it defaults to) changed since
    the last call, a new engine is bound to the new database file first. The
    context commits on success, rolls back and re-raises on error, and always
    closes the session.
    """
    global _engine, _engine_path, _SessionLocal

    desired_path = db_path()
    if desired_path != _engine_path:
        _engine = get_engine(desired_path)
        _SessionLocal = sessionmaker(bind=_engine, expire_on_commit=False)
        _engine_path = desired_path
    init_db(_engine)

    db = _SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _load(db: Session, slot: str) -> Tuple[Optional[EventSlotORM], List[Event]]:
    row = db.get(EventSlotORM, slot)
    if row is None:
        return None, []
    try:
        return row, parse_json(row.payload)
    except ValueError as exc:
        logger.error("Event slot %r is unreadable, treating it as empty: %s", slot, exc)
        return row, []


def _save(db: Session, slot: str, row: Optional[EventSlotORM], events: List[Event]) -> None:
    payload = export_json(events, indent=None)
    if row is None:
        db.add(EventSlotORM(name=slot, payload=payload))
    else:
        row.payload = payload


# ---------- CRUD -----------------------------------------------------

def get_all(slot: Optional[str] = None) -> List[Event]:
    """Return the stored events in storage order (no ordering guarantee)."""
    with session_scope() as db:
        _, events = _load(db, slot or slot_name())
        return events


def list_events(
    order: Optional[Literal["asc", "desc"]] = "desc",
    slot: Optional[str] = None,
) -> List[Event]:
    """Stored events sorted by timestamp at read time; ``order=None`` keeps storage order."""
    events = get_all(slot)
    if order is None:
        return events
    return sort_events(events, descending=(order == "desc"))


def get_event(event_id: str, slot: Optional[str] = None) -> Optional[Event]:
    return next((e for e in get_all(slot) if e.id == event_id), None)


def add_event(event: Event, slot: Optional[str] = None) -> List[Event]:
    """Append ``event``; an event with the same id is replaced in place."""
    slot = slot or slot_name()
    with session_scope() as db:
        row, events = _load(db, slot)
        if any(e.id == event.id for e in events):
            logger.info("Event %s already stored, replacing it", event.id)
            events = [event if e.id == event.id else e for e in events]
        else:
            events.append(event)
        _save(db, slot, row, events)
        return events


def update_event(event: Event, slot: Optional[str] = None) -> List[Event]:
    """Replace the event with the same id; no-op if it is absent."""
    slot = slot or slot_name()
    with session_scope() as db:
        row, events = _load(db, slot)
        if not any(e.id == event.id for e in events):
            return events
        events = [event if e.id == event.id else e for e in events]
        _save(db, slot, row, events)
        return events


def delete_event(event_id: str, slot: Optional[str] = None) -> List[Event]:
    """Remove the event with ``event_id``; no-op if it is absent."""
    slot = slot or slot_name()
    with session_scope() as db:
        row, events = _load(db, slot)
        remaining = [e for e in events if e.id != event_id]
        if len(remaining) != len(events):
            _save(db, slot, row, remaining)
        return remaining


def replace_all(events: List[Event], slot: Optional[str] = None) -> None:
    slot = slot or slot_name()
    with session_scope() as db:
        row, _ = _load(db, slot)
        _save(db, slot, row, list(events))


# ---------- import ---------------------------------------------------

def import_events(candidates: List[Event], slot: Optional[str] = None) -> ImportResult:
    """Merge ``candidates`` into the store, skipping duplicates.

    Importing the same list twice adds nothing the second time.
    """
    slot = slot or slot_name()
    try:
        with session_scope() as db:
            row, current = _load(db, slot)
            merged, added = merge(current, candidates)
            if added:
                _save(db, slot, row, merged)
    except SQLAlchemyError as exc:
        logger.error("Failed to import %d events: %s", len(candidates), exc)
        return ImportResult(success=False, count=0, message="Could not save imported events.")

    logger.info("Imported %d of %d candidate events", len(added), len(candidates))
    return result_for(len(added))


def import_text(
    text: str,
    fmt: Literal["csv", "json"] = "csv",
    slot: Optional[str] = None,
    tz: Optional[str] = None,
) -> ImportResult:
    """Parse a CSV export or JSON backup and merge it into the store."""
    try:
        if fmt == "json":
            candidates = parse_json(text)
        else:
            candidates = parse_csv(text, tz=tz or import_timezone())
    except ValueError as exc:
        logger.warning("Could not read %s import: %s", fmt, exc)
        return ImportResult(success=False, count=0, message="Could not read the file. Check the format.")
    return import_events(candidates, slot=slot)
