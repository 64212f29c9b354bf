"""
ORM mapping for the local event slot.

The whole event collection lives in one row per slot, serialised as a JSON
array of tagged event records and overwritten on every mutation.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from db.engine import Base


class EventSlotORM(Base):
    __tablename__ = "event_slots"

    name = Column(String, primary_key=True)
    payload = Column(Text, nullable=False, default="[]")
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
