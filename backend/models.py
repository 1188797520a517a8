"""
Document models owned by the planner: people, meetings and notes.

Meetings and notes are the parents of embedding records. Each keeps the ids
of the records it owns in ``embedding_ids``; the indexer maintains that list.
"""

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Person(BaseModel):
    """A meeting attendee."""
    name: str
    email: Optional[str] = None


class MeetingRecord(BaseModel):
    """A meeting imported from the calendar or created by hand."""
    id: str = Field(default_factory=generate_uuid)
    event_identifier: str = Field(default_factory=generate_uuid)
    title: str
    start_date: datetime
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    meeting_notes: Optional[str] = None
    purpose: Optional[str] = None
    outcomes: Optional[str] = None
    action_items: Optional[str] = None
    summary: Optional[str] = None
    attendees: list[Person] = Field(default_factory=list)
    source_type: Literal["calendar", "manual"] = "calendar"
    is_all_day: bool = False
    embedding_ids: list[str] = Field(default_factory=list)

    @property
    def attendee_names(self) -> list[str]:
        return [p.name for p in self.attendees if p.name]


class Note(BaseModel):
    """A free-form note, optionally attached to a meeting."""
    id: str = Field(default_factory=generate_uuid)
    title: str = ""
    plain_text: str = ""
    meeting_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    embedding_ids: list[str] = Field(default_factory=list)

    @property
    def display_title(self) -> str:
        return self.title or "Untitled Note"
