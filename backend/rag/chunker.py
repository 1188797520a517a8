"""
Chunking for meetings and notes.

Every chunk repeats the document title so it still makes sense when it is
retrieved on its own. Long text is packed greedily, paragraph by paragraph,
into chunks of at most ~500 characters.
"""

import textwrap
from datetime import datetime
from typing import Iterable, Iterator

from models import MeetingRecord, Note

MAX_CHUNK_CHARS = 500
MIN_CHUNK_CHARS = 30


def format_meeting_date(value: datetime) -> str:
    """Medium date + short time, e.g. 'Jan 5, 2026 at 2:30 PM'."""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{value:%b} {value.day}, {value.year} at {hour}:{value:%M} {meridiem}"


def split_paragraphs(text: str) -> list[str]:
    """Split on line breaks, dropping blank lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


class Chunker:
    """
    Turns a meeting or note into an ordered list of chunk strings.

    Args:
        max_chunk_chars: soft size limit for a packed chunk
        min_chunk_chars: the last packed chunk is dropped unless it is longer
    """

    def __init__(self, max_chunk_chars: int = MAX_CHUNK_CHARS, min_chunk_chars: int = MIN_CHUNK_CHARS):
        if max_chunk_chars <= min_chunk_chars:
            raise ValueError(
                f"max_chunk_chars ({max_chunk_chars}) must be > min_chunk_chars ({min_chunk_chars})"
            )
        self.max_chunk_chars = max_chunk_chars
        self.min_chunk_chars = min_chunk_chars

    def chunk_meeting(self, meeting: MeetingRecord) -> list[str]:
        """
        Chunks for a meeting, in order:
        1. overview (always)
        2. packed notes
        3. purpose and outcomes
        4. action items
        """
        title = meeting.title
        chunks = [self._meeting_overview(meeting)]

        if meeting.meeting_notes and meeting.meeting_notes.strip():
            chunks.extend(self._pack(
                split_paragraphs(meeting.meeting_notes),
                prefix=f"Notes from {title}: ",
                continued_prefix=f"Notes from {title} (continued): ",
            ))

        purpose_outcomes = ""
        if meeting.purpose:
            purpose_outcomes = f"Purpose of {title}: {meeting.purpose}"
        if meeting.outcomes:
            if purpose_outcomes:
                purpose_outcomes += f" Outcome: {meeting.outcomes}"
            else:
                purpose_outcomes = f"Outcome of {title}: {meeting.outcomes}"
        if purpose_outcomes:
            chunks.append(purpose_outcomes)

        if meeting.action_items:
            chunks.append(f"Action items from {title}: {meeting.action_items}")

        return chunks

    def chunk_note(self, note: Note) -> list[str]:
        """Chunks for a note. A note without body text is not indexed."""
        body = note.plain_text
        if not body or not body.strip():
            return []

        title = note.display_title
        full_text = f"Note '{title}': {body}"
        if len(full_text) <= self.max_chunk_chars:
            return [full_text]

        return self._pack(
            split_paragraphs(body),
            prefix=f"Note '{title}': ",
            continued_prefix=f"Note '{title}' (continued): ",
        )

    def _meeting_overview(self, meeting: MeetingRecord) -> str:
        overview = f"Meeting: {meeting.title} on {format_meeting_date(meeting.start_date)}"
        names = meeting.attendee_names
        if names:
            overview += f" with {', '.join(names)}"
        if meeting.location:
            overview += f" at {meeting.location}"
        return overview

    def _pack(self, paragraphs: Iterable[str], prefix: str, continued_prefix: str) -> list[str]:
        """
        Greedy packing. A chunk is closed when the next piece would push it past
        max_chunk_chars, but never while it still holds only its prefix.
        """
        chunks: list[str] = []
        current = prefix
        has_content = False

        piece_limit = max(self.max_chunk_chars - len(continued_prefix) - 1, self.min_chunk_chars)

        for piece in self._fit(paragraphs, piece_limit):
            candidate = current + piece + " "
            if len(candidate) > self.max_chunk_chars and has_content:
                chunks.append(current.strip())
                current = continued_prefix + piece + " "
            else:
                current = candidate
            has_content = True

        trimmed = current.strip()
        if has_content and len(trimmed) > self.min_chunk_chars:
            chunks.append(trimmed)

        return chunks

    @staticmethod
    def _fit(paragraphs: Iterable[str], limit: int) -> Iterator[str]:
        """Yield paragraphs, splitting any longer than limit at whitespace (or hard, if there is none)."""
        for paragraph in paragraphs:
            if len(paragraph) <= limit:
                yield paragraph
            else:
                yield from textwrap.wrap(
                    paragraph,
                    width=limit,
                    break_on_hyphens=False,
                    expand_tabs=False,
                    replace_whitespace=False,
                )
