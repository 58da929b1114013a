"""Scheduling operations behind the chat tools.

Each function takes a ``ScheduleStore`` and returns JSON-serialisable data
for the model.  Failures the model should relay to the student (slot gone,
slot taken, bad start date) are raised as ``ScheduleError`` subclasses and
turned into tool-result errors by the registry.
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import Any

from tuition_agent.services.schedule_store import (
    BookingOutcome,
    ScheduleStore,
    SlotIdentifier,
)

logger = logging.getLogger(__name__)

# One-hour slots from 10:00 to 17:00 (last slot ends at 18:00)
FIRST_HOUR = 10
END_HOUR = 18

# Leading characters a spreadsheet would evaluate as a formula
_FORMULA_PREFIXES = ("=", "+", "-")
FORMULA_ESCAPE = "'"

_NEWLINES_RE = re.compile(r"\s*[\r\n]+\s*")
_QUOTES_RE = re.compile(r"[\"'`]")


class ScheduleError(Exception):
    """Base class for scheduling failures reported back to the model."""


class SlotNotFoundError(ScheduleError):
    pass


class SlotConflictError(ScheduleError):
    pass


class InvalidScheduleRequest(ScheduleError):
    pass


def escape_formula(value: str) -> str:
    """Prefix ``'`` when the sheet would evaluate *value* as a formula."""
    if value.startswith(_FORMULA_PREFIXES):
        return FORMULA_ESCAPE + value
    return value


def sanitize_contact_info(value: str) -> str:
    """Make free-text contact details safe to store in a spreadsheet cell.

    Newlines collapse to a single space and quote characters are removed.
    Text that still starts with a formula character is prefixed with ``'``
    so the sheet keeps it as a literal string.
    """
    cleaned = _NEWLINES_RE.sub(" ", value.strip())
    cleaned = _QUOTES_RE.sub("", cleaned).strip()
    return escape_formula(cleaned)


def sanitize_student_name(value: str) -> str:
    """Single-line, formula-safe student name.

    Quotes are kept (``O'Brien``).  A name the sheet would evaluate, such as
    ``=""``, is stored literally so the booking can never read back as blank.
    """
    return escape_formula(_NEWLINES_RE.sub(" ", value.strip()))


def weekdays(start: date, days: int) -> list[date]:
    """Mon-Fri dates among the *days* consecutive days from *start*."""
    return [
        d for d in (start + timedelta(days=i) for i in range(days))
        if d.weekday() < 5
    ]


def build_batch_slots(start: date, days: int, subject: str, teacher: str) -> list[SlotIdentifier]:
    """Hourly slots for every weekday in the range."""
    return [
        SlotIdentifier(
            date=d.isoformat(),
            time=f"{hour}:00",
            subject=subject,
            teacher=teacher,
        )
        for d in weekdays(start, days)
        for hour in range(FIRST_HOUR, END_HOUR)
    ]


# ── Operations ───────────────────────────────────────────────────────


def get_availability(store: ScheduleStore, date_str: str, subject: str) -> list[dict[str, Any]]:
    """Open slots on *date_str* for *subject*.  An empty list is a valid answer."""
    return [row.to_availability() for row in store.find_available(date_str, subject)]


def book_slot(
    store: ScheduleStore,
    slot: SlotIdentifier,
    student_name: str,
    contact_info: str,
) -> dict[str, Any]:
    name = sanitize_student_name(student_name)
    if not name:
        raise InvalidScheduleRequest("Student name is required to book a slot.")

    outcome = store.book_if_free(slot, name, sanitize_contact_info(contact_info))

    if outcome is BookingOutcome.NOT_FOUND:
        raise SlotNotFoundError(
            f"No {slot.subject} slot with {slot.teacher} on {slot.date} at {slot.time}."
        )
    if outcome is BookingOutcome.CONFLICT:
        raise SlotConflictError("Aiyo, someone just took this slot. Pick another time?")

    return {"success": True, "message": "Done lah! See you."}


def add_slot(store: ScheduleStore, slot: SlotIdentifier) -> dict[str, Any]:
    store.append_slots([slot])
    return {"success": True, "message": "Slot added successfully!"}


def create_batch_schedule(
    store: ScheduleStore,
    start_date: str,
    days: int,
    subject: str,
    teacher: str,
) -> dict[str, Any]:
    """Submit every weekday hourly slot in the range as one append."""
    try:
        start = date.fromisoformat(start_date.strip())
    except ValueError as exc:
        raise InvalidScheduleRequest(
            f"Start date {start_date!r} is not a valid YYYY-MM-DD date."
        ) from exc

    slots = build_batch_slots(start, days, subject, teacher)
    created = store.append_slots(slots) if slots else 0
    logger.info("Batch schedule from %s for %d day(s): %d slot(s)", start, days, created)

    return {
        "success": True,
        "created": created,
        "message": (
            f"Added {created} slots starting from {start.isoformat()} "
            f"(Mon-Fri only, 10am-6pm)."
        ),
    }
