"""Lesson schedule storage.

A slot is one row of the ``schedule`` tab.  It is identified by its natural
key (date, time, subject, teacher) and is *available* while its
``Student_Name`` cell is blank.

``ScheduleStore`` is the narrow interface the tools depend on.  Booking goes
through ``book_if_free``, which re-reads the slot and refuses to overwrite
an existing booking.  This is an optimistic check, not a transaction: two
bookings racing for the same slot are only told apart if the second read
lands after the first write.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Protocol

from tuition_agent.config import SCHEDULE_SHEET
from tuition_agent.services.sheets_client import SheetsClient, get_sheets_client

logger = logging.getLogger(__name__)

# ── Column names in the schedule tab ────────────────────────────────
COL_DATE = "Date"
COL_TIME = "Time"
COL_SUBJECT = "Subject"
COL_TEACHER = "Teacher"
COL_STUDENT = "Student_Name"
COL_CONTACT = "Contact_Info"
SCHEDULE_COLUMNS = [COL_DATE, COL_TIME, COL_SUBJECT, COL_TEACHER, COL_STUDENT, COL_CONTACT]


@dataclass(frozen=True)
class SlotIdentifier:
    """Natural key of a schedule slot."""

    date: str
    time: str
    subject: str
    teacher: str

    def normalized(self) -> tuple[str, str, str, str]:
        return (
            self.date.strip(),
            self.time.strip(),
            self.subject.strip().lower(),
            self.teacher.strip(),
        )

    def matches(self, other: SlotIdentifier) -> bool:
        """Trimmed comparison on all fields, subject case-insensitive."""
        return self.normalized() == other.normalized()


@dataclass(frozen=True)
class ScheduleRow:
    """A slot as currently stored, with its sheet row number."""

    row: int
    slot: SlotIdentifier
    student_name: str = ""
    contact_info: str = ""

    @property
    def is_available(self) -> bool:
        return not self.student_name.strip()

    def to_availability(self) -> dict[str, Any]:
        """Shape returned to the model by ``getAvailability``.

        ``row`` is informational; bookings are located by natural key.
        """
        return {
            "row": self.row,
            "date": self.slot.date,
            "time": self.slot.time,
            "subject": self.slot.subject,
            "teacher": self.slot.teacher,
        }


class BookingOutcome(enum.Enum):
    BOOKED = "booked"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


def filter_available(rows: list[ScheduleRow], date: str, subject: str) -> list[ScheduleRow]:
    """Rows on exactly *date* for *subject* (case-insensitive) with no student."""
    date = date.strip()
    subject = subject.strip().lower()
    return [
        r for r in rows
        if r.slot.date.strip() == date
        and r.slot.subject.strip().lower() == subject
        and r.is_available
    ]


def find_slot(rows: list[ScheduleRow], slot: SlotIdentifier) -> ScheduleRow | None:
    return next((r for r in rows if r.slot.matches(slot)), None)


class ScheduleStore(Protocol):
    """Operations the scheduling tools need from a slot store."""

    def find_available(self, date: str, subject: str) -> list[ScheduleRow]: ...

    def book_if_free(
        self, slot: SlotIdentifier, student_name: str, contact_info: str,
    ) -> BookingOutcome: ...

    def append_slots(self, slots: list[SlotIdentifier]) -> int: ...


class SheetsScheduleStore:
    """``ScheduleStore`` backed by the ``schedule`` tab of the spreadsheet."""

    def __init__(self, client: SheetsClient, sheet: str = SCHEDULE_SHEET):
        self._client = client
        self._sheet = sheet

    def _read(self) -> tuple[list[str], list[ScheduleRow]]:
        headers, records = self._client.get_table(self._sheet)
        rows = [
            ScheduleRow(
                row=row_number,
                slot=SlotIdentifier(
                    date=rec.get(COL_DATE, ""),
                    time=rec.get(COL_TIME, ""),
                    subject=rec.get(COL_SUBJECT, ""),
                    teacher=rec.get(COL_TEACHER, ""),
                ),
                student_name=rec.get(COL_STUDENT, ""),
                contact_info=rec.get(COL_CONTACT, ""),
            )
            for row_number, rec in records
        ]
        return headers, rows

    def _headers_for_write(self, headers: list[str]) -> list[str]:
        return self._client.ensure_columns(self._sheet, headers, SCHEDULE_COLUMNS)

    def find_available(self, date: str, subject: str) -> list[ScheduleRow]:
        _, rows = self._read()
        return filter_available(rows, date, subject)

    def book_if_free(
        self, slot: SlotIdentifier, student_name: str, contact_info: str,
    ) -> BookingOutcome:
        # Fresh read immediately before the write
        headers, rows = self._read()
        current = find_slot(rows, slot)
        if current is None:
            return BookingOutcome.NOT_FOUND
        if not current.is_available:
            logger.info("Slot %s at row %d already taken", slot, current.row)
            return BookingOutcome.CONFLICT

        headers = self._headers_for_write(headers)
        self._client.update_cells(
            self._sheet,
            headers,
            current.row,
            {COL_STUDENT: student_name, COL_CONTACT: contact_info},
        )
        logger.info("Booked row %d for %s", current.row, slot)
        return BookingOutcome.BOOKED

    def append_slots(self, slots: list[SlotIdentifier]) -> int:
        if not slots:
            return 0
        headers = self._headers_for_write(self._client.get_headers(self._sheet))
        self._client.append_records(
            self._sheet,
            headers,
            [
                {
                    COL_DATE: s.date,
                    COL_TIME: s.time,
                    COL_SUBJECT: s.subject,
                    COL_TEACHER: s.teacher,
                    COL_STUDENT: "",
                    COL_CONTACT: "",
                }
                for s in slots
            ],
        )
        logger.info("Appended %d slot(s) to '%s'", len(slots), self._sheet)
        return len(slots)


# ── Module-level singleton (thread-safe) ────────────────────────────
_store: SheetsScheduleStore | None = None
_store_lock = threading.Lock()


def get_schedule_store() -> SheetsScheduleStore:
    """Return the process-wide schedule store, built on first use."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = SheetsScheduleStore(get_sheets_client())
    return _store
