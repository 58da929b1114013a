"""Shared test fixtures for the tuition centre test suite."""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import replace

import pytest

ADMIN_SECRET = "test-admin-secret"


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("ADMIN_PASSWORD", ADMIN_SECRET)
    os.environ.setdefault("GOOGLE_SHEET_ID", "test-sheet-id")
    os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
    os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-supabase-key")
    os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")


class FakeScheduleStore:
    """In-memory ``ScheduleStore`` that records every mutation.

    ``before_book`` runs inside ``book_if_free`` before the re-read, which
    lets a test simulate another client booking the slot in between.
    """

    def __init__(self, rows=None):
        from tuition_agent.services.schedule_store import ScheduleRow

        self.rows: list[ScheduleRow] = list(rows or [])
        self.appended: list = []
        self.bookings: list = []
        self.before_book: Callable[[], None] | None = None

    def add(self, date, time, subject, teacher, student_name="", contact_info=""):
        from tuition_agent.services.schedule_store import ScheduleRow, SlotIdentifier

        row = ScheduleRow(
            row=len(self.rows) + 2,
            slot=SlotIdentifier(date, time, subject, teacher),
            student_name=student_name,
            contact_info=contact_info,
        )
        self.rows.append(row)
        return row

    def take(self, slot, student_name):
        """Mark a slot as booked, as another client would."""
        for i, row in enumerate(self.rows):
            if row.slot.matches(slot):
                self.rows[i] = replace(row, student_name=student_name)

    @property
    def mutations(self) -> int:
        return len(self.appended) + len(self.bookings)

    def find_available(self, date, subject):
        from tuition_agent.services.schedule_store import filter_available

        return filter_available(self.rows, date, subject)

    def book_if_free(self, slot, student_name, contact_info):
        from tuition_agent.services.schedule_store import BookingOutcome, find_slot

        if self.before_book:
            self.before_book()
        current = find_slot(self.rows, slot)
        if current is None:
            return BookingOutcome.NOT_FOUND
        if not current.is_available:
            return BookingOutcome.CONFLICT
        self.rows[self.rows.index(current)] = replace(
            current, student_name=student_name, contact_info=contact_info,
        )
        self.bookings.append((slot, student_name, contact_info))
        return BookingOutcome.BOOKED

    def append_slots(self, slots):
        self.appended.append(list(slots))
        for s in slots:
            self.add(s.date, s.time, s.subject, s.teacher)
        return len(slots)


@pytest.fixture
def store():
    fake = FakeScheduleStore()
    fake.add("2025-06-02", "10:00", "Math", "Mr Tan")
    fake.add("2025-06-02", "11:00", "math", "Mr Tan", student_name="Alice")
    fake.add("2025-06-02", "12:00", "Science", "Ms Lim")
    fake.add("2025-06-03", "10:00", "Math", "Mr Tan")
    fake.add("2025-06-02", "14:00", " MATH ", "Ms Lim", student_name="   ")
    return fake


@pytest.fixture
def registry(store):
    from tuition_agent.tools.registry import ToolRegistry

    return ToolRegistry(store, admin_password=ADMIN_SECRET)
