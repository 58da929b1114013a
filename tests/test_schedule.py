"""Tests for the scheduling operations and contact sanitization."""

from __future__ import annotations

from datetime import date

import pytest

from tuition_agent.services.schedule_store import SlotIdentifier
from tuition_agent.tools.schedule import (
    InvalidScheduleRequest,
    SlotConflictError,
    SlotNotFoundError,
    book_slot,
    build_batch_slots,
    create_batch_schedule,
    get_availability,
    sanitize_contact_info,
    sanitize_student_name,
    weekdays,
)


class TestSanitizeContactInfo:
    def test_formula_gets_neutralizing_prefix(self):
        assert sanitize_contact_info("=cmd|calc") == "'=cmd|calc"

    @pytest.mark.parametrize("value", ["+6591234567", "-1", "=SUM(A1:A2)"])
    def test_all_formula_characters_are_escaped(self, value: str):
        assert sanitize_contact_info(value) == "'" + value

    def test_newlines_collapse_to_single_space(self):
        assert sanitize_contact_info("9123 4567\r\n  alice@example.com") == "9123 4567 alice@example.com"

    def test_quotes_are_stripped(self):
        assert sanitize_contact_info('"alice\'s" `phone`') == "alices phone"

    def test_formula_hidden_behind_quotes_is_still_escaped(self):
        assert sanitize_contact_info('"=HYPERLINK(x)"') == "'=HYPERLINK(x)"

    def test_safe_value_is_only_trimmed(self):
        assert sanitize_contact_info("  alice@example.com ") == "alice@example.com"


class TestSanitizeStudentName:
    @pytest.mark.parametrize("value", ['=""', "+65", "-x", '=IF(1,"","")'])
    def test_formula_names_are_stored_literally(self, value: str):
        assert sanitize_student_name(value) == "'" + value

    def test_apostrophes_are_kept(self):
        assert sanitize_student_name(" Sean O'Brien ") == "Sean O'Brien"

    def test_newlines_collapse_to_single_space(self):
        assert sanitize_student_name("Bob\n=1") == "Bob =1"


class TestGetAvailability:
    def test_returns_only_free_matching_slots(self, store):
        slots = get_availability(store, "2025-06-02", "Math")
        assert [s["time"] for s in slots] == ["10:00", "14:00"]

    def test_subject_match_is_case_insensitive(self, store):
        assert get_availability(store, "2025-06-02", "mAtH") == get_availability(store, "2025-06-02", "Math")

    def test_every_result_matches_date_and_subject(self, store):
        for slot in get_availability(store, "2025-06-02", "Math"):
            assert slot["date"] == "2025-06-02"
            assert slot["subject"].strip().lower() == "math"

    def test_no_match_is_an_empty_list(self, store):
        assert get_availability(store, "2025-12-25", "Math") == []

    def test_result_includes_row_reference(self, store):
        slot = get_availability(store, "2025-06-03", "Math")[0]
        assert slot == {
            "row": 5, "date": "2025-06-03", "time": "10:00",
            "subject": "Math", "teacher": "Mr Tan",
        }


class TestBookSlot:
    def test_books_free_slot(self, store):
        slot = SlotIdentifier("2025-06-02", "10:00", "Math", "Mr Tan")
        result = book_slot(store, slot, "Bob", "9123 4567")
        assert result["success"] is True
        assert store.bookings == [(slot, "Bob", "9123 4567")]

    def test_lookup_trims_and_ignores_subject_case(self, store):
        slot = SlotIdentifier(" 2025-06-02 ", "10:00 ", "MATH", " Mr Tan")
        assert book_slot(store, slot, "Bob", "bob@example.com")["success"] is True

    def test_contact_info_is_sanitized_before_storage(self, store):
        slot = SlotIdentifier("2025-06-02", "10:00", "Math", "Mr Tan")
        book_slot(store, slot, "Bob", "=cmd|calc")
        assert store.bookings[0][2] == "'=cmd|calc"

    def test_formula_student_name_cannot_free_the_slot(self, store):
        slot = SlotIdentifier("2025-06-02", "10:00", "Math", "Mr Tan")
        book_slot(store, slot, '=""', "bob@example.com")

        assert store.bookings[0][1] == "'=\"\""
        with pytest.raises(SlotConflictError):
            book_slot(store, slot, "Carol", "carol@example.com")

    def test_blank_student_name_is_rejected(self, store):
        slot = SlotIdentifier("2025-06-02", "10:00", "Math", "Mr Tan")
        with pytest.raises(InvalidScheduleRequest):
            book_slot(store, slot, "   ", "bob@example.com")
        assert store.bookings == []

    def test_missing_slot_raises_not_found(self, store):
        with pytest.raises(SlotNotFoundError):
            book_slot(store, SlotIdentifier("2025-06-02", "09:00", "Math", "Mr Tan"), "Bob", "x")

    def test_booked_slot_raises_conflict_and_keeps_student(self, store):
        slot = SlotIdentifier("2025-06-02", "11:00", "Math", "Mr Tan")
        with pytest.raises(SlotConflictError):
            book_slot(store, slot, "Bob", "x")
        assert store.rows[1].student_name == "Alice"
        assert store.bookings == []

    def test_second_sequential_booking_conflicts(self, store):
        slot = SlotIdentifier("2025-06-02", "10:00", "Math", "Mr Tan")
        book_slot(store, slot, "Bob", "x")
        with pytest.raises(SlotConflictError):
            book_slot(store, slot, "Carol", "y")
        assert store.rows[0].student_name == "Bob"

    def test_concurrent_external_booking_is_detected(self, store):
        slot = SlotIdentifier("2025-06-02", "10:00", "Math", "Mr Tan")
        assert get_availability(store, "2025-06-02", "Math")  # looked free
        store.before_book = lambda: store.take(slot, "Someone Else")

        with pytest.raises(SlotConflictError):
            book_slot(store, slot, "Bob", "x")
        assert store.rows[0].student_name == "Someone Else"


class TestBatchSchedule:
    def test_weekdays_skip_saturday_and_sunday(self):
        days = weekdays(date(2025, 6, 2), 7)
        assert [d.isoformat() for d in days] == [
            "2025-06-02", "2025-06-03", "2025-06-04", "2025-06-05", "2025-06-06",
        ]

    def test_eight_hourly_slots_per_day(self):
        slots = build_batch_slots(date(2025, 6, 2), 1, "Math", "Mr Tan")
        assert [s.time for s in slots] == [f"{h}:00" for h in range(10, 18)]

    def test_week_from_monday_creates_forty_slots(self, store):
        result = create_batch_schedule(store, "2025-06-02", 7, "Math", "Mr Tan")
        assert result["created"] == 40
        assert len(store.appended) == 1  # one bulk append
        dates = {s.date for s in store.appended[0]}
        assert "2025-06-07" not in dates
        assert "2025-06-08" not in dates

    def test_weekend_only_range_creates_nothing(self, store):
        result = create_batch_schedule(store, "2025-06-07", 2, "Math", "Mr Tan")
        assert result["created"] == 0
        assert store.appended == []

    def test_zero_days_creates_nothing(self, store):
        assert create_batch_schedule(store, "2025-06-02", 0, "Math", "Mr Tan")["created"] == 0

    def test_invalid_start_date_raises(self, store):
        with pytest.raises(InvalidScheduleRequest):
            create_batch_schedule(store, "next monday", 5, "Math", "Mr Tan")
