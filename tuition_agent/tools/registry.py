"""Tool registry for the chat model.

The model can request exactly four tools, listed in ``TOOL_SCHEMA`` and
mirrored by the closed ``ToolKind`` enum.  ``ToolRegistry.execute`` is the
single dispatch point:

  1. resolve the name to a ``ToolKind`` (unknown names are an error result)
  2. check the admin password for restricted tools, before anything else
  3. validate the raw arguments into that tool's pydantic model
  4. run the scheduling operation against the store

Every failure along the way becomes a ``ToolResult`` error so the model can
explain it.  Nothing raised by a tool escapes ``execute``.
"""

from __future__ import annotations

import enum
import hmac
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tuition_agent.config import ADMIN_PASSWORD
from tuition_agent.services.schedule_store import (
    ScheduleStore,
    SlotIdentifier,
    get_schedule_store,
)
from tuition_agent.tools import schedule
from tuition_agent.tools.schedule import ScheduleError

logger = logging.getLogger(__name__)


class ToolKind(str, enum.Enum):
    GET_AVAILABILITY = "getAvailability"
    BOOK_SLOT = "bookSlot"
    ADD_SLOT = "addSlot"
    CREATE_BATCH_SCHEDULE = "createBatchSchedule"


RESTRICTED_TOOLS = frozenset({ToolKind.ADD_SLOT, ToolKind.CREATE_BATCH_SCHEDULE})


# ── Tool schema (sent to the model on every call) ────────────────────

TOOL_SCHEMA: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "getAvailability",
            "description": "Check available slots for a given date and subject.",
            "parameters": {
                "type": "object",
                "properties": {
                    "date": {"type": "string", "description": "Date in YYYY-MM-DD format"},
                    "subject": {"type": "string", "description": "Subject (e.g., Math, Science)"},
                },
                "required": ["date", "subject"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "bookSlot",
            "description": "Book a slot for a student.",
            "parameters": {
                "type": "object",
                "properties": {
                    "date": {"type": "string", "description": "Date in YYYY-MM-DD format"},
                    "time": {"type": "string", "description": "Time (e.g., 14:00)"},
                    "subject": {"type": "string", "description": "Subject (e.g., Math)"},
                    "teacher": {"type": "string", "description": "Teacher's name"},
                    "studentName": {"type": "string", "description": "Name of the student"},
                    "contactInfo": {"type": "string", "description": "Student's phone number or email"},
                },
                "required": ["date", "time", "subject", "teacher", "studentName", "contactInfo"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "addSlot",
            "description": "ADMIN ONLY: Add a new slot. Requires admin password.",
            "parameters": {
                "type": "object",
                "properties": {
                    "adminPassword": {"type": "string", "description": "The admin password provided by the user"},
                    "date": {"type": "string", "description": "Date in YYYY-MM-DD format"},
                    "time": {"type": "string", "description": "Time (e.g., 10:00)"},
                    "subject": {"type": "string", "description": "Subject (e.g., Math)"},
                    "teacher": {"type": "string", "description": "Teacher's name"},
                },
                "required": ["adminPassword", "date", "time", "subject", "teacher"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "createBatchSchedule",
            "description": "ADMIN ONLY: Create batch slots. Requires admin password.",
            "parameters": {
                "type": "object",
                "properties": {
                    "adminPassword": {"type": "string", "description": "The admin password provided by the user"},
                    "startDate": {"type": "string", "description": "Start date in YYYY-MM-DD format"},
                    "days": {"type": "number", "description": "Number of days to generate for"},
                    "subject": {"type": "string", "description": "Subject"},
                    "teacher": {"type": "string", "description": "Teacher's name"},
                },
                "required": ["adminPassword", "startDate", "days", "subject", "teacher"],
            },
        },
    },
]


# ── Argument models ──────────────────────────────────────────────────


class _ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GetAvailabilityArgs(_ToolArgs):
    date: str
    subject: str


class BookSlotArgs(_ToolArgs):
    date: str
    time: str
    subject: str
    teacher: str
    student_name: str = Field(alias="studentName", min_length=1)
    contact_info: str = Field(alias="contactInfo", min_length=1)


class AddSlotArgs(_ToolArgs):
    admin_password: str = Field(alias="adminPassword")
    date: str
    time: str
    subject: str
    teacher: str


class CreateBatchScheduleArgs(_ToolArgs):
    admin_password: str = Field(alias="adminPassword")
    start_date: str = Field(alias="startDate")
    days: int = Field(ge=0, le=366)
    subject: str
    teacher: str


ARG_MODELS: dict[ToolKind, type[_ToolArgs]] = {
    ToolKind.GET_AVAILABILITY: GetAvailabilityArgs,
    ToolKind.BOOK_SLOT: BookSlotArgs,
    ToolKind.ADD_SLOT: AddSlotArgs,
    ToolKind.CREATE_BATCH_SCHEDULE: CreateBatchScheduleArgs,
}


# ── Results ──────────────────────────────────────────────────────────


class AuthorizationError(Exception):
    """The admin password supplied to a restricted tool was wrong."""


@dataclass(frozen=True)
class ToolResult:
    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str) -> ToolResult:
        return cls(error=message)

    def to_payload(self) -> Any:
        return self.data if self.ok else {"error": self.error}

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), default=str)


def _redacted(args: dict[str, Any]) -> dict[str, Any]:
    return {k: ("***" if k == "adminPassword" else v) for k, v in args.items()}


class ToolRegistry:
    """Validates and executes tool calls against the schedule store.

    The store is resolved on the first tool call that needs it, so a
    missing Sheets credential surfaces as that call's error rather than at
    import time.
    """

    def __init__(
        self,
        store: ScheduleStore | None = None,
        *,
        store_factory: Callable[[], ScheduleStore] = get_schedule_store,
        admin_password: str | None = None,
    ):
        self._store = store
        self._store_factory = store_factory
        self._admin_password = ADMIN_PASSWORD if admin_password is None else admin_password

    @property
    def store(self) -> ScheduleStore:
        if self._store is None:
            self._store = self._store_factory()
        return self._store

    def _authorize(self, kind: ToolKind, supplied: Any) -> None:
        # Compare as bytes so non-ASCII guesses are rejected rather than raising
        if not isinstance(supplied, str) or not self._admin_password or not hmac.compare_digest(
            supplied.encode("utf-8"), self._admin_password.encode("utf-8"),
        ):
            logger.warning("Rejected %s: invalid admin password", kind.value)
            action = "add slot" if kind is ToolKind.ADD_SLOT else "create schedule"
            raise AuthorizationError(f"Invalid admin password. Cannot {action}.")

    def _run(self, kind: ToolKind, args: _ToolArgs) -> Any:
        if kind is ToolKind.GET_AVAILABILITY:
            return schedule.get_availability(self.store, args.date, args.subject)

        if kind is ToolKind.BOOK_SLOT:
            return schedule.book_slot(
                self.store,
                SlotIdentifier(args.date, args.time, args.subject, args.teacher),
                args.student_name,
                args.contact_info,
            )

        if kind is ToolKind.ADD_SLOT:
            return schedule.add_slot(
                self.store, SlotIdentifier(args.date, args.time, args.subject, args.teacher),
            )
        return schedule.create_batch_schedule(
            self.store, args.start_date, args.days, args.subject, args.teacher,
        )

    def execute(self, name: str, raw_args: dict[str, Any] | None) -> ToolResult:
        """Run one tool call and capture its outcome as a ``ToolResult``."""
        raw_args = raw_args or {}
        try:
            kind = ToolKind(name)
        except ValueError:
            logger.warning("Model requested unknown tool %r", name)
            return ToolResult.failure(f"Unknown tool: {name}")

        logger.info("Executing tool: %s with args: %s", kind.value, _redacted(raw_args))

        # Restricted tools check the password before the arguments
        if kind in RESTRICTED_TOOLS:
            try:
                self._authorize(kind, raw_args.get("adminPassword"))
            except AuthorizationError as exc:
                return ToolResult.failure(str(exc))

        try:
            args = ARG_MODELS[kind].model_validate(raw_args)
        except ValidationError as exc:
            fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
            return ToolResult.failure(f"Invalid arguments for {kind.value}: {fields}")

        try:
            return ToolResult(data=self._run(kind, args))
        except ScheduleError as exc:
            return ToolResult.failure(str(exc))
        except Exception as exc:
            logger.exception("Tool %s failed", kind.value)
            return ToolResult.failure(str(exc) or type(exc).__name__)
