"""Google Sheets v4 client with retry logic and header-aware row access.

The spreadsheet is the source of truth for both the lesson schedule and the
question/answer knowledge base.  Every tab is treated as a table whose first
row holds the column names; data rows are addressed by their 1-based sheet
row number (the header is row 1, so the first record is row 2).

Auth is a Google service account, read from ``GOOGLE_SERVICE_ACCOUNT_JSON``
or from the file named by ``GOOGLE_SERVICE_ACCOUNT_FILE``.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from tuition_agent.config import (
    GOOGLE_SERVICE_ACCOUNT_FILE,
    GOOGLE_SERVICE_ACCOUNT_JSON,
    GOOGLE_SHEET_ID,
    ConfigurationError,
)
from tuition_agent.services.metrics import metrics

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0

# Cell values are written as if typed into the UI
VALUE_INPUT_OPTION = "USER_ENTERED"


class SheetsAPIError(Exception):
    """Raised when a Sheets API call fails after all retries."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def column_letter(index: int) -> str:
    """Convert a 0-based column index to A1 notation (0 -> A, 26 -> AA)."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def _load_service_account_info() -> dict[str, Any]:
    if GOOGLE_SERVICE_ACCOUNT_JSON:
        return json.loads(GOOGLE_SERVICE_ACCOUNT_JSON)

    path = Path(GOOGLE_SERVICE_ACCOUNT_FILE)
    if path.exists():
        return json.loads(path.read_text(encoding="utf-8"))

    raise ConfigurationError(
        "Credentials missing: set GOOGLE_SERVICE_ACCOUNT_JSON or create "
        f"{GOOGLE_SERVICE_ACCOUNT_FILE}."
    )


def _build_service():
    credentials = service_account.Credentials.from_service_account_info(
        _load_service_account_info(), scopes=SCOPES,
    )
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


class SheetsClient:
    """Thin wrapper around one spreadsheet with automatic retries.

    4xx responses are raised immediately; 5xx responses, timeouts and
    dropped connections are retried with exponential backoff.
    """

    def __init__(self, spreadsheet_id: str | None = None, *, service=None):
        self._spreadsheet_id = spreadsheet_id or GOOGLE_SHEET_ID
        self._service = service if service is not None else _build_service()

    # ── Internal helpers ─────────────────────────────────────────────

    def _values(self):
        return self._service.spreadsheets().values()

    def _execute(self, request, operation: str) -> dict[str, Any]:
        """Execute a prepared API request with exponential-backoff retries."""
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                with metrics.track("sheets", operation):
                    return request.execute()

            except HttpError as exc:
                status = exc.resp.status
                if status < 500:
                    raise SheetsAPIError(
                        f"Google Sheets error {status} during {operation}: {exc}",
                        status_code=status,
                    ) from exc
                last_error = exc
                logger.warning(
                    "Sheets %s server error %d on attempt %d/%d. Retrying…",
                    operation, status, attempt, MAX_RETRIES,
                )
            except (TimeoutError, ConnectionError) as exc:
                last_error = exc
                logger.warning(
                    "Sheets %s attempt %d/%d failed (%s). Retrying…",
                    operation, attempt, MAX_RETRIES, type(exc).__name__,
                )

            time.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        raise SheetsAPIError(
            f"Google Sheets {operation} failed after {MAX_RETRIES} retries: {last_error}"
        )

    # ── Public API ───────────────────────────────────────────────────

    def get_spreadsheet_info(self) -> dict[str, Any]:
        """Return the spreadsheet title and its tab names."""
        request = self._service.spreadsheets().get(
            spreadsheetId=self._spreadsheet_id,
            fields="properties.title,sheets.properties.title",
        )
        data = self._execute(request, "spreadsheets.get")
        return {
            "title": data.get("properties", {}).get("title", ""),
            "sheets": [s["properties"]["title"] for s in data.get("sheets", [])],
        }

    def get_table(self, sheet: str) -> tuple[list[str], list[tuple[int, dict[str, str]]]]:
        """Read a whole tab as ``(headers, [(row_number, record), ...])``.

        Short rows are padded with empty strings so every record carries
        every header.
        """
        request = self._values().get(spreadsheetId=self._spreadsheet_id, range=sheet)
        try:
            data = self._execute(request, "values.get")
        except SheetsAPIError as exc:
            if exc.status_code == 400:
                raise SheetsAPIError(f"Sheet '{sheet}' not found", status_code=400) from exc
            raise

        values = data.get("values", [])
        if not values:
            return [], []

        headers = [str(h).strip() for h in values[0]]
        records = []
        for offset, row in enumerate(values[1:]):
            cells = [str(c) for c in row] + [""] * (len(headers) - len(row))
            records.append((offset + 2, dict(zip(headers, cells))))
        return headers, records

    def get_headers(self, sheet: str) -> list[str]:
        """Read only the header row of a tab."""
        request = self._values().get(spreadsheetId=self._spreadsheet_id, range=f"{sheet}!1:1")
        values = self._execute(request, "values.get").get("values", [])
        return [str(h).strip() for h in values[0]] if values else []

    def ensure_columns(self, sheet: str, headers: list[str], required: list[str]) -> list[str]:
        """Append any *required* column missing from the header row."""
        missing = [name for name in required if name not in headers]
        if not missing:
            return headers

        updated = headers + missing
        request = self._values().update(
            spreadsheetId=self._spreadsheet_id,
            range=f"{sheet}!A1:{column_letter(len(updated) - 1)}1",
            valueInputOption=VALUE_INPUT_OPTION,
            body={"values": [updated]},
        )
        self._execute(request, "values.update")
        logger.info("Added missing columns %s to sheet '%s'", missing, sheet)
        return updated

    def update_cells(
        self,
        sheet: str,
        headers: list[str],
        row_number: int,
        values: dict[str, str],
    ) -> None:
        """Overwrite the named columns of one row in a single batch call."""
        data = [
            {
                "range": f"{sheet}!{column_letter(headers.index(name))}{row_number}",
                "values": [[value]],
            }
            for name, value in values.items()
        ]
        request = self._values().batchUpdate(
            spreadsheetId=self._spreadsheet_id,
            body={"valueInputOption": VALUE_INPUT_OPTION, "data": data},
        )
        self._execute(request, "values.batchUpdate")

    def append_records(
        self,
        sheet: str,
        headers: list[str],
        records: list[dict[str, str]],
    ) -> None:
        """Append records as new rows, ordered by *headers*."""
        if not records:
            return
        rows = [[record.get(name, "") for name in headers] for record in records]
        request = self._values().append(
            spreadsheetId=self._spreadsheet_id,
            range=sheet,
            valueInputOption=VALUE_INPUT_OPTION,
            insertDataOption="INSERT_ROWS",
            body={"values": rows},
        )
        self._execute(request, "values.append")


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: SheetsClient | None = None
_client_lock = threading.Lock()


def get_sheets_client() -> SheetsClient:
    """Return the process-wide SheetsClient, building it on first use.

    Raises ``ConfigurationError`` on first use if no service-account
    credentials are available.
    """
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = SheetsClient()
    return _client
