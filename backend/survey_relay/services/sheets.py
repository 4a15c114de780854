# survey_relay/services/sheets.py
"""
Spreadsheet backends.
Set SHEETS_BACKEND to 'google' (default) or 'memory' to switch.

Every call here blocks on the network; the relay runs them in the threadpool.
"""
import logging
import threading
from typing import Any, List, Optional

import gspread
from google.auth.transport.requests import Request
from google.oauth2.service_account import Credentials

from survey_relay.config import Settings

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


class Sheet:
    """One worksheet, as far as the relay needs it"""

    def first_column(self) -> List[Any]:
        """Populated cells of column A, top to bottom"""
        raise NotImplementedError

    def write_row(self, index: int, row: List[Any]) -> None:
        """Write row starting at column A of the given 1-based row"""
        raise NotImplementedError


class SheetBackend:
    """Abstract spreadsheet interface"""

    def open(self) -> Sheet:
        """Authenticate and return the target worksheet"""
        raise NotImplementedError


class GoogleSheet(Sheet):
    def __init__(self, worksheet: gspread.Worksheet):
        self.worksheet = worksheet

    def first_column(self) -> List[Any]:
        return self.worksheet.col_values(1)

    def write_row(self, index: int, row: List[Any]) -> None:
        self.worksheet.update(range_name=f"A{index}", values=[row], raw=True)


class GoogleSheetBackend(SheetBackend):
    """Google Sheets through a service account"""

    def __init__(self, email: str, private_key: str, spreadsheet_id: str, sheet_name: str = "Sheet1"):
        self.email = email
        self.private_key = private_key
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name

    def credentials(self) -> Credentials:
        """Fresh short-lived token for every call; nothing is cached."""
        creds = Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": self.email,
                "private_key": self.private_key,
                "token_uri": TOKEN_URI,
            },
            scopes=SCOPES,
        )
        creds.refresh(Request())
        return creds

    def open(self) -> Sheet:
        client = gspread.authorize(self.credentials())
        worksheet = client.open_by_key(self.spreadsheet_id).worksheet(self.sheet_name)
        return GoogleSheet(worksheet)


class MemorySheet(Sheet):
    """In-process sheet for running without Google credentials"""

    def __init__(self):
        self.rows: List[List[Any]] = []
        self._lock = threading.Lock()

    def first_column(self) -> List[Any]:
        with self._lock:
            # col_values() stops at the last non-empty cell
            column = [row[0] if row else "" for row in self.rows]
            while column and column[-1] in ("", None):
                column.pop()
            return column

    def write_row(self, index: int, row: List[Any]) -> None:
        with self._lock:
            while len(self.rows) < index:
                self.rows.append([])
            self.rows[index - 1] = list(row)

    def row(self, index: int) -> List[Any]:
        return self.rows[index - 1]


class MemorySheetBackend(SheetBackend):
    def __init__(self, sheet: Optional[MemorySheet] = None):
        self.sheet = sheet or MemorySheet()

    def open(self) -> Sheet:
        return self.sheet


def get_sheet_backend(settings: Settings) -> SheetBackend:
    """Build the backend named by SHEETS_BACKEND"""
    if settings.SHEETS_BACKEND == "memory":
        logger.warning("Sheets: in-memory backend, submissions are not persisted")
        return MemorySheetBackend()
    logger.info("Sheets: Google spreadsheet=%s sheet=%s", settings.SPREADSHEET_ID, settings.SHEET_NAME)
    return GoogleSheetBackend(
        email=settings.GOOGLE_SERVICE_ACCOUNT_EMAIL,
        private_key=settings.GOOGLE_PRIVATE_KEY,
        spreadsheet_id=settings.SPREADSHEET_ID,
        sheet_name=settings.SHEET_NAME,
    )
