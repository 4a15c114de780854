# survey_relay/services/relay.py
import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi.concurrency import run_in_threadpool

from survey_relay.config import Settings
from survey_relay.errors import BackendError, ValidationError
from survey_relay.services.fields import FIELD_ORDER, FieldOrder, project, utc_now_iso
from survey_relay.services.sheets import SheetBackend, get_sheet_backend

logger = logging.getLogger(__name__)


def next_row_index(first_column) -> int:
    """Row right below the last populated cell of column A (1 for an empty sheet)."""
    return len(first_column) + 1 if first_column else 1


class SheetRelay:
    """
    Turns one Answer Mapping into one spreadsheet row.

    Finding the next free row and writing it are two separate API calls.
    Within this process the pair runs under a per-spreadsheet lock, so
    concurrent submissions get distinct, increasing rows. Other processes
    writing to the same sheet are not coordinated.
    """

    def __init__(self, settings: Settings,
                 backend: Optional[SheetBackend] = None,
                 field_order: FieldOrder = FIELD_ORDER):
        self.settings = settings
        self.backend = backend or get_sheet_backend(settings)
        self.field_order = field_order
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, spreadsheet_id: str) -> asyncio.Lock:
        lock = self._locks.get(spreadsheet_id)
        if lock is None:
            lock = self._locks[spreadsheet_id] = asyncio.Lock()
        return lock

    async def submit(self, answers: Any) -> int:
        """
        Append one submission. Returns the row index it was written to.
        Raises ValidationError for an empty body and BackendError for
        anything that goes wrong on the spreadsheet side.
        """
        if not answers or not isinstance(answers, dict):
            raise ValidationError("missing survey data")

        received_at = utc_now_iso()
        logger.info("Survey submission received at %s", received_at)

        try:
            sheet = await run_in_threadpool(self.backend.open)
            row = project(answers, self.field_order, timestamp=received_at)

            async with self._lock_for(self.settings.SPREADSHEET_ID):
                column = await run_in_threadpool(sheet.first_column)
                index = next_row_index(column)
                await run_in_threadpool(sheet.write_row, index, row)
        except Exception as exc:
            raise BackendError(str(exc) or exc.__class__.__name__) from exc

        logger.info("Survey submission saved to row %d", index)
        return index
