# survey_relay/client/session.py
import asyncio
import copy
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from survey_relay.client.submission import SubmissionClient


class SurveySession:
    """
    One rendered survey. The renderer's completion event calls complete()
    exactly once; that schedules exactly one submission.
    """

    def __init__(self, client: SubmissionClient):
        self.client = client
        self.answers: Optional[Mapping[str, Any]] = None
        self._completed = asyncio.Event()
        self._submission: Optional[asyncio.Task] = None

    @property
    def completed(self) -> bool:
        return self._submission is not None

    def complete(self, answers: Dict[str, Any]) -> asyncio.Task:
        if self._submission is not None:
            raise RuntimeError("survey session already completed")
        # frozen copy, later edits by the renderer must not leak in
        self.answers = MappingProxyType(copy.deepcopy(dict(answers)))
        self._submission = asyncio.get_running_loop().create_task(self.client.submit(dict(self.answers)))
        self._completed.set()
        return self._submission

    async def wait(self) -> Dict[str, Any]:
        """Result of the submission, once the survey has been completed."""
        await self._completed.wait()
        return await self._submission
