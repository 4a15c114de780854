# survey_relay/client/submission.py
"""
Submission client: hands a completed survey to the relay.

The relay endpoint is a fixed relative path; the client only knows the base
URL of the server it was served from. Credentials never pass through here.
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from survey_relay.client.fallback import FallbackHandler, NoopFallback
from survey_relay.errors import TransportError

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/api/survey-submit"


class SubmissionClient:
    def __init__(self, base_url: str = "",
                 fallback: Optional[FallbackHandler] = None,
                 http: Optional[httpx.AsyncClient] = None):
        self.fallback = fallback or NoopFallback()
        self.http = http or httpx.AsyncClient(base_url=base_url)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def send(self, answers: Dict[str, Any]) -> Dict[str, Any]:
        """Primary path only. Raises TransportError on any failure."""
        payload = json.dumps(answers, ensure_ascii=False)
        logger.debug("Survey payload:\n%s", json.dumps(answers, ensure_ascii=False, indent=3))

        try:
            response = await self.http.post(
                SUBMIT_PATH,
                content=payload.encode("utf-8"),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"relay unreachable: {exc}") from exc

        if not response.is_success:
            raise TransportError(f"HTTP error: {response.status_code}", status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise TransportError("relay returned a non-JSON body", status_code=response.status_code) from exc

    async def submit(self, answers: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send answers to the relay; on any transport failure hand them to the
        fallback handler and return its result instead. Only a failing
        fallback (FallbackError) escapes.
        """
        try:
            result = await self.send(answers)
        except TransportError as exc:
            logger.error("Failed to send survey data: %s", exc)
            return await self.fallback.record(answers)
        logger.info("Survey data sent")
        return result
