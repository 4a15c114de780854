# survey_relay/client/fallback.py
"""
Fallback handlers: where a submission goes when the relay cannot take it.

NoopFallback keeps the old placeholder behaviour (log and report success).
StorageFallback queues the submission as one JSON line for replay_pending().
"""
import asyncio
import json
import logging
from typing import Any, Dict, Tuple

from survey_relay.errors import FallbackError, TransportError
from survey_relay.services.fields import utc_now_iso
from survey_relay.services.storage import StorageBackend

logger = logging.getLogger(__name__)

PENDING_PATH = "pending/submissions.jsonl"
FALLBACK_RESULT = {"success": True, "message": "saved via fallback"}


class FallbackHandler:
    """Durably record a submission the relay did not accept"""

    async def record(self, answers: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("Using fallback path for survey data (%s)", self.__class__.__name__)
        try:
            return await self._save(answers)
        except Exception as exc:
            logger.error("Fallback failed: %s", exc)
            raise FallbackError(str(exc)) from exc

    async def _save(self, answers: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


class NoopFallback(FallbackHandler):
    """Persists nothing."""

    async def _save(self, answers: Dict[str, Any]) -> Dict[str, Any]:
        return dict(FALLBACK_RESULT)


class StorageFallback(FallbackHandler):
    def __init__(self, storage: StorageBackend, path: str = PENDING_PATH):
        self.storage = storage
        self.path = path

    async def _save(self, answers: Dict[str, Any]) -> Dict[str, Any]:
        record = {"queued_at": utc_now_iso(), "answers": answers}
        location = await asyncio.to_thread(self.storage.append_jsonl, self.path, record)
        logger.info("Survey data queued at %s", location)
        return dict(FALLBACK_RESULT)


# ---------- Replay ----------

async def replay_pending(client, storage: StorageBackend, path: str = PENDING_PATH) -> Tuple[int, int]:
    """
    Re-send queued submissions through client.send().
    Delivered entries leave the queue, the rest stay for the next run.
    Returns (delivered, remaining).
    """
    if not await asyncio.to_thread(storage.exists, path):
        return 0, 0

    text = await asyncio.to_thread(storage.read_text, path)
    lines = [line for line in text.splitlines() if line.strip()]
    delivered = 0
    remaining = []
    done = 0
    try:
        for line in lines:
            try:
                entry = json.loads(line)
                answers = entry["answers"]
            except (ValueError, KeyError, TypeError) as exc:
                # unreadable entries stay queued for someone to look at
                logger.warning("Skipping unreadable queued submission %r: %s", line[:80], exc)
                remaining.append(line)
                done += 1
                continue
            try:
                await client.send(answers)
                delivered += 1
            except TransportError as exc:
                logger.warning("Replay of submission queued at %s failed: %s", entry.get("queued_at"), exc)
                remaining.append(line)
            done += 1
    finally:
        # delivered entries must leave the queue even if the loop blew up
        remaining.extend(lines[done:])
        content = "\n".join(remaining) + "\n" if remaining else ""
        await asyncio.to_thread(storage.write_text, path, content)

    logger.info("Replayed %d queued submissions, %d still pending", delivered, len(remaining))
    return delivered, len(remaining)
