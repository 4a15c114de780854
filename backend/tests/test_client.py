import asyncio
import json

import httpx
import pytest

from survey_relay.client.fallback import (
    PENDING_PATH,
    FallbackHandler,
    NoopFallback,
    StorageFallback,
    replay_pending,
)
from survey_relay.client.session import SurveySession
from survey_relay.client.submission import SUBMIT_PATH, SubmissionClient
from survey_relay.errors import FallbackError, TransportError
from survey_relay.main import create_app
from survey_relay.services.storage import LocalStorage

ANSWERS = {"География": "Екатеринбург", "Источники о войне и событиях в России": ["Радио"]}


def relay_returning(status_code, seen=None):
    def handler(request: httpx.Request):
        if seen is not None:
            seen.append(request)
        if status_code == 200:
            return httpx.Response(200, json={"success": True, "message": "saved"})
        return httpx.Response(status_code, json={"success": False, "message": "processing error"})
    return httpx.AsyncClient(base_url="http://relay.test", transport=httpx.MockTransport(handler))


def unreachable_relay():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.AsyncClient(base_url="http://relay.test", transport=httpx.MockTransport(handler))


class BrokenFallback(FallbackHandler):
    async def _save(self, answers):
        raise OSError("disk full")


class TestSubmissionClient:
    @pytest.mark.asyncio
    async def test_posts_json_to_relay(self):
        seen = []
        client = SubmissionClient(http=relay_returning(200, seen))

        result = await client.submit(ANSWERS)

        assert result == {"success": True, "message": "saved"}
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == SUBMIT_PATH
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == ANSWERS

    @pytest.mark.asyncio
    async def test_relay_error_falls_back(self):
        client = SubmissionClient(http=relay_returning(500))
        result = await client.submit(ANSWERS)
        assert result == {"success": True, "message": "saved via fallback"}

    @pytest.mark.asyncio
    async def test_network_error_falls_back(self):
        client = SubmissionClient(http=unreachable_relay(), fallback=NoopFallback())
        result = await client.submit(ANSWERS)
        assert result["message"] == "saved via fallback"

    @pytest.mark.asyncio
    async def test_send_carries_status_code(self):
        client = SubmissionClient(http=relay_returning(503))
        with pytest.raises(TransportError) as exc_info:
            await client.send(ANSWERS)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_failing_fallback_propagates(self):
        client = SubmissionClient(http=relay_returning(500), fallback=BrokenFallback())
        with pytest.raises(FallbackError, match="disk full"):
            await client.submit(ANSWERS)

    @pytest.mark.asyncio
    async def test_end_to_end_against_relay(self, settings, relay, sheet):
        app = create_app(settings, relay=relay)
        http = httpx.AsyncClient(base_url="http://relay.test", transport=httpx.ASGITransport(app=app))
        async with SubmissionClient(http=http) as client:
            result = await client.submit(ANSWERS)

        assert result == {"success": True, "message": "saved"}
        assert len(sheet.rows) == 1


class TestStorageFallback:
    @pytest.mark.asyncio
    async def test_queues_failed_submission(self, tmp_path):
        storage = LocalStorage(base_dir=str(tmp_path))
        client = SubmissionClient(http=relay_returning(500), fallback=StorageFallback(storage))

        result = await client.submit(ANSWERS)

        assert result == {"success": True, "message": "saved via fallback"}
        lines = storage.read_text(PENDING_PATH).splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["answers"] == ANSWERS
        assert entry["queued_at"].endswith("Z")

    @pytest.mark.asyncio
    async def test_replay_delivers_and_empties_queue(self, tmp_path):
        storage = LocalStorage(base_dir=str(tmp_path))
        fallback = StorageFallback(storage)
        await fallback.record(ANSWERS)
        await fallback.record({"География": "Самара"})

        seen = []
        delivered, remaining = await replay_pending(SubmissionClient(http=relay_returning(200, seen)), storage)

        assert (delivered, remaining) == (2, 0)
        assert [json.loads(r.content) for r in seen] == [ANSWERS, {"География": "Самара"}]
        assert storage.read_text(PENDING_PATH) == ""

    @pytest.mark.asyncio
    async def test_replay_keeps_undelivered(self, tmp_path):
        storage = LocalStorage(base_dir=str(tmp_path))
        await StorageFallback(storage).record(ANSWERS)

        delivered, remaining = await replay_pending(SubmissionClient(http=relay_returning(500)), storage)

        assert (delivered, remaining) == (0, 1)
        assert json.loads(storage.read_text(PENDING_PATH))["answers"] == ANSWERS

    @pytest.mark.asyncio
    async def test_replay_without_queue(self, tmp_path):
        storage = LocalStorage(base_dir=str(tmp_path))
        assert await replay_pending(SubmissionClient(http=relay_returning(200)), storage) == (0, 0)

    @pytest.mark.asyncio
    async def test_replay_keeps_unreadable_lines_and_drops_delivered(self, tmp_path):
        storage = LocalStorage(base_dir=str(tmp_path))
        good = json.dumps({"queued_at": "x", "answers": {"География": "A"}}, ensure_ascii=False)
        no_answers = json.dumps({"queued_at": "y"})
        storage.write_text(PENDING_PATH, "\n".join([good, "{broken", no_answers]) + "\n")

        seen = []
        delivered, remaining = await replay_pending(SubmissionClient(http=relay_returning(200, seen)), storage)

        assert (delivered, remaining) == (1, 2)
        assert len(seen) == 1
        assert storage.read_text(PENDING_PATH).splitlines() == ["{broken", no_answers]

    @pytest.mark.asyncio
    async def test_replay_failure_still_removes_delivered(self, tmp_path):
        storage = LocalStorage(base_dir=str(tmp_path))
        fallback = StorageFallback(storage)
        for city in ("A", "B", "C"):
            await fallback.record({"География": city})

        class FlakyClient:
            def __init__(self):
                self.sent = []

            async def send(self, answers):
                if len(self.sent) == 1:
                    raise httpx.InvalidURL("bad relay url")
                self.sent.append(answers)
                return {"success": True, "message": "saved"}

        client = FlakyClient()
        with pytest.raises(httpx.InvalidURL):
            await replay_pending(client, storage)

        assert client.sent == [{"География": "A"}]
        queued = [json.loads(line)["answers"]["География"] for line in storage.read_text(PENDING_PATH).splitlines()]
        assert queued == ["B", "C"]


class TestSurveySession:
    @pytest.mark.asyncio
    async def test_completion_submits_once(self):
        seen = []
        session = SurveySession(SubmissionClient(http=relay_returning(200, seen)))
        waiter = asyncio.create_task(session.wait())

        session.complete(ANSWERS)

        assert await waiter == {"success": True, "message": "saved"}
        assert len(seen) == 1
        with pytest.raises(RuntimeError):
            session.complete(ANSWERS)

    @pytest.mark.asyncio
    async def test_answers_are_frozen_copy(self):
        answers = {"География": "Тверь", "Источники о войне и событиях в России": ["ТВ"]}
        session = SurveySession(SubmissionClient(http=relay_returning(200)))

        session.complete(answers)
        answers["Источники о войне и событиях в России"].append("Радио")
        await session.wait()

        assert session.completed
        assert session.answers["Источники о войне и событиях в России"] == ["ТВ"]
        with pytest.raises(TypeError):
            session.answers["География"] = "Москва"
