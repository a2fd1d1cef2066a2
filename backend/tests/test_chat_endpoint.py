"""Tests for the chat API endpoint."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from askaussie.api.deps import get_openai
from askaussie.core.ai_constants import (
    INTERNAL_ERROR,
    INVALID_REQUEST_ERROR,
    MISSING_API_KEY_ERROR,
    NO_MESSAGE_ERROR,
    STREAM_ERROR,
)
from askaussie.streaming.protocol import FrameDecoder, FrameType
from tests.fakes import FakeCompletionStream, make_chunk

QUESTION = {"messages": [{"role": "user", "content": "What does section 51 do?"}]}


def _frames(body: bytes):
    decoder = FrameDecoder()
    return decoder.feed(body) + decoder.flush()


def _answer_text(body: bytes) -> str:
    return "".join(f.payload for f in _frames(body) if f.type is FrameType.TEXT)


class TestChatStreaming:
    """Tests for POST /api/chat."""

    async def test_streams_answer_with_relevant_sections(
        self,
        client: AsyncClient,
        metrics,
    ):
        response = await client.post("/api/chat", json=QUESTION)

        assert response.status_code == 200
        assert response.headers["x-relevant-sections"] == "51, 76"
        assert response.headers["x-vercel-ai-data-stream"] == "v1"
        assert response.headers["content-type"].startswith("text/plain")
        assert '0:"Section 51 "' in response.text
        assert _answer_text(response.content) == "Section 51 grants powers."
        assert metrics.stream_count("completed") == 1

    async def test_frame_order(self, client: AsyncClient):
        response = await client.post("/api/chat", json=QUESTION)

        tags = [f.tag for f in _frames(response.content)]

        assert tags[0] == "f"
        assert tags[-2:] == ["e", "d"]
        assert set(tags[1:-2]) == {"0"}

    async def test_prompt_contains_sections_and_conversation(
        self,
        client: AsyncClient,
        fake_openai: MagicMock,
    ):
        conversation = {
            "messages": [
                {"role": "user", "content": "What is section 51?"},
                {"role": "assistant", "content": "It lists powers."},
                {"role": "user", "content": "Which court has original jurisdiction?"},
            ]
        }

        await client.post("/api/chat", json=conversation)

        messages = fake_openai.chat.completions.create.await_args.kwargs["messages"]
        assert messages[0]["role"] == "system"
        assert "Relevant Sections:" in messages[0]["content"]
        assert "• Section: §51" in messages[0]["content"]
        assert messages[1:] == conversation["messages"]

    async def test_only_latest_message_is_embedded(
        self,
        client: AsyncClient,
        fake_openai: MagicMock,
    ):
        conversation = {
            "messages": [
                {"role": "user", "content": "Earlier question"},
                {"role": "assistant", "content": "Earlier answer"},
                {"role": "user", "content": "Latest question"},
            ]
        }

        await client.post("/api/chat", json=conversation)

        fake_openai.embeddings.create.assert_awaited_once()
        assert fake_openai.embeddings.create.await_args.kwargs["input"] == "Latest question"

    async def test_embedding_failure_still_answers(
        self,
        client: AsyncClient,
        fake_openai: MagicMock,
    ):
        fake_openai.embeddings.create.side_effect = RuntimeError("embedding service down")

        response = await client.post("/api/chat", json=QUESTION)

        assert response.status_code == 200
        assert response.headers["x-relevant-sections"] == ""
        fake_openai.chat.completions.create.assert_awaited_once()
        messages = fake_openai.chat.completions.create.await_args.kwargs["messages"]
        assert "Relevant Sections" not in messages[0]["content"]

    async def test_mid_stream_failure_ends_with_error_frame(
        self,
        client: AsyncClient,
        fake_openai: MagicMock,
        metrics,
    ):
        fake_openai.chat.completions.create.side_effect = lambda **kwargs: FakeCompletionStream(
            [make_chunk(content="Partial ")],
            error=ConnectionError("socket reset by provider"),
        )

        response = await client.post("/api/chat", json=QUESTION)

        frames = _frames(response.content)
        assert response.status_code == 200
        assert frames[-1].type is FrameType.ERROR
        assert frames[-1].payload == STREAM_ERROR
        assert "socket reset" not in response.text
        assert metrics.stream_count("failed") == 1

    async def test_completion_open_failure_returns_500(
        self,
        client: AsyncClient,
        fake_openai: MagicMock,
    ):
        fake_openai.chat.completions.create.side_effect = RuntimeError("401 bad key sk-live")

        response = await client.post("/api/chat", json=QUESTION)

        assert response.status_code == 500
        assert response.json() == {"error": INTERNAL_ERROR}


class TestClientDisconnect:
    """Tests for a client leaving mid-answer."""

    async def test_disconnect_closes_upstream_and_records_abort(
        self,
        app: FastAPI,
        fake_openai: MagicMock,
        metrics,
    ):
        upstream = FakeCompletionStream([make_chunk(content="Partial ")], stall=True)
        fake_openai.chat.completions.create.side_effect = lambda **kwargs: upstream

        payload = json.dumps(QUESTION).encode()
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "POST",
            "scheme": "http",
            "path": "/api/chat",
            "raw_path": b"/api/chat",
            "root_path": "",
            "query_string": b"",
            "headers": [
                (b"host", b"test"),
                (b"content-type", b"application/json"),
                (b"content-length", str(len(payload)).encode()),
            ],
            "client": ("127.0.0.1", 50000),
            "server": ("test", 80),
        }
        body_sent = asyncio.Event()
        request_read = False
        sent: list[dict] = []

        async def receive() -> dict:
            nonlocal request_read
            if not request_read:
                request_read = True
                return {"type": "http.request", "body": payload, "more_body": False}
            await body_sent.wait()
            return {"type": "http.disconnect"}

        async def send(message: dict) -> None:
            sent.append(message)
            if message["type"] == "http.response.body" and message.get("body"):
                body_sent.set()

        await asyncio.wait_for(app(scope, receive, send), timeout=5)

        start = next(m for m in sent if m["type"] == "http.response.start")
        body = b"".join(m.get("body", b"") for m in sent if m["type"] == "http.response.body")
        tags = [f.tag for f in _frames(body)]
        assert start["status"] == 200
        assert upstream.closed
        assert metrics.stream_count("aborted") == 1
        assert metrics.stream_count("completed") == 0
        assert tags[0] == "f"
        assert not {"e", "d", "3"} & set(tags)


class TestChatErrors:
    """Tests for rejected chat requests."""

    async def test_missing_api_key(self, app: FastAPI, client: AsyncClient, fake_openai):
        app.dependency_overrides[get_openai] = lambda: None

        response = await client.post("/api/chat", json=QUESTION)

        assert response.status_code == 500
        assert response.json() == {"error": MISSING_API_KEY_ERROR}
        fake_openai.chat.completions.create.assert_not_awaited()

    @pytest.mark.parametrize(
        "messages",
        [
            [],
            [{"role": "user", "content": "q"}, {"role": "assistant", "content": "a"}],
            [{"role": "user", "content": "   "}],
        ],
    )
    async def test_no_user_message(self, client: AsyncClient, fake_openai, messages):
        response = await client.post("/api/chat", json={"messages": messages})

        assert response.status_code == 400
        assert response.json() == {"error": NO_MESSAGE_ERROR}
        fake_openai.embeddings.create.assert_not_awaited()

    @pytest.mark.parametrize(
        "body",
        [
            {"messages": "not a list"},
            {"messages": [{"role": "robot", "content": "beep"}]},
            {"messages": [{"role": "user"}]},
        ],
    )
    async def test_invalid_body(self, client: AsyncClient, body):
        response = await client.post("/api/chat", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": INVALID_REQUEST_ERROR}

    async def test_extra_message_fields_are_ignored(self, client: AsyncClient):
        body = {
            "messages": [
                {
                    "role": "user",
                    "content": "What does section 51 do?",
                    "timestamp": "2024-05-01T10:00:00Z",
                    "id": "abc",
                }
            ]
        }

        response = await client.post("/api/chat", json=body)

        assert response.status_code == 200


class TestStatusEndpoints:
    """Tests for liveness, health and metrics endpoints."""

    async def test_chat_status(self, client: AsyncClient):
        response = await client.get("/api/chat")

        assert response.status_code == 200
        assert response.json() == {"message": "Chat API is running"}

    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "x-request-id" in response.headers

    async def test_request_id_is_echoed(self, client: AsyncClient):
        response = await client.get("/api/chat", headers={"X-Request-ID": "req-123"})

        assert response.headers["x-request-id"] == "req-123"

    async def test_metrics(self, client: AsyncClient):
        await client.get("/api/chat")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
