"""Async HTTP client for the AskAussie chat API.

Posts the full conversation, decodes the streamed frames into the
transcript as they arrive, and supports cancelling a reply mid-stream.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

import httpx

from askaussie.core.ai_constants import RELEVANT_SECTIONS_HEADER
from askaussie.streaming.cancellation import CancellationToken
from askaussie.streaming.consumer import ChatTranscript, ReplyStatus
from askaussie.streaming.protocol import FrameDecoder, FrameType

logger = logging.getLogger(__name__)

GENERIC_CLIENT_ERROR = "Sorry, I encountered an error. Please try again."


@dataclass
class ChatReply:
    """Outcome of one question."""

    status: ReplyStatus
    content: str = ""
    relevant_sections: list[str] = field(default_factory=list)


class AskAussieClient:
    """Client for ``POST /api/chat``."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        chat_path: str = "/api/chat",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.chat_path = chat_path
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AskAussieClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def ask(
        self,
        transcript: ChatTranscript,
        question: str,
        token: Optional[CancellationToken] = None,
        on_delta: Optional[Callable[[str], None]] = None,
    ) -> ChatReply:
        """Ask a question and stream the answer into the transcript.

        Args:
            transcript: Conversation history; receives the user turn and the reply.
            question: The new user message.
            token: Cancels the reply; the partial answer is then discarded.
            on_delta: Called with each text fragment as it arrives.

        Returns:
            ChatReply with the final status and text.

        Raises:
            asyncio.CancelledError: If the calling task is cancelled; the
                partial reply is discarded first.
            Exception: Anything else raised while reading, including by
                ``on_delta``, after the reply is marked failed.
        """
        token = token or CancellationToken()
        transcript.add_user_message(question)
        payload = {
            "messages": [
                m.model_dump(mode="json", exclude_none=True) for m in transcript.history()
            ]
        }
        reply = transcript.begin_reply()
        sections: list[str] = []

        read_task = asyncio.create_task(
            self._read_stream(payload, transcript, sections, token, on_delta)
        )
        cancel_task = asyncio.create_task(token.wait())
        try:
            await asyncio.wait({read_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await _stop(read_task)
            transcript.abort()
            raise
        finally:
            cancel_task.cancel()

        if token.is_cancelled:
            await _stop(read_task)
            logger.info("Request was aborted")
            transcript.abort()
            if transcript.status is not ReplyStatus.COMPLETED:
                return ChatReply(status=transcript.status, relevant_sections=sections)
            return ChatReply(
                status=transcript.status, content=reply.content, relevant_sections=sections
            )

        try:
            read_task.result()
        except httpx.HTTPError as e:
            logger.error(f"Error sending message: {e}")
            transcript.fail(str(e) or GENERIC_CLIENT_ERROR)
        except Exception:
            logger.exception("Unexpected error while streaming the reply")
            transcript.fail(GENERIC_CLIENT_ERROR)
            raise

        return ChatReply(status=transcript.status, content=reply.content, relevant_sections=sections)

    async def _read_stream(
        self,
        payload: dict,
        transcript: ChatTranscript,
        sections: list[str],
        token: CancellationToken,
        on_delta: Optional[Callable[[str], None]],
    ) -> None:
        client = await self._get_client()
        async with client.stream("POST", self.chat_path, json=payload) as response:
            if response.status_code >= 400:
                await response.aread()
                transcript.fail(_error_message(response))
                return

            header = response.headers.get(RELEVANT_SECTIONS_HEADER, "")
            sections.extend(s.strip() for s in header.split(",") if s.strip())

            decoder = FrameDecoder()
            async for chunk in response.aiter_bytes():
                for frame in decoder.feed(chunk):
                    # Nothing past a cancel reaches the transcript or the caller
                    if token.is_cancelled:
                        return
                    transcript.apply(frame)
                    if frame.type is FrameType.TEXT and on_delta and transcript.pending:
                        on_delta(str(frame.payload))
                    if transcript.pending is None:
                        return

            for frame in decoder.flush():
                if token.is_cancelled:
                    return
                transcript.apply(frame)

        if not token.is_cancelled:
            transcript.complete()


async def _stop(task: asyncio.Task) -> None:
    """Cancel a read task and wait for it, discarding its outcome."""
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        data = None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"HTTP error! status: {response.status_code}"
