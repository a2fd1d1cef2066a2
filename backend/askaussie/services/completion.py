"""Streaming chat completion gateway.

Opens a streaming chat completion and re-encodes each text delta as a
protocol frame as soon as it arrives. Each request moves through::

    Idle -> Streaming -> Completed | Aborted | Failed

Only this layer turns failures into user-visible errors, and only as a
generic message; provider details are logged server-side.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator
from enum import Enum
from typing import TYPE_CHECKING, Any

import anyio

from askaussie.core.ai_constants import (
    AI_MAX_TOKENS,
    AI_TEMPERATURE,
    DEFAULT_CHAT_MODEL,
    INTERNAL_ERROR,
    STREAM_ERROR,
)
from askaussie.core.exceptions import CompletionError
from askaussie.observability import get_metrics_backend
from askaussie.streaming.cancellation import CancellationToken
from askaussie.streaming.protocol import (
    encode_error,
    encode_finish,
    encode_message_start,
    encode_step_finish,
    encode_text,
)

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    """Lifecycle of a single completion request."""

    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


def log_provider_error(error: BaseException, operation: str) -> None:
    """Log everything known about a provider failure (server-side only)."""
    from openai import APIError, APIStatusError

    if isinstance(error, APIError):
        logger.error(
            "OpenAI %s failed: status=%s code=%s type=%s param=%s message=%s request_id=%s",
            operation,
            error.status_code if isinstance(error, APIStatusError) else None,
            error.code,
            error.type,
            error.param,
            error.message,
            getattr(error, "request_id", None),
        )
        if error.body is not None:
            logger.error("OpenAI %s error body: %s", operation, error.body)
    else:
        logger.exception("Unexpected error during OpenAI %s", operation, exc_info=error)


class CompletionStream:
    """An open streaming completion bound to one request.

    Iterate ``frames()`` exactly once to forward the answer.
    """

    def __init__(
        self,
        upstream: Any,
        token: CancellationToken,
        model: str,
    ) -> None:
        self.message_id = f"msg-{uuid.uuid4().hex}"
        self.state = StreamState.STREAMING
        self.chunk_count = 0
        self.finish_reason: str | None = None
        self.prompt_tokens: int | None = None
        self.completion_tokens: int | None = None
        self._upstream = upstream
        self._token = token
        self._model = model
        self._closed = False
        self._start_time = time.perf_counter()

    async def frames(self) -> AsyncIterator[str]:
        """Yield encoded protocol frames in the order the model produced them.

        Stops silently once the cancellation token fires. A failure while
        reading yields a single generic error frame and ends the stream.
        """
        try:
            if self._token.is_cancelled:
                self._mark_aborted()
                return

            yield encode_message_start(self.message_id)

            async for chunk in self._upstream:
                if self._token.is_cancelled:
                    self._mark_aborted()
                    return

                usage = getattr(chunk, "usage", None)
                if usage is not None:
                    self.prompt_tokens = usage.prompt_tokens
                    self.completion_tokens = usage.completion_tokens

                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                if choice.finish_reason:
                    self.finish_reason = choice.finish_reason

                delta = choice.delta.content if choice.delta is not None else None
                if delta:
                    self.chunk_count += 1
                    yield encode_text(delta)

            if self._token.is_cancelled:
                self._mark_aborted()
                return

            self.state = StreamState.COMPLETED
            finish_reason = self.finish_reason or "unknown"
            yield encode_step_finish(finish_reason, self.prompt_tokens, self.completion_tokens)
            yield encode_finish(finish_reason, self.prompt_tokens, self.completion_tokens)

        except (GeneratorExit, asyncio.CancelledError):
            self._mark_aborted()
            raise
        except Exception as e:
            self.state = StreamState.FAILED
            log_provider_error(e, "chat.completions stream")
            yield encode_error(STREAM_ERROR)
        finally:
            await self.close()
            self._record_outcome()

    async def close(self) -> None:
        """Close the upstream HTTP stream (idempotent)."""
        if self._closed:
            return
        self._closed = True
        try:
            with anyio.CancelScope(shield=True):
                await self._upstream.close()
        except Exception as e:
            logger.warning(f"Failed to close upstream completion stream: {e}")

    def _mark_aborted(self) -> None:
        if self.state is StreamState.STREAMING:
            self.state = StreamState.ABORTED
            logger.info(
                "Completion stream aborted by client after %d chunk(s) (%s)",
                self.chunk_count,
                self._token.reason or "disconnected",
            )

    def _record_outcome(self) -> None:
        duration_ms = (time.perf_counter() - self._start_time) * 1000
        get_metrics_backend().observe_chat_stream(
            self.state.value,
            duration_ms,
            self.chunk_count,
        )
        logger.info(
            "Completion stream %s model=%s chunks=%d finish_reason=%s duration_ms=%.2f",
            self.state.value,
            self._model,
            self.chunk_count,
            self.finish_reason,
            duration_ms,
        )


class StreamingCompletionGateway:
    """Issues streaming chat completions against OpenAI."""

    def __init__(
        self,
        client: "AsyncOpenAI",
        model: str = DEFAULT_CHAT_MODEL,
        max_tokens: int = AI_MAX_TOKENS,
        temperature: float = AI_TEMPERATURE,
    ) -> None:
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def complete(
        self,
        messages: list[dict[str, str]],
        token: CancellationToken,
    ) -> CompletionStream:
        """Open a streaming completion (Idle -> Streaming).

        Args:
            messages: Ordered messages from the prompt builder.
            token: Cancellation token for this request.

        Returns:
            CompletionStream ready to be iterated.

        Raises:
            CompletionError: If the remote call cannot be opened.
        """
        metrics = get_metrics_backend()

        start_time = time.perf_counter()
        status_code = 500
        try:
            upstream = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                stream=True,
                stream_options={"include_usage": True},
            )
            status_code = 200
        except Exception as e:
            status_code = getattr(e, "status_code", None) or 500
            log_provider_error(e, "chat.completions")
            raise CompletionError(INTERNAL_ERROR) from e
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            metrics.observe_external_api("openai", "chat.completions", status_code, duration_ms)
            logger.info(
                "OpenAI API chat.completions status=%s duration_ms=%.2f",
                status_code,
                duration_ms,
            )

        return CompletionStream(upstream, token, self.model)
