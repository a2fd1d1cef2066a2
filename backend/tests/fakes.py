"""Stand-ins for OpenAI SDK streaming objects."""

import asyncio
from types import SimpleNamespace
from typing import Any, Callable


def make_chunk(
    content: str | None = None,
    finish_reason: str | None = None,
    usage: dict[str, int] | None = None,
) -> SimpleNamespace:
    """Build an object shaped like a ChatCompletionChunk."""
    choices = []
    if content is not None or finish_reason is not None:
        choices.append(
            SimpleNamespace(
                delta=SimpleNamespace(content=content),
                finish_reason=finish_reason,
            )
        )
    return SimpleNamespace(
        choices=choices,
        usage=SimpleNamespace(**usage) if usage else None,
    )


class FakeCompletionStream:
    """Async iterator standing in for openai.AsyncStream.

    Raises ``error`` after yielding all chunks when one is given, or
    hangs there when ``stall`` is set. The optional ``on_chunk`` hook
    runs before each chunk is handed out.
    """

    def __init__(
        self,
        chunks: list[Any],
        error: Exception | None = None,
        on_chunk: Callable[[int], None] | None = None,
        stall: bool = False,
    ) -> None:
        self.chunks = chunks
        self.error = error
        self.stall = stall
        self.on_chunk = on_chunk
        self.closed = False
        self.delivered = 0

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for index, chunk in enumerate(self.chunks):
            if self.on_chunk:
                self.on_chunk(index)
            self.delivered += 1
            yield chunk
        if self.stall:
            await asyncio.Event().wait()
        if self.error is not None:
            raise self.error

    async def close(self) -> None:
        self.closed = True


def text_stream(*deltas: str, **kwargs: Any) -> FakeCompletionStream:
    """Stream that yields the given text deltas then finishes normally."""
    chunks = [make_chunk(content=d) for d in deltas]
    chunks.append(make_chunk(finish_reason="stop"))
    chunks.append(make_chunk(usage={"prompt_tokens": 120, "completion_tokens": len(deltas)}))
    return FakeCompletionStream(chunks, **kwargs)
