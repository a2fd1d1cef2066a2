"""Client-side reassembly of a streamed assistant answer.

The transcript owns the conversation history. While a reply is streaming
it holds one in-progress assistant message that text frames append to.
An abort removes that message as if the turn never happened; an error
replaces its text with a visible notice and keeps it in history.
"""

import logging
from datetime import datetime, timezone
from enum import Enum

from askaussie.models.chat import ChatMessage
from askaussie.streaming.protocol import Frame, FrameType

logger = logging.getLogger(__name__)


class ReplyStatus(str, Enum):
    """Outcome of the latest assistant reply."""

    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


class ChatTranscript:
    """Ordered conversation history with at most one reply in progress."""

    def __init__(self, messages: list[ChatMessage] | None = None) -> None:
        self.messages: list[ChatMessage] = list(messages or [])
        self.status = ReplyStatus.IDLE
        self._pending: ChatMessage | None = None

    @property
    def pending(self) -> ChatMessage | None:
        """The assistant message currently being streamed, if any."""
        return self._pending

    def history(self) -> list[ChatMessage]:
        """Messages to send with the next request (excludes an in-progress reply)."""
        return [m for m in self.messages if m is not self._pending]

    def add_user_message(self, content: str) -> ChatMessage:
        if self._pending is not None:
            raise RuntimeError("Cannot add a user message while a reply is streaming")
        message = ChatMessage(role="user", content=content, timestamp=_now())
        self.messages.append(message)
        return message

    def begin_reply(self) -> ChatMessage:
        """Append an empty assistant placeholder to be filled by the stream."""
        if self._pending is not None:
            raise RuntimeError("A reply is already streaming")
        self._pending = ChatMessage(role="assistant", content="", timestamp=_now())
        self.messages.append(self._pending)
        self.status = ReplyStatus.STREAMING
        return self._pending

    def apply(self, frame: Frame) -> None:
        """Apply one decoded frame to the in-progress reply."""
        if self._pending is None:
            return

        if frame.type is FrameType.TEXT:
            if isinstance(frame.payload, str):
                self._pending.content += frame.payload
        elif frame.type is FrameType.ERROR:
            self.fail(str(frame.payload))
        # Metadata and finish frames carry nothing to render

    def complete(self) -> None:
        if self._pending is None:
            return
        self._pending.timestamp = _now()
        self._pending = None
        self.status = ReplyStatus.COMPLETED

    def abort(self) -> None:
        """Discard the in-progress reply entirely."""
        if self._pending is None:
            return
        self.messages = [m for m in self.messages if m is not self._pending]
        self._pending = None
        self.status = ReplyStatus.ABORTED

    def fail(self, message: str) -> None:
        """Replace the in-progress reply with an error notice and keep it."""
        if self._pending is None:
            return
        logger.error(f"Assistant reply failed: {message}")
        self._pending.content = f"Error: {message}"
        self._pending.timestamp = _now()
        self._pending = None
        self.status = ReplyStatus.FAILED


def _now() -> datetime:
    return datetime.now(timezone.utc)
