"""Line-delimited data stream protocol.

Each frame is one line: a type tag, a colon and a JSON payload::

    f:{"messageId":"msg-..."}
    0:"The Senate "
    0:"may not ..."
    e:{"finishReason":"stop","usage":{...},"isContinued":false}
    d:{"finishReason":"stop","usage":{...}}

A minimal consumer only needs ``0:`` (text) and ``3:`` (error) frames.
"""

import codecs
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class FrameType(str, Enum):
    """Frame type tags."""

    TEXT = "0"
    ERROR = "3"
    MESSAGE_START = "f"
    STEP_FINISH = "e"
    FINISH = "d"


@dataclass(frozen=True)
class Frame:
    """A decoded protocol frame."""

    tag: str
    payload: Any

    @property
    def type(self) -> FrameType | None:
        """Known frame type, or None for tags this module does not define."""
        try:
            return FrameType(self.tag)
        except ValueError:
            return None


def encode_frame(frame_type: FrameType, payload: Any) -> str:
    """Serialize a frame as a single newline-terminated line."""
    data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return f"{frame_type.value}:{data}\n"


def encode_text(delta: str) -> str:
    return encode_frame(FrameType.TEXT, delta)


def encode_error(message: str) -> str:
    return encode_frame(FrameType.ERROR, message)


def encode_message_start(message_id: str) -> str:
    return encode_frame(FrameType.MESSAGE_START, {"messageId": message_id})


def _usage_payload(prompt_tokens: int | None, completion_tokens: int | None) -> dict[str, Any]:
    return {"promptTokens": prompt_tokens, "completionTokens": completion_tokens}


def encode_step_finish(
    finish_reason: str,
    prompt_tokens: int | None = None,
    completion_tokens: int | None = None,
) -> str:
    return encode_frame(
        FrameType.STEP_FINISH,
        {
            "finishReason": finish_reason,
            "usage": _usage_payload(prompt_tokens, completion_tokens),
            "isContinued": False,
        },
    )


def encode_finish(
    finish_reason: str,
    prompt_tokens: int | None = None,
    completion_tokens: int | None = None,
) -> str:
    return encode_frame(
        FrameType.FINISH,
        {
            "finishReason": finish_reason,
            "usage": _usage_payload(prompt_tokens, completion_tokens),
        },
    )


def decode_line(line: str) -> Frame | None:
    """Decode one protocol line.

    Returns:
        The frame, or None for blank or malformed lines.
    """
    line = line.strip("\r")
    if not line:
        return None

    tag, sep, data = line.partition(":")
    if not sep or not tag:
        logger.warning(f"Skipping malformed stream line: {line[:80]!r}")
        return None

    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.warning(f"Skipping stream line with invalid JSON payload: {line[:80]!r}")
        return None

    return Frame(tag=tag, payload=payload)


class FrameDecoder:
    """Incremental decoder from raw response bytes to frames.

    Incomplete trailing lines (and split multi-byte characters) are
    buffered until the next chunk arrives.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    def feed(self, chunk: bytes | str) -> list[Frame]:
        """Add a chunk and return every frame completed by it."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        *lines, self._buffer = self._buffer.split("\n")
        frames: list[Frame] = []
        for line in lines:
            frame = decode_line(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def flush(self) -> list[Frame]:
        """Decode whatever remains once the stream has ended."""
        remaining = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        frame = decode_line(remaining)
        return [frame] if frame is not None else []
