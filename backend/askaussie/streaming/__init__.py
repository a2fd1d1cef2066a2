"""Streaming protocol, cancellation and client-side reassembly."""

from askaussie.streaming.cancellation import CancellationToken
from askaussie.streaming.consumer import ChatTranscript, ReplyStatus
from askaussie.streaming.protocol import Frame, FrameDecoder, FrameType

__all__ = [
    "CancellationToken",
    "ChatTranscript",
    "ReplyStatus",
    "Frame",
    "FrameDecoder",
    "FrameType",
]
