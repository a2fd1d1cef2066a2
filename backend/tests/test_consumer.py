"""Tests for client-side transcript handling of streamed replies."""

import pytest

from askaussie.models.chat import ChatMessage
from askaussie.streaming.consumer import ChatTranscript, ReplyStatus
from askaussie.streaming.protocol import Frame


def _text(delta: str) -> Frame:
    return Frame(tag="0", payload=delta)


@pytest.fixture
def transcript() -> ChatTranscript:
    transcript = ChatTranscript(
        [
            ChatMessage(role="user", content="What is section 51?"),
            ChatMessage(role="assistant", content="It lists powers."),
        ]
    )
    transcript.add_user_message("And section 76?")
    return transcript


class TestChatTranscript:
    """Tests for ChatTranscript state transitions."""

    def test_deltas_concatenate_in_order(self, transcript: ChatTranscript):
        reply = transcript.begin_reply()

        for delta in ["Section ", "76 ", "grants jurisdiction."]:
            transcript.apply(_text(delta))
        transcript.complete()

        assert reply.content == "Section 76 grants jurisdiction."
        assert transcript.status is ReplyStatus.COMPLETED
        assert transcript.pending is None
        assert transcript.messages[-1] is reply

    def test_history_excludes_pending_reply(self, transcript: ChatTranscript):
        transcript.begin_reply()

        history = transcript.history()

        assert len(history) == 3
        assert history[-1].role == "user"

    def test_abort_removes_partial_reply(self, transcript: ChatTranscript):
        before = list(transcript.messages)
        transcript.begin_reply()
        transcript.apply(_text("Partial answer"))

        transcript.abort()

        assert transcript.messages == before
        assert transcript.status is ReplyStatus.ABORTED
        assert all("Partial" not in m.content for m in transcript.messages)

    def test_error_frame_keeps_visible_error(self, transcript: ChatTranscript):
        reply = transcript.begin_reply()
        transcript.apply(_text("Some text"))

        transcript.apply(Frame(tag="3", payload="An error occurred"))

        assert reply.content == "Error: An error occurred"
        assert transcript.messages[-1] is reply
        assert transcript.status is ReplyStatus.FAILED

    def test_frames_after_terminal_state_are_ignored(self, transcript: ChatTranscript):
        reply = transcript.begin_reply()
        transcript.fail("boom")

        transcript.apply(_text("late"))
        transcript.abort()

        assert reply.content == "Error: boom"
        assert transcript.status is ReplyStatus.FAILED

    def test_metadata_frames_do_not_change_content(self, transcript: ChatTranscript):
        reply = transcript.begin_reply()

        transcript.apply(Frame(tag="f", payload={"messageId": "msg-1"}))
        transcript.apply(Frame(tag="d", payload={"finishReason": "stop"}))
        transcript.apply(Frame(tag="x", payload="unknown"))

        assert reply.content == ""

    def test_no_new_user_message_while_streaming(self, transcript: ChatTranscript):
        transcript.begin_reply()

        with pytest.raises(RuntimeError):
            transcript.add_user_message("another question")

        with pytest.raises(RuntimeError):
            transcript.begin_reply()
