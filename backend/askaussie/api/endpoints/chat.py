"""Constitution Q&A chat endpoint with streamed answers."""

import logging
from collections.abc import AsyncIterator

import anyio
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from openai import AsyncOpenAI

from askaussie.api.deps import get_openai, get_retriever
from askaussie.core.ai_constants import (
    MISSING_API_KEY_ERROR,
    NO_MESSAGE_ERROR,
    RELEVANT_SECTIONS_HEADER,
)
from askaussie.core.config import Settings, get_settings
from askaussie.core.exceptions import ConfigurationError, InvalidConversationError
from askaussie.knowledge.prompt import build_messages
from askaussie.knowledge.retriever import KnowledgeRetriever
from askaussie.models.chat import ChatRequest
from askaussie.services.completion import (
    CompletionStream,
    StreamingCompletionGateway,
    StreamState,
)
from askaussie.streaming.cancellation import CancellationToken

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("")
async def chat(
    request: Request,
    body: ChatRequest,
    settings: Settings = Depends(get_settings),
    client: AsyncOpenAI | None = Depends(get_openai),
    retriever: KnowledgeRetriever = Depends(get_retriever),
) -> StreamingResponse:
    """Answer the latest user message, grounded in retrieved sections.

    The client sends the whole conversation; the server keeps no history.
    Retrieval finishes (or degrades to no context) before the prompt is
    built, and the prompt is built before the completion call starts.

    Args:
        request: Incoming request, polled for client disconnects.
        body: Full conversation ending with a user message.
        settings: Application settings.
        client: OpenAI client, or None when no key is configured.
        retriever: Section retriever.

    Returns:
        Streamed answer in the data stream protocol, with the retrieved
        section numbers in the ``X-Relevant-Sections`` header.

    Raises:
        InvalidConversationError: If there is no user message to answer.
        ConfigurationError: If the OpenAI API key is missing.
        CompletionError: If the completion call cannot be opened.
    """
    latest = body.latest_message
    if latest is None or latest.role != "user" or not latest.content.strip():
        raise InvalidConversationError(NO_MESSAGE_ERROR)

    if client is None:
        raise ConfigurationError(MISSING_API_KEY_ERROR)

    sections = await retriever.find_relevant_sections(latest.content, client=client)
    bundle = build_messages(sections, body.messages)

    token = CancellationToken()
    gateway = StreamingCompletionGateway(
        client,
        model=settings.openai_chat_model,
        max_tokens=settings.ai_max_tokens,
        temperature=settings.ai_temperature,
    )
    stream = await gateway.complete(bundle.messages, token)

    logger.info(
        "Chat stream started: messages=%d sections=[%s]",
        len(body.messages),
        bundle.section_ids,
    )

    return StreamingResponse(
        _forward_frames(stream, request, token),
        media_type="text/plain; charset=utf-8",
        headers={
            RELEVANT_SECTIONS_HEADER: bundle.section_ids,
            "X-Vercel-AI-Data-Stream": "v1",
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


@router.get("")
async def chat_status() -> dict[str, str]:
    """Liveness check for the chat API."""
    return {"message": "Chat API is running"}


async def _forward_frames(
    stream: CompletionStream,
    request: Request,
    token: CancellationToken,
) -> AsyncIterator[str]:
    """Write frames to the client until the stream ends or the client leaves."""
    frames = stream.frames()
    try:
        async for frame in frames:
            if await request.is_disconnected():
                token.cancel("client disconnected")
                break
            yield frame
    finally:
        if stream.state is StreamState.STREAMING:
            token.cancel("response closed")
        with anyio.CancelScope(shield=True):
            await frames.aclose()
