"""Request and conversation models for AskAussie."""

from askaussie.models.chat import ChatMessage, ChatRequest, Role

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "Role",
]
