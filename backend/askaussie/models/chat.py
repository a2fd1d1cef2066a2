"""Conversation schemas shared by the API and the client."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


class ChatMessage(BaseModel):
    """A single conversation turn."""

    model_config = ConfigDict(extra="ignore")

    role: Role
    content: str
    timestamp: datetime | None = None


class ChatRequest(BaseModel):
    """Full conversation sent with every chat call (the server keeps no history)."""

    messages: list[ChatMessage] = Field(default_factory=list)

    @property
    def latest_message(self) -> ChatMessage | None:
        return self.messages[-1] if self.messages else None
