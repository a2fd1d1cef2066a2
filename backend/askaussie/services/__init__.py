"""Service layer for AskAussie.

Services wrap the remote model calls used to answer questions.
"""

from askaussie.services.completion import (
    CompletionStream,
    StreamingCompletionGateway,
    StreamState,
)
from askaussie.services.openai_client import get_openai_client

__all__ = [
    "CompletionStream",
    "StreamingCompletionGateway",
    "StreamState",
    "get_openai_client",
]
