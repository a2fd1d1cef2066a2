"""Shared OpenAI client."""

import logging
from functools import lru_cache

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def get_openai_client(api_key: str) -> AsyncOpenAI:
    """Return a cached async client for the given API key.

    The client is stateless per request and safe to share between
    concurrent streams.
    """
    logger.debug("Creating OpenAI client")
    return AsyncOpenAI(api_key=api_key)
