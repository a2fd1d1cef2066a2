"""Query embedding generation.

Uses OpenAI's text-embedding-3-small model, the same model that produced
the corpus embeddings offline.
"""

import logging
import time
from typing import TYPE_CHECKING

from askaussie.core.ai_constants import DEFAULT_EMBEDDING_MODEL
from askaussie.observability import get_metrics_backend

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


async def generate_query_embedding(
    query: str,
    client: "AsyncOpenAI",
    model: str | None = None,
) -> list[float]:
    """Generate an embedding for a search query.

    Failures are not fatal: the caller treats an empty vector as
    "no retrieval possible" and answers without context.

    Args:
        query: Query text.
        client: OpenAI client used for the embeddings call.
        model: Model name (default: text-embedding-3-small).

    Returns:
        The embedding vector, or an empty list if the call failed.
    """
    if not query.strip():
        return []

    metrics = get_metrics_backend()
    model_name = model or DEFAULT_EMBEDDING_MODEL

    start_time = time.perf_counter()
    status_code = 500
    try:
        response = await client.embeddings.create(model=model_name, input=query)
        embedding = [float(x) for x in response.data[0].embedding]
        status_code = 200
    except Exception as e:
        status_code = getattr(e, "status_code", None) or 500
        logger.error(f"Error getting query embedding: {type(e).__name__}: {e}")
        return []
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        metrics.observe_external_api("openai", "embeddings", status_code, duration_ms)
        logger.info(
            "OpenAI API embeddings status=%s duration_ms=%.2f",
            status_code,
            duration_ms,
        )

    return embedding
