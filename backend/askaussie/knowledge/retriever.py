"""Semantic retriever for constitution sections.

Combines the corpus store, query embedding and cosine ranking. Every
failure degrades to "no context" rather than an error.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from askaussie.core.ai_constants import DEFAULT_TOP_K
from askaussie.knowledge.embeddings import generate_query_embedding
from askaussie.knowledge.loader import CorpusStore
from askaussie.knowledge.models import ScoredSection
from askaussie.knowledge.ranking import rank_sections

if TYPE_CHECKING:
    from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

# Global retriever instance
_retriever_instance: "KnowledgeRetriever | None" = None


class KnowledgeRetriever:
    """Linear-scan retriever over the constitution corpus."""

    def __init__(
        self,
        store: CorpusStore,
        embedding_model: str | None = None,
        default_top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self.store = store
        self.embedding_model = embedding_model
        self.default_top_k = default_top_k

    @property
    def section_count(self) -> int:
        """Number of loaded sections."""
        return self.store.section_count

    async def find_relevant_sections(
        self,
        query: str,
        client: "AsyncOpenAI",
        top_k: int | None = None,
    ) -> list[ScoredSection]:
        """Find the sections most similar to a query.

        Args:
            query: The latest user message.
            client: OpenAI client for the query embedding.
            top_k: Maximum number of results (defaults to the retriever's setting).

        Returns:
            Up to ``top_k`` sections sorted by similarity, or an empty list
            when the corpus is unavailable or the query cannot be embedded.
        """
        sections = await self.store.load()

        if not sections or not sections[0].has_embedding:
            logger.warning(
                "No constitution embeddings loaded or available. "
                "Returning empty relevant sections."
            )
            return []

        query_embedding = await generate_query_embedding(
            query,
            client=client,
            model=self.embedding_model,
        )
        if not query_embedding:
            logger.warning(
                "Query embedding could not be generated. Returning empty relevant sections."
            )
            return []

        results = rank_sections(
            query_embedding,
            sections,
            top_k=top_k if top_k is not None else self.default_top_k,
        )
        logger.debug(
            "Retrieved sections: %s",
            [(r.section, round(r.similarity, 3)) for r in results],
        )
        return results


def initialize_knowledge_retriever(
    corpus_path: Path | None = None,
    embedding_model: str | None = None,
    top_k: int | None = None,
) -> KnowledgeRetriever:
    """Create the global knowledge retriever.

    Should be called during application startup.

    Args:
        corpus_path: Path to the embeddings artifact (defaults to settings).
        embedding_model: Model name for query embeddings (defaults to settings).
        top_k: Default number of sections to retrieve (defaults to settings).

    Returns:
        The new global retriever.
    """
    global _retriever_instance

    from askaussie.core.config import get_settings

    settings = get_settings()
    corpus_path = corpus_path or Path(settings.corpus_path)
    embedding_model = embedding_model or settings.openai_embedding_model
    top_k = top_k if top_k is not None else settings.rag_top_k

    _retriever_instance = KnowledgeRetriever(
        store=CorpusStore(corpus_path),
        embedding_model=embedding_model,
        default_top_k=top_k,
    )
    return _retriever_instance


def get_knowledge_retriever() -> KnowledgeRetriever:
    """Get the global knowledge retriever, creating it on first use."""
    if _retriever_instance is None:
        return initialize_knowledge_retriever()
    return _retriever_instance
