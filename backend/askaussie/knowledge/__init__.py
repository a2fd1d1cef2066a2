"""Knowledge base module for RAG over the constitution.

This module loads the precomputed section embeddings, ranks sections
against a query and assembles the grounded prompt for the chat model.
"""

from askaussie.knowledge.models import CorpusSection, ScoredSection
from askaussie.knowledge.prompt import PromptBundle, build_messages
from askaussie.knowledge.retriever import (
    get_knowledge_retriever,
    initialize_knowledge_retriever,
    KnowledgeRetriever,
)

__all__ = [
    "CorpusSection",
    "ScoredSection",
    "PromptBundle",
    "build_messages",
    "KnowledgeRetriever",
    "get_knowledge_retriever",
    "initialize_knowledge_retriever",
]
