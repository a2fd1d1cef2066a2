"""Shared FastAPI dependencies."""

from fastapi import Depends
from openai import AsyncOpenAI

from askaussie.core.config import Settings, get_settings
from askaussie.knowledge.retriever import KnowledgeRetriever, get_knowledge_retriever
from askaussie.services.openai_client import get_openai_client


def get_openai(settings: Settings = Depends(get_settings)) -> AsyncOpenAI | None:
    """OpenAI client for the request, or None when no API key is configured."""
    if not settings.openai_api_key:
        return None
    return get_openai_client(settings.openai_api_key)


def get_retriever() -> KnowledgeRetriever:
    return get_knowledge_retriever()
