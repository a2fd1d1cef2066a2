"""Pytest configuration and fixtures for backend tests."""

import json
from pathlib import Path
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

import askaussie.observability as observability
from askaussie.api.deps import get_openai, get_retriever
from askaussie.core.config import Settings, get_settings
from askaussie.knowledge.loader import CorpusStore
from askaussie.knowledge.retriever import KnowledgeRetriever
from askaussie.main import app as main_app
from tests.fakes import text_stream


# -------------------------------------------------------------------------
# OpenAI Fakes
# -------------------------------------------------------------------------


@pytest.fixture
def fake_openai() -> MagicMock:
    """Mock AsyncOpenAI client with embeddings and streaming chat."""
    client = MagicMock()
    client.embeddings.create = AsyncMock(
        return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.9, 0.1])])
    )
    client.chat.completions.create = AsyncMock(
        side_effect=lambda **kwargs: text_stream("Section 51 ", "grants powers.")
    )
    return client


# -------------------------------------------------------------------------
# Corpus Fixtures
# -------------------------------------------------------------------------


SAMPLE_SECTIONS = [
    {
        "part": "Part V - Powers of the Parliament",
        "chapter": "Chapter I - The Parliament",
        "section": "§51",
        "content": "The Parliament shall, subject to this Constitution, have power to make laws...",
        "embedding": [1.0, 0.0],
    },
    {
        "chapter": "Chapter III - The Judicature",
        "section": "76",
        "content": "The Parliament may make laws conferring original jurisdiction on the High Court...",
        "embedding": [0.0, 1.0],
    },
]


@pytest.fixture
def corpus_file(tmp_path: Path) -> Path:
    """Write a small two-section corpus artifact."""
    path = tmp_path / "constitution_embeddings.json"
    path.write_text(json.dumps(SAMPLE_SECTIONS), encoding="utf-8")
    return path


@pytest.fixture
def retriever(corpus_file: Path) -> KnowledgeRetriever:
    return KnowledgeRetriever(store=CorpusStore(corpus_file), default_top_k=3)


# -------------------------------------------------------------------------
# Metrics Fixtures
# -------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def metrics() -> observability.MetricsCollector:
    """Fresh in-memory metrics backend for every test."""
    collector = observability.MetricsCollector()
    observability._metrics_backend = collector
    yield collector
    observability._metrics_backend = None


# -------------------------------------------------------------------------
# App Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, openai_api_key="sk-test")


@pytest.fixture
def app(
    test_settings: Settings,
    fake_openai: MagicMock,
    retriever: KnowledgeRetriever,
) -> FastAPI:
    """FastAPI app with settings, OpenAI client and retriever overridden."""
    main_app.dependency_overrides[get_settings] = lambda: test_settings
    main_app.dependency_overrides[get_openai] = lambda: fake_openai
    main_app.dependency_overrides[get_retriever] = lambda: retriever
    yield main_app
    main_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
