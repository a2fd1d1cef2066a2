"""Corpus loader for the precomputed constitution embeddings artifact.

The artifact is a JSON array of section records, each carrying optional
``part``/``chapter``/``section`` labels, ``content`` and an ``embedding``
vector produced offline by a single embedding model.
"""

import asyncio
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from askaussie.knowledge.models import CorpusSection

logger = logging.getLogger(__name__)


def load_corpus(path: Path) -> list[CorpusSection]:
    """Read and validate the corpus artifact.

    Args:
        path: Location of the JSON embeddings file.

    Returns:
        List of CorpusSection objects in file order.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the file is not a JSON array of section records.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"Corpus artifact must be a JSON array, got {type(data).__name__}")

    try:
        sections = [CorpusSection.model_validate(item) for item in data]
    except ValidationError as e:
        raise ValueError(f"Invalid section record in {path}: {e}") from e

    return _drop_inconsistent_embeddings(sections)


def _drop_inconsistent_embeddings(sections: list[CorpusSection]) -> list[CorpusSection]:
    """Strip embeddings whose dimension differs from the corpus dimension.

    The first non-empty embedding defines the dimension. Offending sections
    are kept for completeness but lose their embedding, which excludes them
    from ranking.
    """
    dimension: int | None = None
    result: list[CorpusSection] = []
    dropped = 0

    for section in sections:
        if not section.embedding:
            result.append(section)
            continue

        if dimension is None:
            dimension = len(section.embedding)

        if len(section.embedding) != dimension:
            dropped += 1
            result.append(section.model_copy(update={"embedding": None}))
        else:
            result.append(section)

    if dropped:
        logger.warning(
            f"Dropped {dropped} embedding(s) that do not match corpus dimension {dimension}"
        )

    return result


class CorpusStore:
    """Process-wide, read-only cache of the constitution corpus.

    The first successful load is memoized for the life of the process.
    Concurrent first requests share a single load. A failed load is not
    cached, so the next request tries again.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._sections: list[CorpusSection] | None = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        """Check whether the corpus has been loaded successfully."""
        return self._sections is not None

    @property
    def section_count(self) -> int:
        """Number of loaded sections (0 before the first successful load)."""
        return len(self._sections) if self._sections is not None else 0

    async def load(self) -> list[CorpusSection]:
        """Return the corpus, loading it on first use.

        Returns:
            The loaded sections, or an empty list if the artifact is missing
            or malformed.
        """
        if self._sections is not None:
            return self._sections

        async with self._lock:
            if self._sections is not None:
                return self._sections

            try:
                sections = await asyncio.to_thread(load_corpus, self.path)
            except (OSError, ValueError) as e:
                logger.error(f"Error loading constitution embeddings from {self.path}: {e}")
                return []

            self._sections = sections
            embedded = sum(1 for s in sections if s.has_embedding)
            logger.info(
                f"Constitution corpus loaded: {len(sections)} sections, "
                f"{embedded} with embeddings"
            )
            return self._sections
