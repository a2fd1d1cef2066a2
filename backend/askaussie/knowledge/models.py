"""Data models for constitution sections and retrieval results."""

from pydantic import BaseModel, ConfigDict, Field


class CorpusSection(BaseModel):
    """A single retrievable section of the constitution.

    Loaded once from the precomputed embeddings artifact and never mutated.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    part: str | None = Field(default=None, description="Part label (e.g., 'Part V')")
    chapter: str | None = Field(default=None, description="Chapter label (e.g., 'Chapter I')")
    section: str | None = Field(default=None, description="Section label (e.g., '51')")
    content: str | None = Field(default=None, description="Section text")
    embedding: list[float] | None = Field(
        default=None,
        description="Precomputed embedding vector",
    )

    @property
    def has_embedding(self) -> bool:
        """Whether this section can take part in ranking."""
        return bool(self.embedding)


class ScoredSection(CorpusSection):
    """A corpus section paired with its similarity to a query."""

    similarity: float = Field(..., description="Cosine similarity to the query (-1 to 1)")
