"""RAG retrieval and answer models.

``SearchResult`` is what an embedding store returns; ``Source`` is the
citation shape attached to every streamed ``RAGResponse``.  Sources always
describe the original search results, even when the context handed to the
language model was summarized.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SearchResult(BaseModel):
    """A stored chunk returned from a similarity search."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Store-generated entry id.")
    content: str = Field(description="The chunk text that was embedded.")
    score: float = Field(
        ge=0.0,
        le=1.0,
        description="Similarity between the query and this entry (higher is closer).",
    )


class Source(BaseModel):
    """Citation for one retrieved chunk."""

    model_config = ConfigDict(frozen=True)

    document_title: str = "Document"
    document_id: str
    excerpt: str
    relevance_score: float = Field(ge=0.0, le=1.0)

    @classmethod
    def from_result(cls, result: SearchResult, document_title: str = "Document") -> Source:
        return cls(
            document_title=document_title,
            document_id=result.id,
            excerpt=result.content,
            relevance_score=result.score,
        )


class RAGResponse(BaseModel):
    """One snapshot of a streamed answer.

    ``partial_answer`` holds the text accumulated so far, not a delta.
    """

    model_config = ConfigDict(frozen=True)

    partial_answer: str = ""
    is_complete: bool = False
    sources: list[Source] = Field(default_factory=list)
