"""Data model shared across ingestion, retrieval and session history."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Article(BaseModel):
    """A news article as fetched from a source.

    Immutable once ingested; a re-ingestion replaces the whole collection.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    link: str
    pub_date: str = ""
    full_text: str = ""
    source: str = ""

    def to_payload(self) -> Dict[str, Any]:
        """Payload stored next to the vector in the index."""
        return {
            "article_id": self.id,
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "pub_date": self.pub_date,
            "full_text": self.full_text,
            "source": self.source,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Article":
        return cls(
            id=payload["article_id"],
            title=payload.get("title", ""),
            description=payload.get("description", ""),
            link=payload.get("link", ""),
            pub_date=payload.get("pub_date", ""),
            full_text=payload.get("full_text", ""),
            source=payload.get("source", ""),
        )


class SourceRef(BaseModel):
    """A retrieved article as remembered in an assistant turn."""

    title: str
    link: str
    source: str
    score: float


class Turn(BaseModel):
    """One message within a session's conversation history."""

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    sources: Optional[List[SourceRef]] = None


@dataclass
class RetrievalResult:
    """A retrieved article with its cosine similarity to the query."""

    article: Article
    score: float

    @property
    def relevance(self) -> str:
        """Score as a percentage string with one decimal, e.g. ``87.5%``."""
        return f"{self.score * 100:.1f}%"

    def to_source_ref(self) -> SourceRef:
        return SourceRef(
            title=self.article.title,
            link=self.article.link,
            source=self.article.source,
            score=self.score,
        )


class AnswerSource(BaseModel):
    """Caller-facing description of a source used for an answer."""

    title: str
    link: str
    pub_date: str
    source: str
    relevance: str

    @classmethod
    def from_result(cls, result: RetrievalResult) -> "AnswerSource":
        return cls(
            title=result.article.title,
            link=result.article.link,
            pub_date=result.article.pub_date,
            source=result.article.source,
            relevance=result.relevance,
        )


class Answer(BaseModel):
    """Generated answer and the sources it was grounded on."""

    answer: str
    sources: List[AnswerSource]
