"""
Knowledge Application DTOs
==========================

Pydantic models for the knowledge API layer (camelCase on the wire).
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from helpdesk_assistant.knowledge.domain import (
    AiSolution,
    ArticleQuery,
    ArticleSuggestion,
    KnowledgeArticle,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========== Request DTOs ==========

class ArticleQueryRequest(CamelModel):
    """Title and description of the ticket being drafted."""
    title: str = Field(default="", max_length=500, description="Ticket title")
    description: str = Field(default="", max_length=10000, description="Ticket description")
    category_id: Optional[str] = Field(None, description="Restrict to one category")

    def to_domain(self) -> ArticleQuery:
        return ArticleQuery(
            title=self.title,
            description=self.description,
            category_id=self.category_id
        )


# ========== Response DTOs ==========

class ArticleInfo(CamelModel):
    id: str
    title: str
    content: str
    tags: List[str]
    category_id: Optional[str] = None
    updated_at: datetime

    @classmethod
    def from_domain(cls, article: KnowledgeArticle) -> "ArticleInfo":
        return cls(
            id=article.id,
            title=article.title,
            content=article.content,
            tags=article.tags,
            category_id=article.category_id,
            updated_at=article.updated_at
        )


class SuggestArticlesResponse(CamelModel):
    articles: List[ArticleInfo]
    ai_solution: Optional[str] = None

    @classmethod
    def from_domain(cls, suggestion: ArticleSuggestion) -> "SuggestArticlesResponse":
        return cls(
            articles=[ArticleInfo.from_domain(a) for a in suggestion.articles],
            ai_solution=suggestion.ai_solution
        )


class SourceArticleInfo(CamelModel):
    id: str
    title: str


class AiSolutionResponse(CamelModel):
    """Grounded solution; ``hasAnswer`` is false when the knowledge base has none."""
    solution: str
    source_articles: List[SourceArticleInfo]
    has_answer: bool

    @classmethod
    def from_domain(cls, result: AiSolution) -> "AiSolutionResponse":
        return cls(
            solution=result.solution,
            source_articles=[SourceArticleInfo(id=s.id, title=s.title) for s in result.source_articles],
            has_answer=result.has_answer
        )
