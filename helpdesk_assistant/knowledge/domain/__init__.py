"""
Knowledge Domain Layer
======================

Domain layer for knowledge-base retrieval.

Contains:
- Entities: KnowledgeArticle, ArticleQuery, AiSolution, ArticleSuggestion
- RelevanceScorer: Re-ranking of retrieved articles
- SolutionPromptBuilder: Grounding prompt and no-answer sentinel
"""

from helpdesk_assistant.knowledge.domain.entities import (
    ArticleStatus,
    KnowledgeArticle,
    ArticleQuery,
    RelevanceScorer,
    SourceArticle,
    AiSolution,
    ArticleSuggestion,
    SolutionPromptBuilder,
)

__all__ = [
    "ArticleStatus",
    "KnowledgeArticle",
    "ArticleQuery",
    "RelevanceScorer",
    "SourceArticle",
    "AiSolution",
    "ArticleSuggestion",
    "SolutionPromptBuilder",
]
