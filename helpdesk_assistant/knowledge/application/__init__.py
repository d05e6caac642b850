"""
Knowledge Application Layer
===========================

Contains:
- Services: Retrieval, grounded solutions, article suggestions
- DTOs: Data transfer objects for API serialization
"""

from helpdesk_assistant.knowledge.application.dto import (
    ArticleQueryRequest,
    ArticleInfo,
    SuggestArticlesResponse,
    SourceArticleInfo,
    AiSolutionResponse,
)
from helpdesk_assistant.knowledge.application.services import (
    KnowledgeRetriever,
    SolutionService,
    SuggestionService,
    IArticleRepository,
    ISuggestionWebhook,
)

__all__ = [
    # DTOs
    "ArticleQueryRequest",
    "ArticleInfo",
    "SuggestArticlesResponse",
    "SourceArticleInfo",
    "AiSolutionResponse",
    # Services
    "KnowledgeRetriever",
    "SolutionService",
    "SuggestionService",
    # Interfaces
    "IArticleRepository",
    "ISuggestionWebhook",
]
