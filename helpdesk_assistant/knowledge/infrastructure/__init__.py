"""
Knowledge Infrastructure Layer
==============================

Contains:
- Models: SQLAlchemy ORM models for articles and tags
- Repositories: Article lookup
- External: Suggestion webhook client
"""

from helpdesk_assistant.knowledge.infrastructure.models import KbArticleModel, KbArticleTagModel
from helpdesk_assistant.knowledge.infrastructure.repositories import SQLAlchemyArticleRepository
from helpdesk_assistant.knowledge.infrastructure.external import HTTPSuggestionWebhook

__all__ = [
    "KbArticleModel",
    "KbArticleTagModel",
    "SQLAlchemyArticleRepository",
    "HTTPSuggestionWebhook",
]
