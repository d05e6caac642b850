"""
Assistant Infrastructure Layer
==============================

Infrastructure implementations for the assistant module.

Contains:
- Models: SQLAlchemy ORM models
- Repositories: Session, message and team data access
- External: Runtime config and ticket service adapters
"""

from helpdesk_assistant.assistant.infrastructure.models import (
    ChatSessionModel,
    ChatMessageModel,
    TeamModel,
    UserTeamModel,
)
from helpdesk_assistant.assistant.infrastructure.repositories import (
    SQLAlchemyChatSessionRepository,
    SQLAlchemyChatMessageRepository,
    SQLAlchemyTeamDirectory,
)
from helpdesk_assistant.assistant.infrastructure.external import (
    YAMLRuntimeConfigProvider,
    HTTPTicketingClient,
)

__all__ = [
    "ChatSessionModel",
    "ChatMessageModel",
    "TeamModel",
    "UserTeamModel",
    "SQLAlchemyChatSessionRepository",
    "SQLAlchemyChatMessageRepository",
    "SQLAlchemyTeamDirectory",
    "YAMLRuntimeConfigProvider",
    "HTTPTicketingClient",
]
