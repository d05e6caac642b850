"""
Assistant Domain Layer
======================

Domain layer for the conversational support assistant.

Contains:
- Entities: ChatSession, ChatMessage, AssistantPolicy, TicketDraft
- Builders: SupportPromptBuilder, TranscriptRenderer

This layer is framework-agnostic and contains pure business logic.
"""

from helpdesk_assistant.assistant.domain.entities import (
    SessionStatus,
    MessageRole,
    ChatMessage,
    ChatSession,
    AssistantPolicy,
    Team,
    TicketDraft,
    CreatedTicket,
    SupportPromptBuilder,
    TranscriptRenderer,
)

__all__ = [
    "SessionStatus",
    "MessageRole",
    "ChatMessage",
    "ChatSession",
    "AssistantPolicy",
    "Team",
    "TicketDraft",
    "CreatedTicket",
    "SupportPromptBuilder",
    "TranscriptRenderer",
]
