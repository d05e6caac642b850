"""
Assistant Domain Entities
=========================

Domain entities for the conversational support assistant.

Contains pure Python business objects for chat sessions, their append-only
transcript, and the ticket draft produced when a conversation is escalated.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional


class SessionStatus(str, Enum):
    """Chat session lifecycle. ESCALATED is terminal."""
    OPEN = "OPEN"
    ESCALATED = "ESCALATED"


class MessageRole(str, Enum):
    """Author of a transcript entry."""
    USER = "USER"
    ASSISTANT = "ASSISTANT"
    SYSTEM = "SYSTEM"

    @property
    def provider_role(self) -> str:
        """Provider-neutral role vocabulary (system, user, assistant)."""
        return self.value.lower()


@dataclass
class ChatMessage:
    """
    One entry of a session transcript.

    Messages are append-only: never edited or deleted once stored.
    """
    id: Optional[str]
    session_id: str
    role: MessageRole
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_provider_message(self) -> Dict[str, str]:
        return {"role": self.role.provider_role, "content": self.content}


@dataclass
class ChatSession:
    """
    Durable conversation container.

    ``user_id`` is a back-reference to a user owned by the platform; it is
    never modified here.
    """
    id: str
    status: SessionStatus = SessionStatus.OPEN
    user_id: Optional[str] = None
    external_id: Optional[str] = None
    created_ticket_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    messages: List[ChatMessage] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status == SessionStatus.OPEN

    @property
    def is_escalated(self) -> bool:
        return self.status == SessionStatus.ESCALATED

    def belongs_to(self, user_id: Optional[str]) -> bool:
        """Sessions without a user belong to nobody."""
        return self.user_id is not None and self.user_id == user_id

    @property
    def first_user_message(self) -> Optional[ChatMessage]:
        return next((m for m in self.messages if m.role == MessageRole.USER), None)


@dataclass(frozen=True)
class AssistantPolicy:
    """Administrator-managed switches for the assistant."""
    enabled: bool = True
    daily_limit: Optional[int] = None

    @property
    def has_quota(self) -> bool:
        return self.daily_limit is not None and self.daily_limit >= 0


@dataclass(frozen=True)
class Team:
    """Team that can receive an escalated ticket."""
    id: str
    name: str


@dataclass(frozen=True)
class TicketDraft:
    """Ticket fields derived from a chat transcript."""
    title: str
    description: str
    team_id: str
    priority: str
    type: str

    def to_payload(self) -> Dict[str, str]:
        return {
            "title": self.title,
            "description": self.description,
            "teamId": self.team_id,
            "priority": self.priority,
            "type": self.type,
        }


@dataclass(frozen=True)
class CreatedTicket:
    """Ticket acknowledged by the ticket service."""
    id: str


class SupportPromptBuilder:
    """
    Builds the message list sent to the providers.

    Following DRY principle - all prompt logic in one place.
    """

    SYSTEM_PROMPT = """You are a helpful, objective technical support virtual assistant.

GUIDELINES:
- Answer clearly, objectively and usefully, focusing on solving the user's problem.
- Read the question carefully before answering.
- For technical problems (site errors, connection issues, etc.), offer practical solutions and diagnostic steps.
- If you are not sure about something, say so honestly and suggest where the user can find help.
- Do NOT invent information or make unfounded assumptions.
- If the issue is complex or needs internal access you do not have, suggest that the user opens a ticket for specialized support.

GOAL: Help the user solve their problem as well as possible."""

    @classmethod
    def context_window(cls, transcript: List[ChatMessage], size: int) -> List[ChatMessage]:
        """Last ``size`` entries of an ascending transcript."""
        return transcript[-size:] if size > 0 else []

    @classmethod
    def build_messages(cls, transcript: List[ChatMessage], size: int) -> List[Dict[str, str]]:
        """System instruction followed by the bounded context window."""
        window = cls.context_window(transcript, size)
        return [{"role": "system", "content": cls.SYSTEM_PROMPT}] + [
            m.to_provider_message() for m in window
        ]


class TranscriptRenderer:
    """Turns a transcript into ticket title and description."""

    TITLE_MAX_LENGTH = 120
    FALLBACK_TITLE = "Request via virtual assistant"
    ROLE_PREFIXES = {
        MessageRole.USER: "User:",
        MessageRole.ASSISTANT: "Assistant:",
        MessageRole.SYSTEM: "System:",
    }

    @classmethod
    def title(cls, session: ChatSession) -> str:
        first = session.first_user_message
        if first is None or not first.content:
            return cls.FALLBACK_TITLE
        return first.content[:cls.TITLE_MAX_LENGTH]

    @classmethod
    def description(cls, session: ChatSession) -> str:
        return "\n\n".join(
            f"{cls.ROLE_PREFIXES[m.role]} {m.content}" for m in session.messages
        )
