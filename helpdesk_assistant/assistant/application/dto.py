"""
Assistant Application DTOs
==========================

Data Transfer Objects for the assistant API layer.

Pydantic models for request/response validation. The wire format uses
camelCase field names; Python code uses snake_case.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from helpdesk_assistant.assistant.domain import ChatMessage


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========== Request DTOs ==========

class CreateSessionRequest(CamelModel):
    """Request model for starting or re-attaching to a chat session."""
    session_id: Optional[str] = Field(None, description="Existing session to re-attach to")
    external_id: Optional[str] = Field(None, max_length=255, description="Caller-side correlation id")


class SendMessageRequest(CamelModel):
    """
    Request model for one user turn.

    Both fields are required by the service; they are optional here so the
    missing-input case is reported as a 400 like every other domain error.
    """
    session_id: Optional[str] = Field(None, description="Target session")
    message: Optional[str] = Field(None, max_length=10000, description="User message")


class EscalateRequest(CamelModel):
    """Request model for converting a chat into a ticket."""
    session_id: Optional[str] = Field(None, description="Session to escalate")


# ========== Response DTOs ==========

class CreateSessionResponse(CamelModel):
    session_id: str


class AssistantMessageInfo(CamelModel):
    """Assistant reply as returned to the client."""
    id: str
    content: str
    created_at: datetime

    @classmethod
    def from_domain(cls, message: ChatMessage) -> "AssistantMessageInfo":
        return cls(id=message.id, content=message.content, created_at=message.created_at)


class SendMessageResponse(CamelModel):
    assistant_message: AssistantMessageInfo


class EscalateResponse(CamelModel):
    ticket_id: str


class TranscriptMessageInfo(CamelModel):
    """One transcript entry."""
    id: str
    role: str
    content: str
    created_at: datetime

    @classmethod
    def from_domain(cls, message: ChatMessage) -> "TranscriptMessageInfo":
        return cls(
            id=message.id,
            role=message.role.value,
            content=message.content,
            created_at=message.created_at
        )


class TranscriptResponse(CamelModel):
    """Canonical transcript of a session, ascending by creation time."""
    session_id: str
    status: str
    created_ticket_id: Optional[str] = None
    messages: List[TranscriptMessageInfo]
