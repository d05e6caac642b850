"""
Assistant Application Layer
===========================

Application layer for the conversational support assistant.

Contains:
- Services: Session management, policy enforcement, message pipeline, escalation
- Orchestration: Provider fallback chain
- DTOs: Data transfer objects for API serialization
"""

from helpdesk_assistant.assistant.application.dto import (
    CreateSessionRequest,
    SendMessageRequest,
    EscalateRequest,
    CreateSessionResponse,
    AssistantMessageInfo,
    SendMessageResponse,
    EscalateResponse,
    TranscriptMessageInfo,
    TranscriptResponse,
)
from helpdesk_assistant.assistant.application.orchestration import (
    ProviderAttempt,
    ProviderOrchestrator,
)
from helpdesk_assistant.assistant.application.services import (
    SessionManager,
    PolicyGuard,
    MessagePipeline,
    EscalationService,
    AssistantService,
    IChatSessionRepository,
    IChatMessageRepository,
    IRuntimeConfigProvider,
    ITeamDirectory,
    ITicketingClient,
    start_of_utc_day,
)

__all__ = [
    # DTOs
    "CreateSessionRequest",
    "SendMessageRequest",
    "EscalateRequest",
    "CreateSessionResponse",
    "AssistantMessageInfo",
    "SendMessageResponse",
    "EscalateResponse",
    "TranscriptMessageInfo",
    "TranscriptResponse",
    # Orchestration
    "ProviderAttempt",
    "ProviderOrchestrator",
    # Services
    "SessionManager",
    "PolicyGuard",
    "MessagePipeline",
    "EscalationService",
    "AssistantService",
    "start_of_utc_day",
    # Repository Interfaces
    "IChatSessionRepository",
    "IChatMessageRepository",
    "IRuntimeConfigProvider",
    "ITeamDirectory",
    "ITicketingClient",
]
