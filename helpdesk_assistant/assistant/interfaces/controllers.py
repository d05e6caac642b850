"""
Assistant Controllers (API Routes)
==================================

FastAPI routes for the conversational support assistant.

Controllers delegate to application services. The authenticated user id is
read from the ``X-User-ID`` header set by the upstream gateway.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_assistant.assistant.application import (
    AssistantService,
    CreateSessionRequest,
    CreateSessionResponse,
    EscalateRequest,
    EscalateResponse,
    EscalationService,
    MessagePipeline,
    PolicyGuard,
    ProviderOrchestrator,
    SendMessageRequest,
    SendMessageResponse,
    SessionManager,
    TranscriptMessageInfo,
    TranscriptResponse,
    AssistantMessageInfo,
)
from helpdesk_assistant.assistant.infrastructure import (
    HTTPTicketingClient,
    SQLAlchemyChatMessageRepository,
    SQLAlchemyChatSessionRepository,
    SQLAlchemyTeamDirectory,
    YAMLRuntimeConfigProvider,
)
from helpdesk_assistant.config import Settings
from helpdesk_assistant.infrastructure.database import get_session
from helpdesk_assistant.infrastructure.llm import ILLMClient

router = APIRouter(prefix="/assistant", tags=["Virtual Assistant"])


# ========== Example payloads for Swagger ==========

SEND_MESSAGE_RESPONSE_EXAMPLE = {
    "assistantMessage": {
        "id": "0f8fad5b-d9cb-469f-a165-70867728950e",
        "content": "Let's check a few things. First, confirm you are connected to the internet...",
        "createdAt": "2026-01-15T10:30:00Z"
    }
}


# ========== Dependencies ==========

def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-ID")) -> Optional[str]:
    """Authenticated user id; None when the gateway did not set one."""
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider_clients(request: Request) -> List[ILLMClient]:
    return getattr(request.app.state, "providers", [])


def get_assistant_service(
    db: AsyncSession = Depends(get_session),
    config: Settings = Depends(get_app_settings),
    providers: List[ILLMClient] = Depends(get_provider_clients)
) -> AssistantService:
    """Wire the assistant services for one request."""
    messages = SQLAlchemyChatMessageRepository(db)
    sessions = SQLAlchemyChatSessionRepository(db, messages)

    orchestrator = ProviderOrchestrator(
        providers,
        temperature=config.llm_temperature,
        max_tokens=config.llm_max_tokens
    )
    guard = PolicyGuard(YAMLRuntimeConfigProvider(config.runtime_config_path), messages)
    escalation = EscalationService(
        sessions,
        SQLAlchemyTeamDirectory(db),
        HTTPTicketingClient(
            config.ticketing_base_url,
            api_token=config.ticketing_api_token,
            timeout_seconds=config.ticketing_timeout_seconds
        ),
        priority=config.escalation_priority,
        ticket_type=config.escalation_ticket_type
    )

    return AssistantService(
        guard=guard,
        session_manager=SessionManager(sessions),
        pipeline=MessagePipeline(sessions, messages, orchestrator, config.assistant_context_window),
        escalation=escalation,
        sessions=sessions,
        messages=messages
    )


# ========== Route Handlers ==========

@router.post(
    "/session",
    response_model=CreateSessionResponse,
    summary="Start or resume a chat session",
    description="""
    Re-attach to an OPEN session when `sessionId` refers to one, otherwise
    start a new session for the authenticated user.

    Rejected with 403 when the assistant is disabled and 429 when the user's
    daily message limit is reached.
    """,
    responses={
        401: {"description": "No authenticated user"},
        403: {"description": "Assistant disabled"},
        429: {"description": "Daily message limit reached"},
    }
)
async def create_session(
    payload: CreateSessionRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: AssistantService = Depends(get_assistant_service)
):
    session = await service.start_session(
        user_id=user_id,
        session_id=payload.session_id,
        external_id=payload.external_id
    )
    return CreateSessionResponse(session_id=session.id)


@router.post(
    "/message",
    response_model=SendMessageResponse,
    summary="Send a message to the assistant",
    description="""
    Store the user's message, generate a reply with the configured providers
    (falling back across models and providers) and store the reply.

    If every provider fails, the user's message stays in the transcript and
    no assistant message is stored.

    **Example Request**:
    ```json
    {
        "sessionId": "123e4567-e89b-12d3-a456-426614174000",
        "message": "I can't connect to the VPN since this morning"
    }
    ```
    """,
    responses={
        200: {
            "description": "Assistant reply",
            "content": {"application/json": {"example": SEND_MESSAGE_RESPONSE_EXAMPLE}}
        },
        400: {"description": "sessionId or message missing"},
        404: {"description": "Unknown session"},
        409: {"description": "Session already escalated"},
        503: {"description": "No provider configured or provider credentials rejected"},
    }
)
async def send_message(
    payload: SendMessageRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: AssistantService = Depends(get_assistant_service)
):
    reply = await service.send_message(
        user_id=user_id,
        session_id=payload.session_id,
        content=payload.message
    )
    return SendMessageResponse(assistant_message=AssistantMessageInfo.from_domain(reply))


@router.post(
    "/escalate",
    response_model=EscalateResponse,
    summary="Turn the conversation into a ticket",
    description="""
    Create a support ticket from the full transcript. The title is the first
    user message (truncated), the description is the whole conversation.
    The session is closed afterwards. Only the session owner may escalate.
    """,
    responses={
        400: {"description": "sessionId missing"},
        401: {"description": "No authenticated user"},
        404: {"description": "Unknown session"},
        409: {"description": "Session already escalated"},
        422: {"description": "Session has no associated user"},
        503: {"description": "No team available"},
    }
)
async def escalate_session(
    payload: EscalateRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: AssistantService = Depends(get_assistant_service)
):
    ticket = await service.escalate(user_id, payload.session_id)
    return EscalateResponse(ticket_id=ticket.id)


@router.get(
    "/session/{session_id}/messages",
    response_model=TranscriptResponse,
    summary="Get a session transcript",
    description="Messages of a session owned by the caller, oldest first."
)
async def get_session_messages(
    session_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    service: AssistantService = Depends(get_assistant_service)
):
    session, messages = await service.get_transcript(user_id, session_id)
    return TranscriptResponse(
        session_id=session.id,
        status=session.status.value,
        created_ticket_id=session.created_ticket_id,
        messages=[TranscriptMessageInfo.from_domain(m) for m in messages]
    )
