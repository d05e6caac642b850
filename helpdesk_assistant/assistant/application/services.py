"""
Assistant Application Services
==============================

Application services orchestrate the assistant's business rules and
coordinate between domain entities, repositories and external collaborators.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from helpdesk_assistant.assistant.application.orchestration import ProviderOrchestrator
from helpdesk_assistant.assistant.domain import (
    AssistantPolicy,
    ChatMessage,
    ChatSession,
    CreatedTicket,
    MessageRole,
    SupportPromptBuilder,
    Team,
    TicketDraft,
    TranscriptRenderer,
)
from helpdesk_assistant.core import (
    AuthenticationRequiredException,
    FeatureDisabledException,
    LLMException,
    NoAssociatedUserException,
    NoTeamAvailableException,
    QuotaExceededException,
    SessionAlreadyEscalatedException,
    SessionClosedException,
    SessionNotFoundException,
    ValidationException,
)
from helpdesk_assistant.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IChatSessionRepository(ABC):
    """Interface for chat session data access."""

    @abstractmethod
    async def get_by_id(self, session_id: str) -> Optional[ChatSession]:
        """Get a session without its transcript."""

    @abstractmethod
    async def get_with_transcript(self, session_id: str) -> Optional[ChatSession]:
        """Get a session with its messages in ascending created_at order."""

    @abstractmethod
    async def create(self, user_id: Optional[str], external_id: Optional[str]) -> ChatSession:
        """Durably create an OPEN session."""

    @abstractmethod
    async def mark_escalated(self, session_id: str, ticket_id: str) -> ChatSession:
        """Durably move a session to ESCALATED with its ticket reference."""


class IChatMessageRepository(ABC):
    """Interface for the append-only message log."""

    @abstractmethod
    async def append(self, session_id: str, role: MessageRole, content: str) -> ChatMessage:
        """Durably append a message to a session."""

    @abstractmethod
    async def list_for_session(self, session_id: str) -> List[ChatMessage]:
        """Transcript in ascending created_at order."""

    @abstractmethod
    async def count_user_messages_since(self, user_id: str, since: datetime) -> int:
        """Count USER messages across all of a user's sessions since a moment."""


class IRuntimeConfigProvider(ABC):
    """Interface for administrator-managed runtime configuration."""

    @abstractmethod
    async def get_assistant_policy(self) -> AssistantPolicy:
        """Current assistant policy. Must reflect the latest administrator setting."""


class ITeamDirectory(ABC):
    """Interface for team lookup."""

    @abstractmethod
    async def find_team_with_members(self) -> Optional[Team]:
        """Any team with at least one member."""

    @abstractmethod
    async def find_any_team(self) -> Optional[Team]:
        """Any team at all."""


class ITicketingClient(ABC):
    """Interface for the ticket service."""

    @abstractmethod
    async def create_ticket(self, requester_id: str, draft: TicketDraft) -> CreatedTicket:
        """Create a ticket on behalf of a requester."""


def start_of_utc_day(moment: datetime) -> datetime:
    """00:00 UTC of the day containing ``moment``."""
    return moment.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ========== Application Services ==========

class SessionManager:
    """Idempotent session lookup and creation."""

    def __init__(self, sessions: IChatSessionRepository):
        self._sessions = sessions

    async def get_or_create(
        self,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        external_id: Optional[str] = None
    ) -> ChatSession:
        """
        Re-attach to an OPEN session or start a new one.

        An unknown or escalated ``session_id``, or one owned by another
        user, starts a new session.
        """
        if session_id:
            existing = await self._sessions.get_by_id(session_id)
            if existing is not None and existing.is_open and existing.belongs_to(user_id):
                return existing

        session = await self._sessions.create(user_id=user_id, external_id=external_id)
        logger.info(
            "Chat session created",
            extra={
                "session_id": session.id,
                "user_id": user_id,
                "has_external_id": external_id is not None,
                "replaced_session_id": session_id,
            }
        )
        return session


class PolicyGuard:
    """
    Feature-flag and daily-quota enforcement.

    Stateless: the policy and the usage count are re-read on every call.
    """

    def __init__(
        self,
        config_provider: IRuntimeConfigProvider,
        messages: IChatMessageRepository,
        clock: Callable[[], datetime] = utc_now
    ):
        self._config = config_provider
        self._messages = messages
        self._clock = clock

    async def enforce_assistant_access(self, user_id: str) -> None:
        """
        Raises:
            FeatureDisabledException: Assistant disabled by the administrator
            QuotaExceededException: Daily USER message limit reached
        """
        policy = await self._config.get_assistant_policy()

        if not policy.enabled:
            logger.info("Assistant access denied: disabled", extra={"user_id": user_id})
            raise FeatureDisabledException()

        if policy.has_quota:
            since = start_of_utc_day(self._clock())
            used_today = await self._messages.count_user_messages_since(user_id, since)
            if used_today >= policy.daily_limit:
                logger.info(
                    "Assistant access denied: daily quota",
                    extra={"user_id": user_id, "used_today": used_today, "daily_limit": policy.daily_limit}
                )
                raise QuotaExceededException(policy.daily_limit, used_today)


class MessagePipeline:
    """
    Handles one user turn.

    The user message is persisted before generation and is kept even when
    every provider fails; no assistant message is stored in that case.
    """

    def __init__(
        self,
        sessions: IChatSessionRepository,
        messages: IChatMessageRepository,
        orchestrator: ProviderOrchestrator,
        context_window: int = 10
    ):
        self._sessions = sessions
        self._messages = messages
        self._orchestrator = orchestrator
        self._context_window = context_window

    async def handle_user_message(
        self,
        session_id: str,
        content: str,
        user_id: Optional[str] = None
    ) -> ChatMessage:
        """
        Append the user message, generate a reply and append it.

        When ``user_id`` is given, sessions of other users are reported as
        unknown.

        Raises:
            SessionNotFoundException: Unknown session (nothing is written)
            SessionClosedException: Session already escalated (nothing is written)
            LLMException: Generation failed (user message stays persisted)
        """
        session = await self._sessions.get_by_id(session_id)
        if session is None:
            raise SessionNotFoundException(session_id)
        if user_id is not None and not session.belongs_to(user_id):
            logger.warning(
                "Message rejected: session owned by another user",
                extra={"session_id": session_id, "user_id": user_id}
            )
            raise SessionNotFoundException(session_id)
        if session.is_escalated:
            raise SessionClosedException(session_id, session.created_ticket_id)

        await self._messages.append(session_id, MessageRole.USER, content)

        transcript = await self._messages.list_for_session(session_id)
        messages = SupportPromptBuilder.build_messages(transcript, self._context_window)
        logger.debug(
            "Context window built",
            extra={"session_id": session_id, "message_count": len(messages), "content_length": len(content)}
        )

        try:
            result = await self._orchestrator.generate(messages)
        except LLMException as e:
            logger.error(
                "Assistant reply failed, user message kept",
                extra={"session_id": session_id, "error_type": type(e).__name__, "error": e.message}
            )
            raise

        return await self._messages.append(session_id, MessageRole.ASSISTANT, result.content)


class EscalationService:
    """Turns a chat transcript into a support ticket."""

    def __init__(
        self,
        sessions: IChatSessionRepository,
        teams: ITeamDirectory,
        ticketing: ITicketingClient,
        priority: str = "MEDIUM",
        ticket_type: str = "INCIDENT"
    ):
        self._sessions = sessions
        self._teams = teams
        self._ticketing = ticketing
        self._priority = priority
        self._ticket_type = ticket_type

    async def select_team(self) -> Team:
        """Prefer a team with members, else any team."""
        team = await self._teams.find_team_with_members()
        if team is None:
            team = await self._teams.find_any_team()
        if team is None:
            raise NoTeamAvailableException()
        return team

    async def build_draft(self, session: ChatSession) -> TicketDraft:
        team = await self.select_team()
        return TicketDraft(
            title=TranscriptRenderer.title(session),
            description=TranscriptRenderer.description(session),
            team_id=team.id,
            priority=self._priority,
            type=self._ticket_type,
        )

    async def create_ticket_from_session(
        self,
        session_id: str,
        requested_by: Optional[str] = None
    ) -> CreatedTicket:
        """
        Create a ticket from the full transcript and close the session.

        When ``requested_by`` is given, only the session's owner may escalate;
        anyone else sees the session as unknown.

        Raises:
            SessionNotFoundException: Unknown session
            SessionAlreadyEscalatedException: Session already has a ticket
            NoAssociatedUserException: Session has no requester
            NoTeamAvailableException: Team directory is empty
        """
        session = await self._sessions.get_with_transcript(session_id)
        if session is None:
            raise SessionNotFoundException(session_id)
        if not session.user_id:
            raise NoAssociatedUserException(session_id)
        if requested_by is not None and not session.belongs_to(requested_by):
            raise SessionNotFoundException(session_id)
        if session.is_escalated:
            raise SessionAlreadyEscalatedException(session_id, session.created_ticket_id)

        draft = await self.build_draft(session)

        with log_latency(logger, "ticket_creation", session_id=session_id, team_id=draft.team_id):
            ticket = await self._ticketing.create_ticket(session.user_id, draft)

        await self._sessions.mark_escalated(session_id, ticket.id)
        logger.info(
            "Chat session escalated",
            extra={"session_id": session_id, "ticket_id": ticket.id, "message_count": len(session.messages)}
        )
        return ticket


class AssistantService:
    """
    Entry point for the three assistant requests.

    Input validation and the policy guard run before anything touches a
    provider.
    """

    def __init__(
        self,
        guard: PolicyGuard,
        session_manager: SessionManager,
        pipeline: MessagePipeline,
        escalation: EscalationService,
        sessions: IChatSessionRepository,
        messages: IChatMessageRepository
    ):
        self._guard = guard
        self._session_manager = session_manager
        self._pipeline = pipeline
        self._escalation = escalation
        self._sessions = sessions
        self._messages = messages

    async def start_session(
        self,
        user_id: Optional[str],
        session_id: Optional[str] = None,
        external_id: Optional[str] = None
    ) -> ChatSession:
        if not user_id:
            raise AuthenticationRequiredException()
        await self._guard.enforce_assistant_access(user_id)
        return await self._session_manager.get_or_create(
            session_id=session_id, user_id=user_id, external_id=external_id
        )

    async def send_message(
        self,
        user_id: Optional[str],
        session_id: Optional[str],
        content: Optional[str]
    ) -> ChatMessage:
        if not session_id or not content or not content.strip():
            raise ValidationException("sessionId and message are required")
        if not user_id:
            raise AuthenticationRequiredException()
        await self._guard.enforce_assistant_access(user_id)
        return await self._pipeline.handle_user_message(session_id, content, user_id=user_id)

    async def escalate(self, user_id: Optional[str], session_id: Optional[str]) -> CreatedTicket:
        if not session_id:
            raise ValidationException("sessionId is required")
        if not user_id:
            raise AuthenticationRequiredException()
        return await self._escalation.create_ticket_from_session(session_id, requested_by=user_id)

    async def get_transcript(
        self,
        user_id: Optional[str],
        session_id: str
    ) -> Tuple[ChatSession, List[ChatMessage]]:
        """Session and transcript, for the session's owner only."""
        if not user_id:
            raise AuthenticationRequiredException()
        session = await self._sessions.get_by_id(session_id)
        if session is None or not session.belongs_to(user_id):
            raise SessionNotFoundException(session_id)
        return session, await self._messages.list_for_session(session_id)
