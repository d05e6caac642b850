"""
Assistant Infrastructure Repositories
=====================================

SQLAlchemy implementations of assistant repositories.

Writes are committed as soon as they are made: a user message must stay
stored even if the request fails later on.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk_assistant.assistant.application.services import (
    IChatMessageRepository,
    IChatSessionRepository,
    ITeamDirectory,
)
from helpdesk_assistant.assistant.domain import (
    ChatMessage,
    ChatSession,
    MessageRole,
    SessionStatus,
    Team,
)
from helpdesk_assistant.assistant.infrastructure.models import (
    ChatMessageModel,
    ChatSessionModel,
    TeamModel,
    UserTeamModel,
)
from helpdesk_assistant.core import SessionNotFoundException
from helpdesk_assistant.infrastructure.database import translate_store_errors


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _message_to_domain(model: ChatMessageModel) -> ChatMessage:
    return ChatMessage(
        id=str(model.id),
        session_id=str(model.session_id),
        role=MessageRole(model.role),
        content=model.content,
        created_at=_as_utc(model.created_at)
    )


def _session_to_domain(
    model: ChatSessionModel,
    messages: Optional[List[ChatMessage]] = None
) -> ChatSession:
    return ChatSession(
        id=str(model.id),
        status=SessionStatus(model.status),
        user_id=model.user_id,
        external_id=model.external_id,
        created_ticket_id=model.created_ticket_id,
        created_at=_as_utc(model.created_at),
        messages=messages or []
    )


class SQLAlchemyChatMessageRepository(IChatMessageRepository):
    """SQLAlchemy implementation of the append-only message log."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @translate_store_errors
    async def append(self, session_id: str, role: MessageRole, content: str) -> ChatMessage:
        """Insert and commit one message."""
        session_uuid = _parse_uuid(session_id)
        if session_uuid is None:
            raise SessionNotFoundException(session_id)

        model = ChatMessageModel(
            id=uuid4(),
            session_id=session_uuid,
            role=role.value,
            content=content,
            created_at=datetime.now(timezone.utc)
        )
        self._session.add(model)
        await self._session.commit()

        return _message_to_domain(model)

    @translate_store_errors
    async def list_for_session(self, session_id: str) -> List[ChatMessage]:
        """Transcript ordered by created_at ascending."""
        session_uuid = _parse_uuid(session_id)
        if session_uuid is None:
            return []

        stmt = (
            select(ChatMessageModel)
            .where(ChatMessageModel.session_id == session_uuid)
            .order_by(ChatMessageModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [_message_to_domain(m) for m in result.scalars().all()]

    @translate_store_errors
    async def count_user_messages_since(self, user_id: str, since: datetime) -> int:
        """USER messages across every session owned by ``user_id``."""
        stmt = (
            select(func.count(ChatMessageModel.id))
            .join(ChatSessionModel, ChatSessionModel.id == ChatMessageModel.session_id)
            .where(
                ChatSessionModel.user_id == user_id,
                ChatMessageModel.role == MessageRole.USER.value,
                ChatMessageModel.created_at >= since,
            )
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()


class SQLAlchemyChatSessionRepository(IChatSessionRepository):
    """SQLAlchemy implementation for chat sessions."""

    def __init__(self, session: AsyncSession, messages: Optional[IChatMessageRepository] = None):
        self._session = session
        self._messages = messages or SQLAlchemyChatMessageRepository(session)

    async def _get_model(self, session_id: str) -> Optional[ChatSessionModel]:
        session_uuid = _parse_uuid(session_id)
        if session_uuid is None:
            return None

        stmt = select(ChatSessionModel).where(ChatSessionModel.id == session_uuid)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    @translate_store_errors
    async def get_by_id(self, session_id: str) -> Optional[ChatSession]:
        model = await self._get_model(session_id)
        return _session_to_domain(model) if model else None

    @translate_store_errors
    async def get_with_transcript(self, session_id: str) -> Optional[ChatSession]:
        model = await self._get_model(session_id)
        if model is None:
            return None
        messages = await self._messages.list_for_session(session_id)
        return _session_to_domain(model, messages)

    @translate_store_errors
    async def create(self, user_id: Optional[str], external_id: Optional[str]) -> ChatSession:
        """Insert and commit an OPEN session."""
        model = ChatSessionModel(
            id=uuid4(),
            user_id=user_id,
            external_id=external_id,
            status=SessionStatus.OPEN.value,
            created_at=datetime.now(timezone.utc)
        )
        self._session.add(model)
        await self._session.commit()

        return _session_to_domain(model)

    @translate_store_errors
    async def mark_escalated(self, session_id: str, ticket_id: str) -> ChatSession:
        """One-way OPEN -> ESCALATED transition."""
        model = await self._get_model(session_id)
        if model is None:
            raise SessionNotFoundException(session_id)

        model.status = SessionStatus.ESCALATED.value
        model.created_ticket_id = ticket_id
        model.updated_at = datetime.now(timezone.utc)
        await self._session.commit()

        return _session_to_domain(model)


class SQLAlchemyTeamDirectory(ITeamDirectory):
    """Reads teams and memberships from the shared store."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @translate_store_errors
    async def find_team_with_members(self) -> Optional[Team]:
        stmt = (
            select(TeamModel)
            .join(UserTeamModel, UserTeamModel.team_id == TeamModel.id)
            .order_by(UserTeamModel.created_at.asc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalars().first()
        return Team(id=model.id, name=model.name) if model else None

    @translate_store_errors
    async def find_any_team(self) -> Optional[Team]:
        stmt = select(TeamModel).order_by(TeamModel.created_at.asc()).limit(1)
        result = await self._session.execute(stmt)
        model = result.scalars().first()
        return Team(id=model.id, name=model.name) if model else None
