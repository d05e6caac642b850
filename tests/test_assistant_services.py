"""
Test suite for assistant application services.

Runs the services against the SQLAlchemy repositories on an in-memory
SQLite database, with scripted providers and a mocked ticket service.
"""

import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from helpdesk_assistant.assistant.application import (
    AssistantService,
    EscalationService,
    MessagePipeline,
    PolicyGuard,
    ProviderOrchestrator,
    SessionManager,
    start_of_utc_day,
)
from helpdesk_assistant.assistant.domain import CreatedTicket, MessageRole, SessionStatus
from helpdesk_assistant.assistant.infrastructure import (
    ChatMessageModel,
    SQLAlchemyChatMessageRepository,
    SQLAlchemyChatSessionRepository,
    SQLAlchemyTeamDirectory,
    TeamModel,
    UserTeamModel,
    YAMLRuntimeConfigProvider,
)
from helpdesk_assistant.core import (
    AuthenticationRequiredException,
    FeatureDisabledException,
    NoAssociatedUserException,
    NoTeamAvailableException,
    ProviderExhaustedException,
    QuotaExceededException,
    SessionAlreadyEscalatedException,
    SessionClosedException,
    SessionNotFoundException,
    ValidationException,
)


@pytest.fixture
def messages_repo(db_session) -> SQLAlchemyChatMessageRepository:
    return SQLAlchemyChatMessageRepository(db_session)


@pytest.fixture
def sessions_repo(db_session, messages_repo) -> SQLAlchemyChatSessionRepository:
    return SQLAlchemyChatSessionRepository(db_session, messages_repo)


@pytest.fixture
def ticketing() -> AsyncMock:
    """Mock ticket service."""
    client = AsyncMock()
    client.create_ticket = AsyncMock(return_value=CreatedTicket(id="TCK-1001"))
    return client


@pytest.fixture
async def support_team(db_session) -> TeamModel:
    team = TeamModel(id="team-support", name="Service Desk")
    db_session.add(team)
    db_session.add(UserTeamModel(user_id="agent-1", team_id=team.id))
    await db_session.commit()
    return team


@pytest.fixture
def build_service(db_session, sessions_repo, messages_repo, ticketing, runtime_config):
    """Factory wiring an AssistantService around the given providers and policy file."""

    def build(providers, config_yaml: str = "assistant:\n  enabled: true\n") -> AssistantService:
        config_path: Path = runtime_config(config_yaml)
        orchestrator = ProviderOrchestrator(providers)
        return AssistantService(
            guard=PolicyGuard(YAMLRuntimeConfigProvider(config_path), messages_repo),
            session_manager=SessionManager(sessions_repo),
            pipeline=MessagePipeline(sessions_repo, messages_repo, orchestrator, context_window=10),
            escalation=EscalationService(sessions_repo, SQLAlchemyTeamDirectory(db_session), ticketing),
            sessions=sessions_repo,
            messages=messages_repo
        )

    return build


class TestSessionManager:
    """getOrCreate semantics."""

    @pytest.mark.asyncio
    async def test_creates_open_session(self, sessions_repo) -> None:
        manager = SessionManager(sessions_repo)

        # Act
        session = await manager.get_or_create(user_id="user-1", external_id="widget-42")

        # Assert
        assert session.status == SessionStatus.OPEN
        assert session.user_id == "user-1"
        assert session.external_id == "widget-42"

    @pytest.mark.asyncio
    async def test_reattaches_to_open_session(self, sessions_repo) -> None:
        manager = SessionManager(sessions_repo)
        first = await manager.get_or_create(user_id="user-1")

        # Act
        again = await manager.get_or_create(session_id=first.id, user_id="user-1")

        # Assert
        assert again.id == first.id

    @pytest.mark.asyncio
    async def test_unknown_session_id_creates_new_session(self, sessions_repo) -> None:
        manager = SessionManager(sessions_repo)

        # Act
        session = await manager.get_or_create(session_id=str(uuid.uuid4()), user_id="user-1")

        # Assert
        assert session.status == SessionStatus.OPEN

    @pytest.mark.asyncio
    async def test_escalated_session_is_not_reused(self, sessions_repo) -> None:
        manager = SessionManager(sessions_repo)
        first = await manager.get_or_create(user_id="user-1")
        await sessions_repo.mark_escalated(first.id, "TCK-1")

        # Act
        second = await manager.get_or_create(session_id=first.id, user_id="user-1")

        # Assert
        assert second.id != first.id
        assert second.is_open

    @pytest.mark.asyncio
    async def test_other_users_session_is_not_reused(self, sessions_repo) -> None:
        manager = SessionManager(sessions_repo)
        owned_by_b = await manager.get_or_create(user_id="user-b")

        # Act
        session = await manager.get_or_create(session_id=owned_by_b.id, user_id="user-a")

        # Assert
        assert session.id != owned_by_b.id
        assert session.user_id == "user-a"


class TestChatMessageRepository:
    """Canonical transcript order."""

    @pytest.mark.asyncio
    async def test_transcript_is_ascending_regardless_of_insert_order(
        self, db_session, sessions_repo, messages_repo
    ) -> None:
        session = await sessions_repo.create(user_id="user-1", external_id=None)
        base = datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)
        for content, offset in [("third", 30), ("first", 0), ("fourth", 45), ("second", 10)]:
            db_session.add(ChatMessageModel(
                id=uuid.uuid4(),
                session_id=uuid.UUID(session.id),
                role=MessageRole.USER.value,
                content=content,
                created_at=base + timedelta(seconds=offset)
            ))
        await db_session.commit()

        # Act
        transcript = await messages_repo.list_for_session(session.id)

        # Assert
        assert [m.content for m in transcript] == ["first", "second", "third", "fourth"]
        assert [m.created_at for m in transcript] == sorted(m.created_at for m in transcript)


class TestPolicyGuard:
    """Feature flag and daily quota."""

    @pytest.mark.asyncio
    async def test_disabled_assistant_is_rejected(self, messages_repo, runtime_config) -> None:
        guard = PolicyGuard(
            YAMLRuntimeConfigProvider(runtime_config("assistant:\n  enabled: false\n")),
            messages_repo
        )

        # Act / Assert
        with pytest.raises(FeatureDisabledException) as exc_info:
            await guard.enforce_assistant_access("user-1")
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_toggle_applies_to_next_call(self, messages_repo, runtime_config) -> None:
        """The flag is re-read on every check."""
        path = runtime_config("assistant:\n  enabled: true\n")
        guard = PolicyGuard(YAMLRuntimeConfigProvider(path), messages_repo)
        await guard.enforce_assistant_access("user-1")

        # Act
        runtime_config("assistant:\n  enabled: false\n")

        # Assert
        with pytest.raises(FeatureDisabledException):
            await guard.enforce_assistant_access("user-1")

    @pytest.mark.asyncio
    async def test_quota_counts_user_messages_across_sessions(
        self, sessions_repo, messages_repo, runtime_config
    ) -> None:
        first = await sessions_repo.create(user_id="user-1", external_id=None)
        second = await sessions_repo.create(user_id="user-1", external_id=None)
        for _ in range(2):
            await messages_repo.append(first.id, MessageRole.USER, "question")
            await messages_repo.append(first.id, MessageRole.ASSISTANT, "answer")
        await messages_repo.append(second.id, MessageRole.USER, "question")

        guard = PolicyGuard(
            YAMLRuntimeConfigProvider(runtime_config("assistant:\n  daily_limit: 3\n")),
            messages_repo
        )

        # Act / Assert
        with pytest.raises(QuotaExceededException) as exc_info:
            await guard.enforce_assistant_access("user-1")
        assert exc_info.value.status_code == 429
        assert exc_info.value.used_today == 3

    @pytest.mark.asyncio
    async def test_quota_is_per_user(self, sessions_repo, messages_repo, runtime_config) -> None:
        other = await sessions_repo.create(user_id="user-2", external_id=None)
        await messages_repo.append(other.id, MessageRole.USER, "question")
        guard = PolicyGuard(
            YAMLRuntimeConfigProvider(runtime_config("assistant:\n  daily_limit: 1\n")),
            messages_repo
        )

        # Act / Assert (does not raise)
        await guard.enforce_assistant_access("user-1")

    @pytest.mark.asyncio
    async def test_messages_before_utc_midnight_do_not_count(
        self, db_session, sessions_repo, messages_repo, runtime_config
    ) -> None:
        session = await sessions_repo.create(user_id="user-1", external_id=None)
        now = datetime(2026, 3, 10, 0, 30, tzinfo=timezone.utc)
        db_session.add(ChatMessageModel(
            id=uuid.uuid4(),
            session_id=uuid.UUID(session.id),
            role=MessageRole.USER.value,
            content="late last night",
            created_at=now - timedelta(hours=1)
        ))
        await db_session.commit()

        guard = PolicyGuard(
            YAMLRuntimeConfigProvider(runtime_config("assistant:\n  daily_limit: 1\n")),
            messages_repo,
            clock=lambda: now
        )

        # Act / Assert (does not raise)
        await guard.enforce_assistant_access("user-1")

    @pytest.mark.asyncio
    async def test_limit_zero_blocks_everything(self, messages_repo, runtime_config) -> None:
        guard = PolicyGuard(
            YAMLRuntimeConfigProvider(runtime_config("assistant:\n  daily_limit: 0\n")),
            messages_repo
        )

        # Act / Assert
        with pytest.raises(QuotaExceededException):
            await guard.enforce_assistant_access("user-1")

    def test_start_of_utc_day(self) -> None:
        moment = datetime(2026, 3, 10, 23, 59, tzinfo=timezone(timedelta(hours=-3)))
        assert start_of_utc_day(moment) == datetime(2026, 3, 11, 0, 0, tzinfo=timezone.utc)


class TestMessagePipeline:
    """One user turn."""

    @pytest.mark.asyncio
    async def test_reply_is_persisted_after_user_message(
        self, sessions_repo, messages_repo, scripted_provider
    ) -> None:
        provider = scripted_provider("gemini", ["m1"], {"m1": "Please restart the router."})
        pipeline = MessagePipeline(sessions_repo, messages_repo, ProviderOrchestrator([provider]))
        session = await sessions_repo.create(user_id="user-1", external_id=None)

        # Act
        reply = await pipeline.handle_user_message(session.id, "No internet")

        # Assert
        transcript = await messages_repo.list_for_session(session.id)
        assert [(m.role, m.content) for m in transcript] == [
            (MessageRole.USER, "No internet"),
            (MessageRole.ASSISTANT, "Please restart the router."),
        ]
        assert reply.id == transcript[-1].id
        assert transcript[0].created_at <= transcript[1].created_at

    @pytest.mark.asyncio
    async def test_provider_sees_the_new_user_message(
        self, sessions_repo, messages_repo, scripted_provider
    ) -> None:
        provider = scripted_provider("gemini", ["m1"])
        pipeline = MessagePipeline(sessions_repo, messages_repo, ProviderOrchestrator([provider]))
        session = await sessions_repo.create(user_id="user-1", external_id=None)

        # Act
        await pipeline.handle_user_message(session.id, "Outlook keeps crashing")

        # Assert
        assert provider.last_messages[0]["role"] == "system"
        assert provider.last_messages[-1] == {"role": "user", "content": "Outlook keeps crashing"}

    @pytest.mark.asyncio
    async def test_unknown_session_fails_and_writes_nothing(
        self, db_session, sessions_repo, messages_repo, scripted_provider
    ) -> None:
        provider = scripted_provider("gemini", ["m1"])
        pipeline = MessagePipeline(sessions_repo, messages_repo, ProviderOrchestrator([provider]))
        missing_id = str(uuid.uuid4())

        # Act / Assert
        with pytest.raises(SessionNotFoundException) as exc_info:
            await pipeline.handle_user_message(missing_id, "Hello?")

        assert exc_info.value.status_code == 404
        assert await messages_repo.list_for_session(missing_id) == []
        assert await sessions_repo.get_by_id(missing_id) is None
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_other_users_session_fails_and_writes_nothing(
        self, sessions_repo, messages_repo, scripted_provider
    ) -> None:
        provider = scripted_provider("gemini", ["m1"])
        pipeline = MessagePipeline(sessions_repo, messages_repo, ProviderOrchestrator([provider]))
        session = await sessions_repo.create(user_id="user-b", external_id=None)

        # Act / Assert
        with pytest.raises(SessionNotFoundException):
            await pipeline.handle_user_message(session.id, "injected", user_id="user-a")

        assert await messages_repo.list_for_session(session.id) == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_user_message_survives_provider_failure(
        self, sessions_repo, messages_repo, scripted_provider, provider_error
    ) -> None:
        primary = scripted_provider("gemini", ["m1"], {"m1": provider_error(503, "overloaded")})
        secondary = scripted_provider("openai", ["n1"], {"n1": provider_error(503, "unavailable")})
        pipeline = MessagePipeline(
            sessions_repo, messages_repo, ProviderOrchestrator([primary, secondary])
        )
        session = await sessions_repo.create(user_id="user-1", external_id=None)

        # Act
        with pytest.raises(ProviderExhaustedException):
            await pipeline.handle_user_message(session.id, "Printer jammed")

        # Assert
        transcript = await messages_repo.list_for_session(session.id)
        assert [(m.role, m.content) for m in transcript] == [(MessageRole.USER, "Printer jammed")]

    @pytest.mark.asyncio
    async def test_fallback_stores_exactly_one_assistant_message(
        self, sessions_repo, messages_repo, scripted_provider, provider_error
    ) -> None:
        primary = scripted_provider(
            "gemini", ["m1", "m2"],
            {"m1": provider_error(404, "not found"), "m2": provider_error(404, "not found")}
        )
        secondary = scripted_provider("openai", ["n1"], {"n1": "From fallback"})
        pipeline = MessagePipeline(
            sessions_repo, messages_repo, ProviderOrchestrator([primary, secondary])
        )
        session = await sessions_repo.create(user_id="user-1", external_id=None)

        # Act
        reply = await pipeline.handle_user_message(session.id, "Help")

        # Assert
        transcript = await messages_repo.list_for_session(session.id)
        assistant_messages = [m for m in transcript if m.role == MessageRole.ASSISTANT]
        assert len(assistant_messages) == 1
        assert reply.content == "From fallback"

    @pytest.mark.asyncio
    async def test_escalated_session_rejects_messages(
        self, sessions_repo, messages_repo, scripted_provider
    ) -> None:
        provider = scripted_provider("gemini", ["m1"])
        pipeline = MessagePipeline(sessions_repo, messages_repo, ProviderOrchestrator([provider]))
        session = await sessions_repo.create(user_id="user-1", external_id=None)
        await sessions_repo.mark_escalated(session.id, "TCK-9")

        # Act / Assert
        with pytest.raises(SessionClosedException) as exc_info:
            await pipeline.handle_user_message(session.id, "One more thing")

        assert exc_info.value.status_code == 409
        assert await messages_repo.list_for_session(session.id) == []
        assert provider.calls == []


class TestEscalationService:
    """Transcript to ticket."""

    @pytest.mark.asyncio
    async def test_escalation_creates_ticket_and_closes_session(
        self, db_session, sessions_repo, messages_repo, ticketing, support_team
    ) -> None:
        session = await sessions_repo.create(user_id="user-1", external_id=None)
        await messages_repo.append(session.id, MessageRole.USER, "Laptop won't boot")
        await messages_repo.append(session.id, MessageRole.ASSISTANT, "Hold the power button for 10s")
        service = EscalationService(sessions_repo, SQLAlchemyTeamDirectory(db_session), ticketing)

        # Act
        ticket = await service.create_ticket_from_session(session.id)

        # Assert
        assert ticket.id == "TCK-1001"
        requester_id, draft = ticketing.create_ticket.await_args.args
        assert requester_id == "user-1"
        assert draft.title == "Laptop won't boot"
        assert draft.description == (
            "User: Laptop won't boot\n\nAssistant: Hold the power button for 10s"
        )
        assert draft.team_id == "team-support"
        assert (draft.priority, draft.type) == ("MEDIUM", "INCIDENT")

        stored = await sessions_repo.get_by_id(session.id)
        assert stored.status == SessionStatus.ESCALATED
        assert stored.created_ticket_id == "TCK-1001"

    @pytest.mark.asyncio
    async def test_session_without_user_messages_gets_fallback_title(
        self, db_session, sessions_repo, ticketing, support_team
    ) -> None:
        session = await sessions_repo.create(user_id="user-1", external_id=None)
        service = EscalationService(sessions_repo, SQLAlchemyTeamDirectory(db_session), ticketing)

        # Act
        await service.create_ticket_from_session(session.id)

        # Assert
        _, draft = ticketing.create_ticket.await_args.args
        assert draft.title == "Request via virtual assistant"
        assert draft.description == ""

    @pytest.mark.asyncio
    async def test_session_without_user_is_rejected(
        self, db_session, sessions_repo, ticketing, support_team
    ) -> None:
        session = await sessions_repo.create(user_id=None, external_id="anon")
        service = EscalationService(sessions_repo, SQLAlchemyTeamDirectory(db_session), ticketing)

        # Act / Assert
        with pytest.raises(NoAssociatedUserException):
            await service.create_ticket_from_session(session.id)
        ticketing.create_ticket.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_escalation_is_rejected_with_ticket_id(
        self, db_session, sessions_repo, ticketing, support_team
    ) -> None:
        session = await sessions_repo.create(user_id="user-1", external_id=None)
        service = EscalationService(sessions_repo, SQLAlchemyTeamDirectory(db_session), ticketing)
        await service.create_ticket_from_session(session.id)

        # Act / Assert
        with pytest.raises(SessionAlreadyEscalatedException) as exc_info:
            await service.create_ticket_from_session(session.id)

        assert exc_info.value.details["ticket_id"] == "TCK-1001"
        assert ticketing.create_ticket.await_count == 1

    @pytest.mark.asyncio
    async def test_team_without_members_is_used_as_fallback(
        self, db_session, sessions_repo, ticketing
    ) -> None:
        db_session.add(TeamModel(id="team-empty", name="Empty"))
        await db_session.commit()
        session = await sessions_repo.create(user_id="user-1", external_id=None)
        service = EscalationService(sessions_repo, SQLAlchemyTeamDirectory(db_session), ticketing)

        # Act
        await service.create_ticket_from_session(session.id)

        # Assert
        _, draft = ticketing.create_ticket.await_args.args
        assert draft.team_id == "team-empty"

    @pytest.mark.asyncio
    async def test_no_team_at_all(self, db_session, sessions_repo, ticketing) -> None:
        session = await sessions_repo.create(user_id="user-1", external_id=None)
        service = EscalationService(sessions_repo, SQLAlchemyTeamDirectory(db_session), ticketing)

        # Act / Assert
        with pytest.raises(NoTeamAvailableException):
            await service.create_ticket_from_session(session.id)

        stored = await sessions_repo.get_by_id(session.id)
        assert stored.is_open

    @pytest.mark.asyncio
    async def test_ticket_failure_leaves_session_open(
        self, db_session, sessions_repo, ticketing, support_team
    ) -> None:
        ticketing.create_ticket.side_effect = RuntimeError("ticket service down")
        session = await sessions_repo.create(user_id="user-1", external_id=None)
        service = EscalationService(sessions_repo, SQLAlchemyTeamDirectory(db_session), ticketing)

        # Act
        with pytest.raises(RuntimeError):
            await service.create_ticket_from_session(session.id)

        # Assert
        stored = await sessions_repo.get_by_id(session.id)
        assert stored.is_open


class TestAssistantService:
    """Request-level validation and guard ordering."""

    @pytest.mark.asyncio
    async def test_missing_fields_are_validation_errors(self, build_service, scripted_provider) -> None:
        service = build_service([scripted_provider("gemini", ["m1"])])

        # Act / Assert
        with pytest.raises(ValidationException):
            await service.send_message("user-1", None, "hello")
        with pytest.raises(ValidationException):
            await service.send_message("user-1", "some-session", "   ")
        with pytest.raises(ValidationException):
            await service.escalate("user-1", None)

    @pytest.mark.asyncio
    async def test_missing_user_is_auth_error(self, build_service, scripted_provider) -> None:
        service = build_service([scripted_provider("gemini", ["m1"])])

        # Act / Assert
        with pytest.raises(AuthenticationRequiredException):
            await service.start_session(None)
        with pytest.raises(AuthenticationRequiredException):
            await service.send_message(None, "some-session", "hello")

    @pytest.mark.asyncio
    async def test_quota_blocks_sixth_message_before_provider_call(
        self, build_service, scripted_provider
    ) -> None:
        provider = scripted_provider("gemini", ["m1"])
        service = build_service([provider], "assistant:\n  enabled: true\n  daily_limit: 5\n")
        session = await service.start_session("user-1")
        for i in range(5):
            await service.send_message("user-1", session.id, f"question {i}")
        assert len(provider.calls) == 5

        # Act / Assert
        with pytest.raises(QuotaExceededException):
            await service.send_message("user-1", session.id, "question 6")
        assert len(provider.calls) == 5

    @pytest.mark.asyncio
    async def test_disabled_assistant_blocks_session_creation(
        self, build_service, scripted_provider
    ) -> None:
        service = build_service([scripted_provider("gemini", ["m1"])], "assistant:\n  enabled: false\n")

        # Act / Assert
        with pytest.raises(FeatureDisabledException):
            await service.start_session("user-1")

    @pytest.mark.asyncio
    async def test_transcript_is_visible_to_owner_only(self, build_service, scripted_provider) -> None:
        service = build_service([scripted_provider("gemini", ["m1"], {"m1": "Hi there"})])
        session = await service.start_session("user-1")
        await service.send_message("user-1", session.id, "Hello")

        # Act
        found, transcript = await service.get_transcript("user-1", session.id)

        # Assert
        assert found.id == session.id
        assert [m.content for m in transcript] == ["Hello", "Hi there"]
        with pytest.raises(SessionNotFoundException):
            await service.get_transcript("user-2", session.id)

    @pytest.mark.asyncio
    async def test_messages_into_another_users_session_are_rejected(
        self, build_service, messages_repo, scripted_provider
    ) -> None:
        provider = scripted_provider("gemini", ["m1"])
        service = build_service([provider], "assistant:\n  enabled: true\n  daily_limit: 1\n")
        owned_by_b = await service.start_session("user-b")

        # Act / Assert
        for i in range(3):
            with pytest.raises(SessionNotFoundException):
                await service.send_message("user-a", owned_by_b.id, f"q{i}")

        assert await messages_repo.list_for_session(owned_by_b.id) == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_escalation_requires_authenticated_owner(
        self, build_service, scripted_provider, ticketing, support_team
    ) -> None:
        service = build_service([scripted_provider("gemini", ["m1"])])
        session = await service.start_session("user-b")
        await service.send_message("user-b", session.id, "Printer jammed")

        # Act / Assert
        with pytest.raises(AuthenticationRequiredException):
            await service.escalate(None, session.id)
        with pytest.raises(SessionNotFoundException):
            await service.escalate("user-a", session.id)
        ticketing.create_ticket.assert_not_awaited()

        ticket = await service.escalate("user-b", session.id)
        assert ticket.id == "TCK-1001"
        assert ticketing.create_ticket.await_args.args[0] == "user-b"
