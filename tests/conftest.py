"""
Shared test fixtures and configuration for the entire test suite.

Provides: in-memory SQLite async database, scripted provider clients,
runtime config files.
"""

from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from helpdesk_assistant.infrastructure.database import Base
from helpdesk_assistant.infrastructure.llm import (
    ChatCompletionResult,
    ErrorClass,
    ILLMClient,
    classify_status_error,
)

# Register every table on Base.metadata
import helpdesk_assistant.assistant.infrastructure.models  # noqa: F401
import helpdesk_assistant.knowledge.infrastructure.models  # noqa: F401


class ProviderError(Exception):
    """Provider failure carrying an HTTP status and an optional error code."""

    def __init__(self, status_code: Optional[int], message: str = "", code: Optional[str] = None):
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code
        self.code = code


Outcome = Union[str, BaseException]


class ScriptedLLMClient(ILLMClient):
    """
    Provider whose per-model outcomes are fixed in advance.

    A string outcome is returned as the reply; an exception is raised.
    Models without a script reply "ok".
    """

    def __init__(self, name: str, models: List[str], script: Optional[Dict[str, Outcome]] = None):
        self.provider_name = name
        super().__init__(models)
        self.script = script or {}
        self.calls: List[str] = []
        self.last_messages: List[Dict[str, str]] = []
        self.last_kwargs: Dict[str, object] = {}

    def classify_error(self, exc: BaseException) -> ErrorClass:
        return classify_status_error(exc)

    async def _complete(self, messages, model, temperature, max_tokens, top_p, top_k):
        self.calls.append(model)
        self.last_messages = messages
        self.last_kwargs = {
            "temperature": temperature,
            "max_tokens": max_tokens,
            "top_p": top_p,
            "top_k": top_k,
        }
        outcome = self.script.get(model, "ok")
        if isinstance(outcome, BaseException):
            raise outcome
        return ChatCompletionResult(content=outcome, model=model, provider=self.provider_name)


@pytest.fixture
def provider_error():
    """ProviderError class for building scripted failures."""
    return ProviderError


@pytest.fixture
def scripted_provider():
    """Factory for ScriptedLLMClient instances."""
    return ScriptedLLMClient


@pytest.fixture
async def db_session():
    """
    Create in-memory SQLite async database for testing.

    Yields:
        AsyncSession: Test database session with all tables created
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def runtime_config(tmp_path: Path):
    """
    Writes a runtime config file and returns its path.

    Call with the YAML text to (re)write the file.
    """
    path = tmp_path / "runtime_config.yaml"

    def write(content: str) -> Path:
        path.write_text(content)
        return path

    return write
