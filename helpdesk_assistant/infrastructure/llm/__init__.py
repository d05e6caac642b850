"""
LLM Client Infrastructure
==========================

Wrappers for the generative-language providers (Google Gemini, OpenAI, Z.AI)
behind one interface.

Each client knows its ordered candidate models and exposes a pure
``classify_error`` that maps a provider exception onto an ``ErrorClass``.
The fallback loop that consumes these lives in the assistant application
layer; clients never retry on their own.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional

import openai
from google import genai
from google.genai import types as genai_types
from openai import AsyncOpenAI
from zai import ZaiClient

from helpdesk_assistant.config import Settings, ProviderName
from helpdesk_assistant.core import ConfigurationException
from helpdesk_assistant.shared.infrastructure.grafana import get_grafana_exporter
from helpdesk_assistant.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ErrorClass(str, Enum):
    """How a provider failure affects the fallback chain."""
    RECOVERABLE = "recoverable"
    FATAL_AUTH = "fatal_auth"
    FATAL_QUOTA = "fatal_quota"
    FATAL_OTHER = "fatal_other"

    @property
    def is_recoverable(self) -> bool:
        return self is ErrorClass.RECOVERABLE


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        provider: str,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        latency_ms: int = 0
    ):
        self.content = content
        self.model = model
        self.provider = provider
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


# ========== Error classification ==========

def _status_code(exc: BaseException) -> Optional[int]:
    """HTTP status carried by an SDK exception, whatever the SDK calls it."""
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def _error_code(exc: BaseException) -> str:
    """Symbolic error code (``model_not_found``, ``NOT_FOUND``...) if any."""
    for attr in ("code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, str):
            return value
    return ""


def classify_status_error(exc: BaseException) -> ErrorClass:
    """
    Status-code based classification shared by OpenAI-compatible APIs.

    Rate limiting on one model is recoverable (the next model may have its
    own limit); an exhausted account quota is not.
    """
    status = _status_code(exc)
    code = _error_code(exc).lower()
    message = str(exc).lower()

    if code == "insufficient_quota" or "exceeded your current quota" in message \
            or "insufficient balance" in message:
        return ErrorClass.FATAL_QUOTA
    if status == 401 or code in ("invalid_api_key", "unauthorized"):
        return ErrorClass.FATAL_AUTH
    if status in (403, 404, 429, 502, 503) or code == "model_not_found":
        return ErrorClass.RECOVERABLE
    if "does not have access" in message or "not found" in message:
        return ErrorClass.RECOVERABLE
    return ErrorClass.FATAL_OTHER


def classify_openai_error(exc: BaseException) -> ErrorClass:
    """Classify an exception raised by the OpenAI SDK."""
    if isinstance(exc, openai.AuthenticationError):
        return ErrorClass.FATAL_AUTH
    if isinstance(exc, openai.APIConnectionError):
        # Includes APITimeoutError
        return ErrorClass.RECOVERABLE
    return classify_status_error(exc)


def classify_gemini_error(exc: BaseException) -> ErrorClass:
    """
    Classify an exception raised by the google-genai SDK.

    ``APIError.code`` is the HTTP status and ``APIError.status`` the
    canonical gRPC status name.
    """
    status = _status_code(exc)
    status_name = str(getattr(exc, "status", "") or "").upper()
    message = str(exc).lower()

    if status in (401, 403) or status_name in ("UNAUTHENTICATED", "PERMISSION_DENIED") \
            or "api key not valid" in message or "api_key_invalid" in message:
        return ErrorClass.FATAL_AUTH
    if status in (404, 429, 503) or status_name in ("NOT_FOUND", "UNAVAILABLE", "RESOURCE_EXHAUSTED"):
        return ErrorClass.RECOVERABLE
    if "not found" in message:
        return ErrorClass.RECOVERABLE
    return ErrorClass.FATAL_OTHER


# ========== Clients ==========

class ILLMClient(ABC):
    """
    Interface for a generative provider.

    ``chat_completion`` times the call and exports metrics; subclasses
    implement ``_complete`` for the actual SDK request.
    """

    provider_name: str = "unknown"

    def __init__(self, models: List[str]):
        if not models:
            raise ConfigurationException(f"{self.provider_name} has no candidate models configured")
        self._models = list(models)

    @property
    def models(self) -> List[str]:
        """Candidate models in the order they should be tried."""
        return list(self._models)

    @abstractmethod
    def classify_error(self, exc: BaseException) -> ErrorClass:
        """Map a provider exception to its fallback class. Must not raise."""

    @abstractmethod
    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int,
        top_p: Optional[float],
        top_k: Optional[int],
    ) -> ChatCompletionResult:
        """Perform a single SDK call against one model."""

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        top_p: Optional[float] = None,
        top_k: Optional[int] = None,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate a chat completion with one model.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to call (defaults to the first candidate)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            top_p: Nucleus sampling, when the provider supports it
            top_k: Top-k sampling, when the provider supports it
            operation: Operation type for metrics (chat_completion, rag)

        Raises:
            The SDK's own exception; callers classify it with classify_error.
        """
        model = model or self._models[0]
        start_time = time.perf_counter()
        try:
            result = await self._complete(messages, model, temperature, max_tokens, top_p, top_k)
        except Exception as e:
            await self._export_metrics(
                model, operation, self.classify_error(e).value,
                int((time.perf_counter() - start_time) * 1000)
            )
            raise

        result.latency_ms = int((time.perf_counter() - start_time) * 1000)
        await self._export_metrics(
            model, operation, "success", result.latency_ms,
            result.prompt_tokens, result.completion_tokens
        )
        return result

    async def _export_metrics(
        self,
        model: str,
        operation: str,
        outcome: str,
        latency_ms: int,
        prompt_tokens: int = 0,
        completion_tokens: int = 0
    ) -> None:
        exporter = get_grafana_exporter()
        if exporter and exporter.is_enabled():
            await exporter.export_llm_metrics(
                provider=self.provider_name,
                model=model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                latency_ms=latency_ms,
                operation=operation,
                outcome=outcome
            )


class GeminiLLMClient(ILLMClient):
    """
    Google Gemini client (gemini-2.5-flash, gemini-1.5-pro, ...).

    System messages become the system instruction; assistant turns use
    Gemini's ``model`` role.
    """

    provider_name = ProviderName.GEMINI

    def __init__(self, api_key: str, models: List[str]):
        if not api_key:
            raise ConfigurationException("Gemini API key not configured")
        super().__init__(models)
        self._client = genai.Client(api_key=api_key)

    def classify_error(self, exc: BaseException) -> ErrorClass:
        return classify_gemini_error(exc)

    @staticmethod
    def to_contents(messages: List[Dict[str, str]]) -> tuple[Optional[str], List[genai_types.Content]]:
        """Split provider-neutral messages into a system instruction and Gemini contents."""
        system_parts: List[str] = []
        contents: List[genai_types.Content] = []
        for message in messages:
            content = (message.get("content") or "").strip()
            if not content:
                continue
            role = message.get("role", "user")
            if role == "system":
                system_parts.append(content)
                continue
            contents.append(
                genai_types.Content(
                    role="model" if role == "assistant" else "user",
                    parts=[genai_types.Part(text=content)]
                )
            )
        system_instruction = "\n\n".join(system_parts) if system_parts else None
        return system_instruction, contents

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int,
        top_p: Optional[float],
        top_k: Optional[int],
    ) -> ChatCompletionResult:
        system_instruction, contents = self.to_contents(messages)
        config = genai_types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            top_p=top_p,
            top_k=top_k,
            max_output_tokens=max_tokens,
        )
        response = await self._client.aio.models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )

        usage = response.usage_metadata
        return ChatCompletionResult(
            content=(response.text or "").strip(),
            model=model,
            provider=self.provider_name,
            prompt_tokens=(usage.prompt_token_count or 0) if usage else 0,
            completion_tokens=(usage.candidates_token_count or 0) if usage else 0,
        )


class OpenAILLMClient(ILLMClient):
    """OpenAI client for GPT models."""

    provider_name = ProviderName.OPENAI

    def __init__(self, api_key: str, models: List[str]):
        if not api_key:
            raise ConfigurationException("OpenAI API key not configured")
        super().__init__(models)
        self._client = AsyncOpenAI(api_key=api_key.strip())

    def classify_error(self, exc: BaseException) -> ErrorClass:
        return classify_openai_error(exc)

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int,
        top_p: Optional[float],
        top_k: Optional[int],
    ) -> ChatCompletionResult:
        kwargs = {"top_p": top_p} if top_p is not None else {}
        response = await self._client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs
        )

        content = response.choices[0].message.content if response.choices else None
        usage = response.usage
        return ChatCompletionResult(
            content=(content or "").strip(),
            model=model,
            provider=self.provider_name,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
        )


class ZAILLMClient(ILLMClient):
    """
    Z.AI SDK client for GLM models.

    The SDK is synchronous, so calls run in a worker thread.
    """

    provider_name = ProviderName.ZAI

    def __init__(self, api_key: str, models: List[str]):
        if not api_key:
            raise ConfigurationException("Z.AI API key not configured")
        super().__init__(models)
        self._client = ZaiClient(api_key=api_key)

    def classify_error(self, exc: BaseException) -> ErrorClass:
        return classify_status_error(exc)

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int,
        top_p: Optional[float],
        top_k: Optional[int],
    ) -> ChatCompletionResult:
        kwargs = {"top_p": top_p} if top_p is not None else {}
        response = await asyncio.to_thread(
            self._client.chat.completions.create,
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs
        )

        content = response.choices[0].message.content if response.choices else None
        usage = getattr(response, "usage", None)
        return ChatCompletionResult(
            content=(content or "").strip(),
            model=model,
            provider=self.provider_name,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs.

    Returns predictable responses without calling external APIs.
    """

    provider_name = ProviderName.MOCK

    def __init__(self, models: Optional[List[str]] = None):
        super().__init__(models or ["mock-model"])

    def classify_error(self, exc: BaseException) -> ErrorClass:
        return ErrorClass.FATAL_OTHER

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int,
        top_p: Optional[float],
        top_k: Optional[int],
    ) -> ChatCompletionResult:
        last_user = next(
            (m.get("content", "") for m in reversed(messages) if m.get("role") == "user"),
            ""
        )
        if "KNOWLEDGE BASE" in last_user:
            content = (
                "Hi! Sorry you're running into this. Based on our knowledge base, "
                "first restart the application, then clear its cache and sign in again."
            )
        else:
            content = (
                "Thanks for reaching out. Could you share the exact error message "
                "and when it started? If this blocks your work I can open a ticket for you."
            )
        return ChatCompletionResult(
            content=content,
            model=model,
            provider=self.provider_name,
            prompt_tokens=sum(len(m.get("content", "")) for m in messages) // 4,
            completion_tokens=len(content.split()),
        )


def build_provider_clients(config: Settings) -> List[ILLMClient]:
    """
    Construct the configured providers in fallback order.

    Providers without credentials are left out rather than represented by
    placeholder objects. With ``mock_llm`` the mock client is the only provider.
    """
    if config.mock_llm:
        return [MockLLMClient()]

    factories = {
        ProviderName.GEMINI: lambda: GeminiLLMClient(config.gemini_api_key, config.gemini_models),
        ProviderName.OPENAI: lambda: OpenAILLMClient(config.openai_api_key, config.openai_models),
        ProviderName.ZAI: lambda: ZAILLMClient(config.zai_api_key, config.zai_models),
    }
    credentials = {
        ProviderName.GEMINI: config.gemini_api_key,
        ProviderName.OPENAI: config.openai_api_key,
        ProviderName.ZAI: config.zai_api_key,
    }

    clients: List[ILLMClient] = []
    for name in config.llm_provider_order:
        api_key = (credentials.get(name) or "").strip()
        if not api_key:
            logger.warning("Provider not configured", extra={"provider": name})
            continue
        clients.append(factories[name]())
        logger.info("Provider client initialized", extra={"provider": name})
    return clients


def find_provider(clients: List[ILLMClient], name: str) -> Optional[ILLMClient]:
    """Return the configured client for a provider, if present."""
    return next((client for client in clients if client.provider_name == name), None)
