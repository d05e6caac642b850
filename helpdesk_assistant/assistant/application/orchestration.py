"""
Provider Orchestration
======================

Ordered fallback across generative providers and their candidate models.

Rules:
- Models of a provider are tried in list order. A recoverable failure (or an
  empty reply) moves on to the next model; a fatal one stops the provider.
- A provider exhausted by recoverable failures hands over to the next provider.
- A fatal failure on the primary provider never falls back: bad credentials or
  an exhausted billing quota are surfaced as such to the operator.
- A failure on a fallback provider ends the chain with an error naming every
  provider's last failure.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from helpdesk_assistant.core import (
    LLMException,
    NoProviderConfiguredException,
    ProviderAuthException,
    ProviderExhaustedException,
    ProviderFatalException,
    ProviderQuotaException,
)
from helpdesk_assistant.infrastructure.llm import ChatCompletionResult, ErrorClass, ILLMClient
from helpdesk_assistant.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

EMPTY_REPLY_REASON = "provider returned an empty response"


@dataclass
class ProviderAttempt:
    """Outcome of running one provider's model loop."""
    provider: str
    result: Optional[ChatCompletionResult] = None
    error_class: Optional[ErrorClass] = None
    model: Optional[str] = None
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.result is not None


class ProviderOrchestrator:
    """
    Runs the fallback chain over injected provider clients.

    Providers are passed in already constructed; an unconfigured provider is
    simply absent from the sequence.
    """

    def __init__(
        self,
        providers: Sequence[ILLMClient],
        temperature: float = 0.3,
        max_tokens: int = 1000
    ):
        self._providers = list(providers)
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def providers(self) -> List[ILLMClient]:
        return list(self._providers)

    async def generate(
        self,
        messages: List[Dict[str, str]],
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate a reply, falling back across models and providers.

        Raises:
            NoProviderConfiguredException: No provider is configured
            ProviderAuthException: Primary provider rejected its credentials
            ProviderQuotaException: Primary provider quota is exhausted
            ProviderFatalException: Primary provider failed non-recoverably
            ProviderExhaustedException: Every provider failed
        """
        if not self._providers:
            raise NoProviderConfiguredException()

        failures = []
        for provider in self._providers:
            attempt = await self._run_provider(provider, messages, operation)
            if attempt.succeeded:
                if failures:
                    logger.info(
                        "Reply generated by fallback provider",
                        extra={"provider": attempt.provider, "model": attempt.model}
                    )
                return attempt.result

            if not attempt.error_class.is_recoverable and not failures:
                raise self._fatal_error(attempt)

            failures.append((attempt.provider, attempt.reason))
            if not attempt.error_class.is_recoverable:
                break

            logger.warning(
                "Provider exhausted, trying next provider",
                extra={"provider": attempt.provider, "reason": attempt.reason[:500]}
            )

        logger.error(
            "All providers failed",
            extra={"providers": [name for name, _ in failures]}
        )
        raise ProviderExhaustedException(failures)

    async def _run_provider(
        self,
        provider: ILLMClient,
        messages: List[Dict[str, str]],
        operation: str
    ) -> ProviderAttempt:
        """Try the provider's models in order until one answers or a fatal error occurs."""
        attempt = ProviderAttempt(provider=provider.provider_name)

        for model in provider.models:
            attempt.model = model
            logger.debug("Trying model", extra={"provider": provider.provider_name, "model": model})
            try:
                result = await provider.chat_completion(
                    messages=messages,
                    model=model,
                    temperature=self._temperature,
                    max_tokens=self._max_tokens,
                    operation=operation
                )
            except Exception as e:
                error_class = provider.classify_error(e)
                attempt.error_class = error_class
                attempt.reason = str(e) or type(e).__name__
                logger.warning(
                    "Provider call failed",
                    extra={
                        "provider": provider.provider_name,
                        "model": model,
                        "error_class": error_class.value,
                        "error_type": type(e).__name__,
                        "error_message": attempt.reason[:500],
                    }
                )
                if error_class.is_recoverable:
                    continue
                return attempt

            if not result.content:
                attempt.error_class = ErrorClass.RECOVERABLE
                attempt.reason = EMPTY_REPLY_REASON
                logger.warning(
                    "Provider returned empty reply",
                    extra={"provider": provider.provider_name, "model": model}
                )
                continue

            logger.info(
                "Reply generated",
                extra={
                    "provider": provider.provider_name,
                    "model": model,
                    "latency_ms": result.latency_ms,
                    "reply_length": len(result.content),
                }
            )
            attempt.result = result
            return attempt

        return attempt

    @staticmethod
    def _fatal_error(attempt: ProviderAttempt) -> LLMException:
        if attempt.error_class is ErrorClass.FATAL_AUTH:
            return ProviderAuthException(attempt.provider, attempt.model)
        if attempt.error_class is ErrorClass.FATAL_QUOTA:
            return ProviderQuotaException(attempt.provider, attempt.model)
        return ProviderFatalException(
            attempt.provider,
            f"Error generating assistant reply: {attempt.reason}",
            attempt.model
        )
