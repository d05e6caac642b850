"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries. Each class carries the HTTP status
the API layer answers with.
"""

from typing import Optional, List, Tuple


class ApplicationException(Exception):
    """Base exception for all application errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""

    status_code = 409


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class StoreUnavailableException(RepositoryException):
    """The session store could not be reached."""

    status_code = 503

    def __init__(self, message: str = "Session store not available", details: Optional[dict] = None):
        super().__init__(message, details)


class ValidationException(ApplicationException):
    """Exception for validation errors."""

    status_code = 400


class AuthenticationRequiredException(ApplicationException):
    """No authenticated user on the request."""

    status_code = 401

    def __init__(self, message: str = "Authentication required", details: Optional[dict] = None):
        super().__init__(message, details)


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    status_code = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


# ========== Policy ==========

class PolicyException(ApplicationException):
    """Base exception for assistant access policy rejections."""

    status_code = 403


class FeatureDisabledException(PolicyException):
    """The assistant was disabled by the platform administrator."""

    status_code = 403

    def __init__(self, details: Optional[dict] = None):
        super().__init__("Virtual assistant disabled by the platform administrator", details)


class QuotaExceededException(PolicyException):
    """The user reached the daily assistant message limit."""

    status_code = 429

    def __init__(self, daily_limit: int, used_today: int):
        self.daily_limit = daily_limit
        self.used_today = used_today
        super().__init__(
            f"Daily assistant limit reached ({daily_limit} messages per day)",
            {"daily_limit": daily_limit, "used_today": used_today}
        )


# ========== Sessions & escalation ==========

class SessionNotFoundException(ResourceNotFoundException):
    """Chat session does not exist."""

    def __init__(self, session_id: str):
        super().__init__("Chat session", session_id)


class SessionClosedException(DomainException):
    """Chat session is escalated and accepts no further messages."""

    def __init__(self, session_id: str, ticket_id: Optional[str] = None):
        super().__init__(
            f"Chat session '{session_id}' was escalated and is closed",
            {"session_id": session_id, "ticket_id": ticket_id}
        )


class SessionAlreadyEscalatedException(DomainException):
    """Chat session was already turned into a ticket."""

    def __init__(self, session_id: str, ticket_id: Optional[str]):
        self.ticket_id = ticket_id
        super().__init__(
            f"Chat session '{session_id}' was already escalated",
            {"session_id": session_id, "ticket_id": ticket_id}
        )


class NoAssociatedUserException(DomainException):
    """Escalation requires a known requester."""

    status_code = 422

    def __init__(self, session_id: str):
        super().__init__(
            "Cannot create a ticket from a session without an associated user",
            {"session_id": session_id}
        )


class NoTeamAvailableException(ApplicationException):
    """Team directory is empty."""

    status_code = 503

    def __init__(self):
        super().__init__("No team available to receive the ticket")


# ========== External services ==========

class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    status_code = 502

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class TicketingException(ExternalServiceException):
    """Exception for ticket service failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Ticket Service", message, details)


class LLMException(ExternalServiceException):
    """Exception for LLM API failures."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class NoProviderConfiguredException(LLMException):
    """No generative provider has credentials configured."""

    status_code = 503

    def __init__(self):
        super().__init__(
            "Virtual assistant is not configured. Set GEMINI_API_KEY, OPENAI_API_KEY or ZAI_API_KEY."
        )


class ProviderFatalException(LLMException):
    """A provider failed in a way that retrying elsewhere will not fix."""

    def __init__(
        self,
        provider: str,
        message: str,
        model: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.provider = provider
        self.model = model
        super().__init__(message, {"provider": provider, "model": model, **(details or {})})


class ProviderAuthException(ProviderFatalException):
    """Provider rejected the configured credentials."""

    status_code = 503

    def __init__(self, provider: str, model: Optional[str] = None):
        super().__init__(
            provider,
            f"Invalid {provider} API key. Check the configuration.",
            model
        )


class ProviderQuotaException(ProviderFatalException):
    """Provider quota or billing limit exhausted."""

    status_code = 503

    def __init__(self, provider: str, model: Optional[str] = None):
        super().__init__(
            provider,
            f"{provider} request limit exceeded. Try again in a few moments.",
            model
        )


class ProviderExhaustedException(LLMException):
    """Every configured provider and model failed with recoverable errors."""

    def __init__(self, failures: List[Tuple[str, str]]):
        self.failures = failures
        summary = ". ".join(f"{provider}: {reason[:100]}" for provider, reason in failures)
        super().__init__(
            f"All assistant providers failed. {summary}",
            {"failures": [{"provider": p, "reason": r} for p, r in failures]}
        )
