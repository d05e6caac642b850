"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from helpdesk_assistant.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    StoreUnavailableException,
    ValidationException,
    AuthenticationRequiredException,
    ResourceNotFoundException,
    ConfigurationException,
    PolicyException,
    FeatureDisabledException,
    QuotaExceededException,
    SessionNotFoundException,
    SessionClosedException,
    SessionAlreadyEscalatedException,
    NoAssociatedUserException,
    NoTeamAvailableException,
    ExternalServiceException,
    TicketingException,
    LLMException,
    NoProviderConfiguredException,
    ProviderFatalException,
    ProviderAuthException,
    ProviderQuotaException,
    ProviderExhaustedException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "StoreUnavailableException",
    "ValidationException",
    "AuthenticationRequiredException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "PolicyException",
    "FeatureDisabledException",
    "QuotaExceededException",
    "SessionNotFoundException",
    "SessionClosedException",
    "SessionAlreadyEscalatedException",
    "NoAssociatedUserException",
    "NoTeamAvailableException",
    "ExternalServiceException",
    "TicketingException",
    "LLMException",
    "NoProviderConfiguredException",
    "ProviderFatalException",
    "ProviderAuthException",
    "ProviderQuotaException",
    "ProviderExhaustedException",
]
