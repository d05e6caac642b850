"""
Conversational Support Assistant Module
=======================================

Bounded context for the chat assistant:
- Durable append-only chat sessions
- Policy guard (feature flag and daily quota)
- Provider fallback chain with error classification
- Escalation of a conversation into a support ticket
"""
