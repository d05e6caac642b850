"""
Helpdesk Assistant
==================

Conversational support assistant for the help-desk platform: durable chat
sessions, provider fallback, knowledge-base grounded answers and escalation
of conversations into support tickets.
"""

__version__ = "1.0.0"
