"""
Assistant Interfaces Layer
==========================

Interface adapters (controllers) for the assistant module.

Contains:
- Controllers: FastAPI route handlers
"""

from helpdesk_assistant.assistant.interfaces.controllers import router as assistant_router

__all__ = ["assistant_router"]
