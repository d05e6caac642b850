"""
Knowledge Interfaces Layer
==========================

Contains:
- Controllers: FastAPI route handlers
"""

from helpdesk_assistant.knowledge.interfaces.controllers import router as knowledge_router

__all__ = ["knowledge_router"]
