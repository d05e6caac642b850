"""
Shared Kernel Module
====================

Shared infrastructure used across the bounded contexts (Assistant and Knowledge).

Architecture Pattern: Modular Monolith
- Each module (assistant, knowledge) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add business logic from Assistant or Knowledge to shared kernel.
"""

__version__ = "1.0.0"
