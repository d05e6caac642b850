"""
Infrastructure Layer
=====================

Shared technical adapters:
- Database engine and session lifecycle
- Generative-language provider clients
"""
