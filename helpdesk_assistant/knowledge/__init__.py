"""
Knowledge Base Module
=====================

Bounded context for knowledge-base retrieval during ticket creation:
- Relevant published articles for a ticket draft, re-ranked by match strength
- Solutions grounded in those articles, with a no-answer sentinel
- Optional suggestion webhook
"""
