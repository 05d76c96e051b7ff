"""
ValoCoach Infrastructure - Storage components.

This module contains:
- database: SQLAlchemy match-stats store with upserts and conversation memory
- vector_store: named vector indexes for the coaching knowledge base
"""

__all__: list[str] = []
