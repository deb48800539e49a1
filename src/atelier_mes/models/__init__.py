# src/atelier_mes/models/__init__.py
"""SQLAlchemy models for the Atelier MES core."""

from .activity import ActivityRecord

__all__ = ["ActivityRecord"]
