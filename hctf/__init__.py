"""HCTF platform API: teams, moderation, ranking and level management."""

from .database import Base, get_db  # noqa: F401

__all__ = ["Base", "get_db"]
