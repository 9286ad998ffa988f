"""Storage collaborators for the recall engine."""

from recall_engine.storage.memory import InMemoryRepository
from recall_engine.storage.ports import StudyRepository

__all__ = ["InMemoryRepository", "StudyRepository"]
