"""
Conventions

Convention deduplication, learning and storage
"""

from .dedup import deduplicate_conventions
from .learner import ConventionLearner, LearningReport
from .store import ConventionStore, ConventionStoreError, InMemoryConventionStore, JsonFileConventionStore

__all__ = [
    'deduplicate_conventions',
    'ConventionLearner',
    'LearningReport',
    'ConventionStore',
    'ConventionStoreError',
    'InMemoryConventionStore',
    'JsonFileConventionStore',
]
