"""
Data Models

Core data models of the convention reviewer
"""

from .convention import (
    CONVENTION_CATEGORIES,
    Convention,
    ConventionExample,
    ConventionPayload,
    ConventionSource,
    ConventionStats,
    LearningRun,
)
from .diff import DiffFile, PRDiffInput, RepoFile
from .review import (
    REVIEWER_CATEGORIES,
    CodeExample,
    ExplainedFeedback,
    FeedbackOutput,
    FileRouting,
    FormattedComment,
    RawViolation,
    ReviewOutcome,
)
from .state import LearningSources, PipelineState, PipelineStatus, Trigger, TriggerType

__all__ = [
    "CONVENTION_CATEGORIES",
    "REVIEWER_CATEGORIES",
    "Convention",
    "ConventionExample",
    "ConventionPayload",
    "ConventionSource",
    "ConventionStats",
    "LearningRun",
    "DiffFile",
    "PRDiffInput",
    "RepoFile",
    "CodeExample",
    "ExplainedFeedback",
    "FeedbackOutput",
    "FileRouting",
    "FormattedComment",
    "RawViolation",
    "ReviewOutcome",
    "LearningSources",
    "PipelineState",
    "PipelineStatus",
    "Trigger",
    "TriggerType",
]
