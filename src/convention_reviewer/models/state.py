"""
Pipeline State Models

Immutable state threaded through the review pipeline. Nodes never mutate a
state; they return a new one built with ``evolve``.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence, Tuple

from .convention import Convention
from .diff import PRDiffInput
from .review import ExplainedFeedback, FileRouting, RawViolation


class TriggerType(str, Enum):
    REVIEW = "pr_review"
    QUESTION = "question"
    LEARN = "learn"


class PipelineStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class Trigger:
    """What started a pipeline run. ``type`` is kept as a plain string so
    unknown trigger types can still be routed."""
    type: str
    payload: Any = None


@dataclass(frozen=True)
class LearningSources:
    """Raw material a learning run summarizes into conventions"""
    codebase: Tuple[str, ...] = ()
    adrs: Tuple[str, ...] = ()
    pr_reviews: Tuple[str, ...] = ()
    incidents: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("codebase", "adrs", "pr_reviews", "incidents"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def is_empty(self) -> bool:
        return not any(
            text.strip()
            for text in self.codebase + self.adrs + self.pr_reviews + self.incidents
        )


@dataclass(frozen=True)
class PipelineState:
    """State of one pipeline invocation"""
    trigger: Trigger
    repository: str = ""
    pr_diff: Optional[PRDiffInput] = None
    question: Optional[str] = None
    learning_sources: Optional[LearningSources] = None
    conventions: Tuple[Convention, ...] = ()
    violations: Tuple[RawViolation, ...] = ()
    routing_plan: Tuple[FileRouting, ...] = ()
    review_summary: Optional[str] = None
    explained_feedback: Tuple[ExplainedFeedback, ...] = ()
    final_output: Any = None
    status: PipelineStatus = PipelineStatus.PENDING
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    def evolve(self, **changes) -> "PipelineState":
        """Return a copy with ``changes`` applied"""
        for name in ("conventions", "violations", "routing_plan", "explained_feedback"):
            if name in changes:
                changes[name] = tuple(changes[name])
        return dataclasses.replace(self, **changes)

    def with_error(self, message: str) -> "PipelineState":
        return self.evolve(status=PipelineStatus.ERROR, errors=self.errors + (message,))

    def with_warning(self, message: str) -> "PipelineState":
        return self.evolve(warnings=self.warnings + (message,))

    @property
    def is_terminal(self) -> bool:
        return self.status in (PipelineStatus.COMPLETE, PipelineStatus.ERROR)

    @classmethod
    def for_review(cls, pr_diff: Optional[PRDiffInput], repository: str = "") -> "PipelineState":
        return cls(
            trigger=Trigger(type=TriggerType.REVIEW.value, payload=pr_diff),
            repository=repository,
            pr_diff=pr_diff,
        )

    @classmethod
    def for_question(
        cls,
        question: Optional[str],
        repository: str = "",
        session: Optional["PipelineState"] = None,
    ) -> "PipelineState":
        """Build a question state, optionally continuing an earlier session.

        A completed review state passed as ``session`` keeps its diff,
        violations and summary so the answer can refer back to them.
        """
        trigger = Trigger(type=TriggerType.QUESTION.value, payload=question)
        if session is None:
            return cls(trigger=trigger, repository=repository, question=question)
        return session.evolve(
            trigger=trigger,
            repository=repository or session.repository,
            question=question,
            final_output=None,
            status=PipelineStatus.PENDING,
            errors=(),
            warnings=(),
        )

    @classmethod
    def for_learning(cls, sources: Optional[LearningSources], repository: str = "") -> "PipelineState":
        return cls(
            trigger=Trigger(type=TriggerType.LEARN.value, payload=sources),
            repository=repository,
            learning_sources=sources,
        )

    @classmethod
    def for_trigger(cls, trigger: Trigger, repository: str = "") -> "PipelineState":
        """Build a state from an arbitrary trigger, placing the payload by type"""
        payload = trigger.payload
        return cls(
            trigger=trigger,
            repository=repository,
            pr_diff=payload if isinstance(payload, PRDiffInput) else None,
            question=payload if isinstance(payload, str) else None,
            learning_sources=payload if isinstance(payload, LearningSources) else None,
        )


def agentic_violations(violations: Sequence[RawViolation]) -> Tuple[RawViolation, ...]:
    return tuple(v for v in violations if v.is_agentic)
