"""
Review Data Models

Routing plans, violations, explained feedback and formatted output.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


REVIEWER_CATEGORIES = ("naming", "structure", "pattern", "testing")

SEVERITIES = ("error", "warning", "suggestion")

SEVERITY_ORDER = {"error": 0, "warning": 1, "suggestion": 2}


@dataclass(frozen=True)
class FileRouting:
    """Which reviewer categories examine a file"""
    file_path: str
    assigned_reviewers: FrozenSet[str]
    reasoning: str = ""

    def __post_init__(self):
        object.__setattr__(self, "assigned_reviewers", frozenset(self.assigned_reviewers))


@dataclass
class RawViolation:
    """A single deviation from a convention, flagged by a sub-reviewer"""
    id: str
    category: str
    issue: str
    convention_id: str
    file: str
    line: int
    severity: str = "warning"
    code: Optional[str] = None
    reasoning: Optional[str] = None
    impact: Optional[str] = None
    recommendation: Optional[str] = None

    def __post_init__(self):
        """Validate violation data"""
        if self.severity not in SEVERITIES:
            raise ValueError(f"Invalid severity: {self.severity}")
        if self.line < 0:
            raise ValueError("Line number must be non-negative")

    @property
    def is_agentic(self) -> bool:
        """True when the violation carries reasoning, impact and recommendation"""
        return bool(self.reasoning and self.impact and self.recommendation)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class CodeExample:
    before: str
    after: str


@dataclass
class ExplainedFeedback:
    """A violation paired with a teaching explanation"""
    id: str
    violation: RawViolation
    explanation: str
    team_expectation: str
    code_example: Optional[CodeExample] = None
    convention_reference: Optional[Dict[str, str]] = None


@dataclass
class FormattedComment:
    """Comment ready for console or PR delivery"""
    id: str
    file: str
    line: int
    body: str
    severity: str
    category: str


@dataclass
class FeedbackOutput:
    """Final rendered review"""
    pr_number: int
    summary: str
    comments: List[FormattedComment] = field(default_factory=list)
    delivery_target: str = "console"

    @property
    def has_errors(self) -> bool:
        return any(c.severity == "error" for c in self.comments)


@dataclass
class ReviewOutcome:
    """Result of routing, sub-reviewing and aggregating one pull request"""
    violations: List[RawViolation] = field(default_factory=list)
    routing_plan: Tuple[FileRouting, ...] = ()
    reviewed_files: List[str] = field(default_factory=list)
    used_fallback_plan: bool = False
    skipped_categories: List[str] = field(default_factory=list)
    failed_categories: List[str] = field(default_factory=list)

    def files_for_category(self, category: str) -> List[str]:
        return [r.file_path for r in self.routing_plan if category in r.assigned_reviewers]
