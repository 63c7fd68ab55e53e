"""
Convention Data Models

Team coding conventions, their provenance, and learning-run records.
"""

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


CONVENTION_CATEGORIES = (
    "naming",
    "structure",
    "pattern",
    "testing",
    "error-handling",
    "security",
    "performance",
    "documentation",
)

SOURCE_TYPES = ("adr", "pr-review", "codebase", "incident", "manual")

LEARNING_RUN_STATUSES = ("running", "completed", "failed")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ConventionExample:
    """Good/bad snippet pair illustrating a convention"""
    explanation: str
    good: Optional[str] = None
    bad: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"explanation": self.explanation}
        if self.good is not None:
            data["good"] = self.good
        if self.bad is not None:
            data["bad"] = self.bad
        return data


@dataclass(frozen=True)
class ConventionSource:
    """Where a convention was learned from"""
    type: str
    reference: str
    timestamp: str

    def __post_init__(self):
        if self.type not in SOURCE_TYPES:
            raise ValueError(f"Invalid source type: {self.type}")


@dataclass(frozen=True)
class Convention:
    """A team coding rule with examples, provenance and confidence"""
    id: str
    category: str
    rule: str
    description: str
    examples: Tuple[ConventionExample, ...]
    source: ConventionSource
    confidence: float
    tags: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate and freeze collection fields"""
        if self.category not in CONVENTION_CATEGORIES:
            raise ValueError(f"Invalid category: {self.category}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Confidence must be between 0.0 and 1.0")
        if not self.rule.strip():
            raise ValueError("Rule cannot be empty")
        object.__setattr__(self, "examples", tuple(self.examples))
        object.__setattr__(self, "tags", tuple(self.tags))

    @classmethod
    def create_new(
        cls,
        category: str,
        rule: str,
        description: str,
        source_type: str,
        reference: str,
        confidence: float,
        examples: Optional[List[ConventionExample]] = None,
        tags: Optional[List[str]] = None,
    ) -> "Convention":
        """Create a convention with a fresh id and timestamp"""
        return cls(
            id=f"conv-{uuid.uuid4().hex[:12]}",
            category=category,
            rule=rule,
            description=description,
            examples=tuple(examples or ()),
            source=ConventionSource(type=source_type, reference=reference, timestamp=utc_now_iso()),
            confidence=confidence,
            tags=tuple(tags or ()),
        )

    def supersede(self, **changes) -> "Convention":
        """Return a replacement convention; the original is left untouched"""
        changes.setdefault("id", f"conv-{uuid.uuid4().hex[:12]}")
        return dataclasses.replace(self, **changes)

    @property
    def dedup_key(self) -> str:
        return f"{self.category}:{self.rule.strip().lower()}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "rule": self.rule,
            "description": self.description,
            "examples": [example.to_dict() for example in self.examples],
            "source": {
                "type": self.source.type,
                "reference": self.source.reference,
                "timestamp": self.source.timestamp,
            },
            "confidence": self.confidence,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Convention":
        source = data.get("source") or {}
        return cls(
            id=data["id"],
            category=data["category"],
            rule=data["rule"],
            description=data.get("description", ""),
            examples=tuple(
                ConventionExample(
                    explanation=example.get("explanation", ""),
                    good=example.get("good"),
                    bad=example.get("bad"),
                )
                for example in data.get("examples", [])
            ),
            source=ConventionSource(
                type=source.get("type", "manual"),
                reference=source.get("reference", ""),
                timestamp=source.get("timestamp", utc_now_iso()),
            ),
            confidence=float(data.get("confidence", 0.0)),
            tags=tuple(data.get("tags", [])),
        )


@dataclass
class LearningRun:
    """Record of one convention-learning run for a repository"""
    id: str
    repository: str
    status: str
    started_at: str
    completed_at: Optional[str] = None
    conventions_found: int = 0
    conventions_stored: int = 0
    error: Optional[str] = None

    def __post_init__(self):
        if self.status not in LEARNING_RUN_STATUSES:
            raise ValueError(f"Invalid learning run status: {self.status}")

    @classmethod
    def start(cls, repository: str) -> "LearningRun":
        return cls(
            id=f"run-{uuid.uuid4().hex[:12]}",
            repository=repository,
            status="running",
            started_at=utc_now_iso(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


# Pydantic models for validating extracted / persisted conventions
class ExamplePayload(BaseModel):
    """Convention example as produced by a language model"""
    model_config = ConfigDict(extra="ignore")

    explanation: str = ""
    good: Optional[str] = None
    bad: Optional[str] = None


class ConventionPayload(BaseModel):
    """One extracted convention, validated before it becomes a Convention"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    category: str
    rule: str
    description: str = ""
    examples: List[ExamplePayload] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        v = v.strip().lower().replace("_", "-")
        if v not in CONVENTION_CATEGORIES:
            raise ValueError(f"Invalid category: {v}")
        return v

    @field_validator("rule")
    @classmethod
    def validate_rule(cls, v):
        if not v.strip():
            raise ValueError("Rule cannot be empty")
        return v.strip()

    def to_convention(self, source_type: str, reference: str) -> Convention:
        return Convention.create_new(
            category=self.category,
            rule=self.rule,
            description=self.description,
            source_type=source_type,
            reference=reference,
            confidence=self.confidence,
            examples=[
                ConventionExample(explanation=e.explanation, good=e.good, bad=e.bad)
                for e in self.examples
            ],
            tags=self.tags,
        )


@dataclass
class ConventionStats:
    """Counts reported by a convention store"""
    conventions: int
    by_category: Dict[str, int] = field(default_factory=dict)
    last_learned: Optional[str] = None
