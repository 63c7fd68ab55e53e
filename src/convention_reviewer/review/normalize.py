"""
Violation Normalization

Maps the loosely shaped violation objects produced by sub-reviewers into
the canonical RawViolation.
"""

import logging
from typing import Any, Optional, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..models.review import RawViolation


logger = logging.getLogger(__name__)


SEVERITY_ALIASES = {
    "error": "error",
    "critical": "error",
    "high": "error",
    "blocker": "error",
    "warning": "warning",
    "warn": "warning",
    "medium": "warning",
    "suggestion": "suggestion",
    "info": "suggestion",
    "low": "suggestion",
    "nit": "suggestion",
}


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class ViolationPayload(BaseModel):
    """One violation as emitted by a sub-reviewer, in any of its shapes"""
    model_config = ConfigDict(extra="ignore")

    issue: str = Field(validation_alias=AliasChoices("issue", "message", "description", "title"))
    convention_id: str = Field(
        default="",
        validation_alias=AliasChoices("conventionId", "convention_id", "ruleId", "rule_id"),
    )
    file: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("file", "filePath", "file_path", "path"),
    )
    line: int = Field(default=1, validation_alias=AliasChoices("line", "lineNumber", "line_number"))
    severity: str = "warning"
    code: Optional[str] = Field(default=None, validation_alias=AliasChoices("code", "snippet"))
    reasoning: Optional[str] = None
    impact: Optional[str] = None
    recommendation: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("recommendation", "suggestion", "fix"),
    )

    @field_validator("issue", mode="before")
    @classmethod
    def validate_issue(cls, v):
        text = _optional_text(v)
        if text is None:
            raise ValueError("Issue cannot be empty")
        return text

    @field_validator("convention_id", mode="before")
    @classmethod
    def coerce_convention_id(cls, v):
        return "" if v is None else str(v)

    @field_validator("line", mode="before")
    @classmethod
    def coerce_line(cls, v):
        try:
            line = int(float(str(v).strip()))
        except (TypeError, ValueError, OverflowError):
            return 1
        return line if line >= 1 else 1

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v):
        return SEVERITY_ALIASES.get(str(v or "").strip().lower(), "warning")

    @field_validator("file", "code", "reasoning", "impact", "recommendation", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _optional_text(v)


def normalize_violation(
    raw: Any,
    category: str,
    assigned_files: Sequence[str],
) -> Optional[RawViolation]:
    """
    Normalize one sub-reviewer result.

    A missing file defaults to the only assigned file when there is exactly
    one. Results that cannot be validated, or that name a file outside the
    category's assignment, are dropped.

    Args:
        raw: Parsed JSON element from the sub-reviewer
        category: Category of the producing sub-reviewer
        assigned_files: Files routed to that category

    Returns:
        RawViolation with an empty id, or None when dropped
    """
    if not isinstance(raw, dict):
        logger.debug(f"Dropping non-object {category} result: {raw!r}")
        return None

    try:
        payload = ViolationPayload.model_validate(raw)
    except ValidationError as e:
        logger.debug(f"Dropping invalid {category} result: {e}")
        return None

    file_path = payload.file
    if file_path is None and len(assigned_files) == 1:
        file_path = assigned_files[0]

    if file_path not in assigned_files:
        logger.warning(f"Dropping {category} violation for unassigned file: {file_path}")
        return None

    return RawViolation(
        id="",
        category=category,
        issue=payload.issue,
        convention_id=payload.convention_id,
        file=file_path,
        line=payload.line,
        severity=payload.severity,
        code=payload.code,
        reasoning=payload.reasoning,
        impact=payload.impact,
        recommendation=payload.recommendation,
    )
