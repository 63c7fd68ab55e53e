"""
Routing Plans

Parses a language model's file-to-reviewer routing plan into a tagged
result and builds the fallback plan used when that parse fails.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..llm.base import parse_json_array
from ..models.review import FileRouting


logger = logging.getLogger(__name__)


ROUTING_FALLBACK_POLICIES = ("all", "none")


@dataclass(frozen=True)
class RoutingPlanResult:
    """Either a validated plan or the reason it was rejected"""
    plan: Tuple[FileRouting, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, plan: Sequence[FileRouting]) -> "RoutingPlanResult":
        return cls(plan=tuple(plan))

    @classmethod
    def failure(cls, error: str) -> "RoutingPlanResult":
        return cls(error=error)


def _first(entry: Dict[str, Any], *names: str) -> Any:
    for name in names:
        if name in entry:
            return entry[name]
    return None


def _validate_entry(
    index: int,
    entry: Any,
    file_paths: Set[str],
    categories: Set[str],
) -> Tuple[Optional[FileRouting], Optional[str]]:
    if not isinstance(entry, dict):
        return None, f"entry {index} is not an object"

    path = _first(entry, "filePath", "file_path", "path", "file")
    if not isinstance(path, str) or not path.strip():
        return None, f"entry {index} has no filePath"
    if path not in file_paths:
        return None, f"entry {index} names a file outside the pull request: {path}"

    reviewers = _first(entry, "assignedReviewers", "assigned_reviewers", "reviewers")
    if not isinstance(reviewers, list) or not reviewers:
        return None, f"entry {index} has no assignedReviewers"

    assigned = set()
    for reviewer in reviewers:
        name = reviewer.strip().lower() if isinstance(reviewer, str) else None
        if name not in categories:
            return None, f"entry {index} assigns unknown reviewer: {reviewer!r}"
        assigned.add(name)

    reasoning = entry.get("reasoning")
    return FileRouting(
        file_path=path,
        assigned_reviewers=frozenset(assigned),
        reasoning=reasoning if isinstance(reasoning, str) else "",
    ), None


def parse_routing_plan(
    content: str,
    file_paths: Sequence[str],
    categories: Sequence[str],
) -> RoutingPlanResult:
    """
    Parse and validate a routing plan.

    The whole plan is rejected when the output holds no JSON array, the
    array is empty, or any entry is invalid. Entries repeating a path are
    merged. Files the plan leaves out are routed to every category.

    Args:
        content: Raw model output
        file_paths: Paths of the files in the pull request
        categories: Known reviewer categories

    Returns:
        RoutingPlanResult with the plan in pull request file order
    """
    try:
        entries = parse_json_array(content)
    except ValueError as e:
        return RoutingPlanResult.failure(str(e))

    if not entries:
        return RoutingPlanResult.failure("Routing plan is empty")

    known_paths = set(file_paths)
    known_categories = set(categories)
    merged: Dict[str, FileRouting] = {}

    for index, entry in enumerate(entries):
        routing, error = _validate_entry(index, entry, known_paths, known_categories)
        if error:
            return RoutingPlanResult.failure(f"Invalid routing plan: {error}")

        existing = merged.get(routing.file_path)
        if existing is not None:
            reasoning = "; ".join(r for r in (existing.reasoning, routing.reasoning) if r)
            routing = FileRouting(
                file_path=routing.file_path,
                assigned_reviewers=existing.assigned_reviewers | routing.assigned_reviewers,
                reasoning=reasoning,
            )
        merged[routing.file_path] = routing

    plan: List[FileRouting] = []
    for path in file_paths:
        if path in merged:
            plan.append(merged[path])
        else:
            logger.info(f"Routing plan omitted {path}; assigning every reviewer")
            plan.append(FileRouting(
                file_path=path,
                assigned_reviewers=frozenset(categories),
                reasoning="Not covered by the routing plan",
            ))

    return RoutingPlanResult.success(plan)


def build_fallback_plan(
    file_paths: Sequence[str],
    categories: Sequence[str],
    policy: str = "all",
) -> Tuple[FileRouting, ...]:
    """
    Build the plan used when routing fails.

    Policy ``all`` sends every file to every category; ``none`` reviews
    nothing.
    """
    if policy not in ROUTING_FALLBACK_POLICIES:
        raise ValueError(f"Unknown routing fallback policy: {policy}")
    if policy == "none":
        return ()
    return tuple(
        FileRouting(
            file_path=path,
            assigned_reviewers=frozenset(categories),
            reasoning="Fallback: routing plan unavailable",
        )
        for path in file_paths
    )
