"""
Reviewer Router

Asks a language model which category reviewers should examine each file,
runs those reviewers concurrently and aggregates their violations.
"""

import asyncio
import dataclasses
import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..llm.base import LanguageModel, LanguageModelError, invoke_with_timeout
from ..llm.prompts import PromptBuilder
from ..models.convention import Convention
from ..models.diff import PRDiffInput
from ..models.review import REVIEWER_CATEGORIES, FileRouting, RawViolation, ReviewOutcome
from ..retrieval.retriever import select_conventions_for_diff
from .routing import RoutingPlanResult, build_fallback_plan, parse_routing_plan
from .sub_reviewers import CategoryReviewer


logger = logging.getLogger(__name__)


def aggregate_violations(
    results: Mapping[str, Sequence[RawViolation]],
    existing: Sequence[RawViolation] = (),
) -> List[RawViolation]:
    """
    Merge per-category violations into one list.

    Each violation gets an id ``<category>-<n>``, numbered per category and
    never reusing an id already present in ``existing``. Order within a
    category is preserved.

    Args:
        results: Violations keyed by producing category
        existing: Violations already aggregated

    Returns:
        ``existing`` followed by the newly identified violations
    """
    used_ids = {v.id for v in existing}
    merged = list(existing)

    for category, violations in results.items():
        sequence = 0
        for violation in violations:
            sequence += 1
            violation_id = f"{category}-{sequence}"
            while violation_id in used_ids:
                sequence += 1
                violation_id = f"{category}-{sequence}"
            used_ids.add(violation_id)
            merged.append(dataclasses.replace(violation, id=violation_id, category=category))

    return merged


class ReviewerRouter:
    """
    Routes pull request files to category reviewers and aggregates results.

    The routing call only sees file paths. When it fails, times out or
    returns an invalid plan, the fallback policy decides the plan instead.
    """

    def __init__(
        self,
        model: LanguageModel,
        categories: Sequence[str] = REVIEWER_CATEGORIES,
        prompt_builder: Optional[PromptBuilder] = None,
        fallback_policy: str = "all",
        timeout: Optional[float] = None,
        reviewer_factory: Optional[Callable[[str], CategoryReviewer]] = None,
    ):
        """
        Initialize router.

        Args:
            model: Model used for routing and, by default, for sub-reviews
            categories: Reviewer categories available to the plan
            prompt_builder: Prompt builder shared with sub-reviewers
            fallback_policy: ``all`` or ``none``
            timeout: Deadline in seconds for each model call
            reviewer_factory: Builds the sub-reviewer for a category
        """
        self.model = model
        self.categories = tuple(categories)
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.fallback_policy = fallback_policy
        self.timeout = timeout
        self.reviewer_factory = reviewer_factory or self._default_reviewer

    def _default_reviewer(self, category: str) -> CategoryReviewer:
        return CategoryReviewer(
            category=category,
            model=self.model,
            prompt_builder=self.prompt_builder,
            timeout=self.timeout,
        )

    async def route(self, pr_diff: PRDiffInput) -> Tuple[Tuple[FileRouting, ...], bool]:
        """
        Produce the routing plan for a pull request.

        Returns:
            Tuple of (plan, used_fallback)
        """
        messages = self.prompt_builder.build_routing_messages(pr_diff, self.categories)
        try:
            response = await invoke_with_timeout(self.model, messages, self.timeout)
            result = parse_routing_plan(response.content, pr_diff.paths, self.categories)
        except (LanguageModelError, ValueError) as e:
            result = RoutingPlanResult.failure(str(e))

        if result.ok:
            logger.info(f"Routing plan covers {len(result.plan)} files")
            return result.plan, False

        logger.warning(
            f"Routing failed for PR #{pr_diff.pr_number} ({result.error}); "
            f"using '{self.fallback_policy}' fallback plan"
        )
        return build_fallback_plan(pr_diff.paths, self.categories, self.fallback_policy), True

    async def review(self, pr_diff: PRDiffInput, conventions: Sequence[Convention]) -> ReviewOutcome:
        """
        Review a pull request.

        Args:
            pr_diff: Pull request diff
            conventions: Team conventions of every category

        Returns:
            ReviewOutcome with aggregated violations
        """
        if not pr_diff.files:
            logger.info(f"PR #{pr_diff.pr_number} has no files; nothing to review")
            return ReviewOutcome()

        plan, used_fallback = await self.route(pr_diff)
        outcome = ReviewOutcome(
            routing_plan=plan,
            reviewed_files=[r.file_path for r in plan if r.assigned_reviewers],
            used_fallback_plan=used_fallback,
        )

        scheduled: List[str] = []
        calls = []
        for category in self.categories:
            paths = outcome.files_for_category(category)
            if not paths:
                continue

            category_conventions = select_conventions_for_diff(pr_diff, conventions, category)
            if not category_conventions:
                logger.debug(f"No {category} conventions; skipping reviewer")
                outcome.skipped_categories.append(category)
                continue

            reviewer = self.reviewer_factory(category)
            files = [pr_diff.get_file(path) for path in paths]
            scheduled.append(category)
            calls.append(reviewer.review(files, category_conventions))

        results = await asyncio.gather(*calls, return_exceptions=True)

        by_category: Dict[str, List[RawViolation]] = {}
        for category, result in zip(scheduled, results):
            if isinstance(result, BaseException):
                logger.warning(f"{category} reviewer failed: {result}")
                outcome.failed_categories.append(category)
                continue
            by_category[category] = result

        outcome.violations = aggregate_violations(by_category)
        logger.info(
            f"PR #{pr_diff.pr_number}: {len(outcome.violations)} violations from "
            f"{len(by_category)} reviewers"
        )
        return outcome
