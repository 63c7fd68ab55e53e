"""
Category Sub-Reviewers

A sub-reviewer inspects only the files routed to its category, against
only that category's conventions, in a single model call.
"""

import logging
from typing import List, Optional, Sequence

from ..llm.base import LanguageModel, invoke_with_timeout, parse_json_array
from ..llm.prompts import PromptBuilder
from ..models.convention import Convention
from ..models.diff import DiffFile
from ..models.review import RawViolation
from .normalize import normalize_violation


logger = logging.getLogger(__name__)


class CategoryReviewer:
    """
    Reviews a set of files for one convention category.

    Failures (model errors, timeouts, unparseable output) propagate to the
    caller; the router decides how to degrade.
    """

    def __init__(
        self,
        category: str,
        model: LanguageModel,
        prompt_builder: Optional[PromptBuilder] = None,
        timeout: Optional[float] = None,
    ):
        self.category = category
        self.model = model
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.timeout = timeout

    async def review(
        self,
        files: Sequence[DiffFile],
        conventions: Sequence[Convention],
    ) -> List[RawViolation]:
        """
        Review files against the category's conventions.

        Args:
            files: Diff files assigned to this category
            conventions: Conventions of this category only

        Returns:
            Normalized violations without ids, in model order

        Raises:
            LanguageModelError: If the model call fails or times out
            ValueError: If the output holds no JSON array
        """
        if not files or not conventions:
            return []

        messages = self.prompt_builder.build_category_review_messages(self.category, files, conventions)
        response = await invoke_with_timeout(self.model, messages, self.timeout)
        results = parse_json_array(response.content)

        assigned_files = [f.path for f in files]
        violations = []
        for raw in results:
            violation = normalize_violation(raw, self.category, assigned_files)
            if violation is not None:
                violations.append(violation)

        logger.info(
            f"{self.category} reviewer: {len(violations)} violations "
            f"({len(results) - len(violations)} dropped) in {len(files)} files"
        )
        return violations
