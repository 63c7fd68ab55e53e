"""
Explainer

Turns raw violations into teaching feedback, summarizes a review and
answers free-form questions about the codebase.
"""

import asyncio
import logging
import re
from typing import Dict, List, Optional, Sequence

from ..llm.base import LanguageModel, LanguageModelError, invoke_with_timeout
from ..llm.prompts import PromptBuilder
from ..models.convention import Convention
from ..models.review import CodeExample, ExplainedFeedback, RawViolation
from ..models.state import PipelineState, agentic_violations
from ..retrieval.retriever import RetrievalResult


logger = logging.getLogger(__name__)


NO_ISSUES_SUMMARY = "No issues found. This PR looks good to merge."
UNGROUNDED_SUMMARY = "Issues were detected, but they lack sufficient reasoning to explain clearly."
DEFAULT_TEAM_EXPECTATION = "Follow the documented team pattern."

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def condense(text: str, max_sentences: int) -> str:
    """Collapse whitespace and keep at most ``max_sentences`` sentences."""
    flat = re.sub(r"\s+", " ", text or "").strip()
    if not flat:
        return ""
    sentences = _SENTENCE_BOUNDARY.split(flat)[:max_sentences]
    condensed = " ".join(sentences).strip()
    condensed = re.sub(r"\.{2,}$", ".", condensed)
    if condensed[-1] not in ".!?":
        condensed += "."
    return condensed


def approved_pattern(convention: Optional[Convention]) -> str:
    """The pattern the team wants instead of the violation"""
    if convention is None or not convention.examples:
        return DEFAULT_TEAM_EXPECTATION
    example = convention.examples[0]
    return example.good or example.explanation or DEFAULT_TEAM_EXPECTATION


class Explainer:
    """
    Explains violations against the conventions they break.

    Model failures degrade to the violation's own reasoning rather than
    dropping the feedback.
    """

    def __init__(
        self,
        model: LanguageModel,
        prompt_builder: Optional[PromptBuilder] = None,
        timeout: Optional[float] = None,
        max_explanation_sentences: int = 5,
        max_answer_sentences: int = 4,
    ):
        self.model = model
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.timeout = timeout
        self.max_explanation_sentences = max_explanation_sentences
        self.max_answer_sentences = max_answer_sentences

    async def explain(
        self,
        violations: Sequence[RawViolation],
        conventions: Sequence[Convention],
    ) -> List[ExplainedFeedback]:
        """
        Explain each violation.

        Args:
            violations: Aggregated violations
            conventions: Conventions the violations may reference

        Returns:
            One ExplainedFeedback per violation, in violation order
        """
        by_id: Dict[str, Convention] = {c.id: c for c in conventions}
        return list(await asyncio.gather(
            *(self._explain_one(v, by_id.get(v.convention_id)) for v in violations)
        ))

    async def _explain_one(self, violation: RawViolation, convention: Optional[Convention]) -> ExplainedFeedback:
        expectation = approved_pattern(convention)
        explanation = None

        if convention is not None:
            prompt = self.prompt_builder.build_explanation_prompt(violation, convention, expectation)
            try:
                response = await invoke_with_timeout(self.model, prompt, self.timeout)
                explanation = condense(response.content, self.max_explanation_sentences) or None
            except LanguageModelError as e:
                logger.warning(f"Explanation for {violation.id} failed: {e}")
        else:
            logger.debug(f"No convention {violation.convention_id!r} for {violation.id}")

        if explanation is None:
            fallback = violation.reasoning or (convention.description if convention else None) or violation.issue
            explanation = condense(fallback, self.max_explanation_sentences)
        if convention is None and violation.recommendation:
            expectation = violation.recommendation

        return ExplainedFeedback(
            id=f"explain-{violation.id}",
            violation=violation,
            explanation=explanation,
            team_expectation=expectation,
            code_example=self._code_example(convention),
            convention_reference={"id": convention.id, "rule": convention.rule} if convention else None,
        )

    @staticmethod
    def _code_example(convention: Optional[Convention]) -> Optional[CodeExample]:
        if convention is None:
            return None
        for example in convention.examples:
            if example.bad and example.good:
                return CodeExample(before=example.bad, after=example.good)
        return None

    async def summarize_review(self, violations: Sequence[RawViolation]) -> str:
        """
        Summarize a review for the pull request author.

        Only agentic violations are summarized by the model; without any the
        summary is a fixed sentence.
        """
        if not violations:
            return NO_ISSUES_SUMMARY

        agentic = agentic_violations(violations)
        if not agentic:
            return UNGROUNDED_SUMMARY

        prompt = self.prompt_builder.build_summary_prompt(agentic)
        try:
            response = await invoke_with_timeout(self.model, prompt, self.timeout)
            summary = response.content.strip()
            if summary:
                return summary
        except LanguageModelError as e:
            logger.warning(f"Review summary failed: {e}")

        lines = [f"Found {len(violations)} issues."]
        lines.extend(f"- {v.category}: {v.issue}" for v in agentic)
        return "\n".join(lines)

    async def answer(
        self,
        question: str,
        context: RetrievalResult,
        session: Optional[PipelineState] = None,
    ) -> str:
        """
        Answer a question grounded on retrieved context.

        Args:
            question: The question
            context: Retrieval bundle for the question
            session: Earlier state of an interactive session, if any

        Returns:
            Answer of at most ``max_answer_sentences`` sentences

        Raises:
            LanguageModelError: If the model call fails
        """
        prompt = self.prompt_builder.build_answer_prompt(
            question,
            files=[{"path": f.path, "content": f.content} for f in context.files],
            conventions=[sc.convention for sc in context.conventions],
            file_tree=context.file_tree,
            review_findings=session.violations if session is not None else (),
        )
        response = await invoke_with_timeout(self.model, prompt, self.timeout)
        return condense(response.content, self.max_answer_sentences)
