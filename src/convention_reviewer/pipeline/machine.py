"""
Pipeline State Machine

Dispatches a trigger to its entry node and walks the fixed transitions
until the end or the first node that reports an error.
"""

import logging
from typing import Any, Optional, Sequence

from ..models.convention import Convention
from ..models.diff import PRDiffInput
from ..models.state import LearningSources, PipelineState, PipelineStatus, TriggerType
from .nodes import NODES, PipelineContext


logger = logging.getLogger(__name__)


END = "__end__"

ENTRY_NODES = {
    TriggerType.REVIEW.value: "load_conventions",
    TriggerType.QUESTION.value: "answer_question",
    TriggerType.LEARN.value: "learn_conventions",
}

TRANSITIONS = {
    "load_conventions": "review_pr",
    "review_pr": "summarize_review",
    "summarize_review": "explain_violations",
    "explain_violations": "prepare_feedback",
    "prepare_feedback": END,
    "answer_question": END,
    "learn_conventions": END,
}

OPTIONAL_NODES = ("summarize_review",)


def route_trigger(trigger_type: Any) -> str:
    """Entry node for a trigger type; unknown types start a review."""
    value = getattr(trigger_type, "value", trigger_type)
    return ENTRY_NODES.get(value, ENTRY_NODES[TriggerType.REVIEW.value])


class ReviewPipeline:
    """
    Runs review, question and learn triggers through their nodes.

    A run always returns a terminal state: ``complete`` when it reaches the
    end, ``error`` with the accumulated messages otherwise.
    """

    def __init__(self, context: PipelineContext):
        self.context = context

    def _skip(self, node_name: str) -> bool:
        return node_name in OPTIONAL_NODES and not self.context.summarize_review

    async def run(self, state: PipelineState) -> PipelineState:
        """
        Run a state from its trigger's entry node to the end.

        Args:
            state: Initial state

        Returns:
            Terminal PipelineState
        """
        node_name = route_trigger(state.trigger.type)
        logger.info(f"Pipeline started: trigger={state.trigger.type} entry={node_name}")

        while node_name != END:
            if self._skip(node_name):
                node_name = TRANSITIONS[node_name]
                continue

            node = NODES[node_name]
            try:
                state = await node(state, self.context)
            except Exception as e:
                logger.exception(f"Node {node_name} raised")
                state = state.with_error(f"{node_name} failed: {e}")

            if state.status == PipelineStatus.ERROR:
                logger.warning(f"Pipeline stopped at {node_name}: {'; '.join(state.errors)}")
                return state

            node_name = TRANSITIONS[node_name]

        logger.info("Pipeline complete")
        return state.evolve(status=PipelineStatus.COMPLETE)

    async def review(
        self,
        pr_diff: Optional[PRDiffInput],
        repository: str = "",
        conventions: Optional[Sequence[Convention]] = None,
    ) -> PipelineState:
        state = PipelineState.for_review(pr_diff, repository)
        if conventions:
            state = state.evolve(conventions=conventions)
        return await self.run(state)

    async def ask(
        self,
        question: Optional[str],
        repository: str = "",
        session: Optional[PipelineState] = None,
    ) -> PipelineState:
        return await self.run(PipelineState.for_question(question, repository, session=session))

    async def learn(self, sources: Optional[LearningSources], repository: str = "") -> PipelineState:
        return await self.run(PipelineState.for_learning(sources, repository))
