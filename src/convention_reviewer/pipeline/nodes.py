"""
Pipeline Nodes

Each node is a coroutine taking the current state and the shared context
and returning a new state. Nodes report problems by returning an error
state rather than raising.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..conventions.learner import ConventionLearner
from ..conventions.store import ConventionStore
from ..formatting.feedback import FeedbackFormatter
from ..models.state import PipelineState, PipelineStatus
from ..retrieval.retriever import FileFetcher, RelevanceRetriever
from ..review.router import ReviewerRouter
from ..tutor.explainer import Explainer


logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """Collaborators shared by every node of a pipeline"""
    router: ReviewerRouter
    explainer: Explainer
    formatter: FeedbackFormatter
    store: Optional[ConventionStore] = None
    learner: Optional[ConventionLearner] = None
    file_fetcher: Optional[FileFetcher] = None
    summarize_review: bool = True
    max_file_chars: int = 2000

    def retriever_for(self, repository: str) -> RelevanceRetriever:
        return RelevanceRetriever(
            store=self.store,
            file_fetcher=self.file_fetcher,
            repository=repository,
            max_file_chars=self.max_file_chars,
        )


@dataclass
class QuestionAnswer:
    """Final output of a question run"""
    question: str
    answer: str
    question_type: str
    file_tree: Optional[str] = None
    counts: Dict[str, int] = field(default_factory=dict)


async def load_conventions(state: PipelineState, context: PipelineContext) -> PipelineState:
    state = state.evolve(status=PipelineStatus.IN_PROGRESS)

    if state.conventions:
        logger.info(f"Using {len(state.conventions)} preloaded conventions")
        return state

    if context.store is None or not state.repository:
        message = "No convention store or repository configured; reviewing without conventions"
        logger.warning(message)
        return state.with_warning(message)

    try:
        conventions = await context.store.get_all_conventions(state.repository)
    except Exception as e:
        message = f"Failed to load conventions for {state.repository}: {e}"
        logger.warning(message)
        return state.evolve(conventions=()).with_warning(message)

    logger.info(f"Loaded {len(conventions)} conventions for {state.repository}")
    return state.evolve(conventions=conventions)


async def review_pr(state: PipelineState, context: PipelineContext) -> PipelineState:
    if state.pr_diff is None:
        return state.with_error("No PR diff provided")

    outcome = await context.router.review(state.pr_diff, state.conventions)
    return state.evolve(violations=outcome.violations, routing_plan=outcome.routing_plan)


async def summarize_review(state: PipelineState, context: PipelineContext) -> PipelineState:
    summary = await context.explainer.summarize_review(state.violations)
    return state.evolve(review_summary=summary)


async def explain_violations(state: PipelineState, context: PipelineContext) -> PipelineState:
    feedback = await context.explainer.explain(state.violations, state.conventions)
    logger.info(f"Explained {len(feedback)} violations")
    return state.evolve(explained_feedback=feedback)


async def prepare_feedback(state: PipelineState, context: PipelineContext) -> PipelineState:
    if state.pr_diff is None:
        return state.with_error("No PR context")

    output = context.formatter.format(
        state.explained_feedback,
        state.pr_diff.pr_number,
        review_summary=state.review_summary,
    )
    return state.evolve(final_output=output)


async def answer_question(state: PipelineState, context: PipelineContext) -> PipelineState:
    state = state.evolve(status=PipelineStatus.IN_PROGRESS)
    question = (state.question or "").strip()
    if not question:
        return state.with_error("No question provided")

    retriever = context.retriever_for(state.repository)
    bundle = await retriever.retrieve_context(question)

    try:
        answer = await context.explainer.answer(question, bundle, session=state)
    except Exception as e:
        return state.with_error(f"Question answering failed: {e}")

    return state.evolve(final_output=QuestionAnswer(
        question=question,
        answer=answer,
        question_type=bundle.question_type,
        file_tree=bundle.file_tree,
        counts=bundle.counts,
    ))


async def learn_conventions(state: PipelineState, context: PipelineContext) -> PipelineState:
    state = state.evolve(status=PipelineStatus.IN_PROGRESS)
    sources = state.learning_sources
    if sources is None or sources.is_empty:
        return state.with_error("No learning sources provided")
    if not state.repository:
        return state.with_error("Repository name not configured")
    if context.learner is None:
        return state.with_error("No convention learner configured")

    try:
        report = await context.learner.learn(state.repository, sources)
    except Exception as e:
        return state.with_error(f"Learning failed: {e}")

    for message in report.errors:
        state = state.with_warning(message)
    return state.evolve(final_output=report)


NODES = {
    "load_conventions": load_conventions,
    "review_pr": review_pr,
    "summarize_review": summarize_review,
    "explain_violations": explain_violations,
    "prepare_feedback": prepare_feedback,
    "answer_question": answer_question,
    "learn_conventions": learn_conventions,
}
