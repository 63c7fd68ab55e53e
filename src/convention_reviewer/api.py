"""
Convention Reviewer API

Main interface that wires configuration, models, the convention store and
GitHub adapters into the review pipeline.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence

from .config import AppConfig, get_config
from .conventions.learner import ConventionLearner
from .conventions.store import ConventionStore, InMemoryConventionStore, JsonFileConventionStore
from .formatting.feedback import FeedbackFormatter
from .github.client import GitHubAPIError, GitHubClient
from .github.parser import PRDiffParser
from .github.sources import GitHubDiffSource, GitHubFileFetcher
from .llm.base import LanguageModel
from .llm.factory import TASK_TEMPERATURES, create_language_model
from .llm.prompts import PromptBuilder
from .models.convention import Convention
from .models.diff import PRDiffInput, RepoFile
from .models.state import LearningSources, PipelineState
from .pipeline.machine import ReviewPipeline
from .pipeline.nodes import PipelineContext
from .retrieval.retriever import FileFetcher
from .review.router import ReviewerRouter
from .tutor.explainer import Explainer


logger = logging.getLogger(__name__)


def create_store(config: AppConfig) -> ConventionStore:
    if config.store.backend == "memory":
        return InMemoryConventionStore()
    return JsonFileConventionStore(config.store.path)


def as_source_text(file: RepoFile) -> str:
    return f"// {file.path}\n{file.content}"


class ConventionReviewerAPI:
    """
    Main Convention Reviewer interface.

    Runs the three pipeline triggers:
    1. Review a pull request against the learned conventions
    2. Answer a question about the repository
    3. Learn conventions from repository sources
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        models: Optional[Mapping[str, LanguageModel]] = None,
        store: Optional[ConventionStore] = None,
        github_client: Optional[GitHubClient] = None,
        file_fetcher: Optional[FileFetcher] = None,
    ):
        """
        Initialize the API.

        Args:
            config: Application config; loaded from the environment when omitted
            models: Language model per task (learner, reviewer, tutor, feedback);
                missing tasks are created from the LLM config
            store: Convention store; built from the store config when omitted
            github_client: GitHub client; built from the GitHub config when omitted
            file_fetcher: Repository file fetcher; GitHub-backed when omitted
        """
        self.config = config or get_config()
        logger.info("Initializing Convention Reviewer components...")

        models = dict(models or {})
        for task in TASK_TEMPERATURES:
            if task not in models:
                models[task] = create_language_model(self.config.llm, task)
        self.models = models

        self.store = store or create_store(self.config)

        github = self.config.github
        self.github_client = github_client or GitHubClient(
            token=github.token,
            base_url=github.api_base_url,
            timeout=github.timeout_seconds,
        )
        parser = PRDiffParser()
        self.diff_source = GitHubDiffSource(self.github_client, parser)
        self.file_fetcher = file_fetcher or GitHubFileFetcher(
            self.github_client,
            parser,
            branch=github.branch,
            max_files=github.max_files,
            max_file_size=github.max_file_size,
        )

        review = self.config.review
        timeout = self.config.llm.call_timeout
        prompt_builder = PromptBuilder(max_diff_chars=review.max_diff_chars)

        self.formatter = FeedbackFormatter(delivery_target=review.delivery_target)
        self.pipeline = ReviewPipeline(PipelineContext(
            router=ReviewerRouter(
                model=self.models["reviewer"],
                categories=review.reviewer_categories,
                prompt_builder=prompt_builder,
                fallback_policy=review.routing_fallback,
                timeout=timeout,
            ),
            explainer=Explainer(
                model=self.models["feedback"],
                prompt_builder=prompt_builder,
                timeout=timeout,
            ),
            formatter=self.formatter,
            store=self.store,
            learner=ConventionLearner(
                model=self.models["learner"],
                store=self.store,
                prompt_builder=prompt_builder,
                timeout=timeout,
            ),
            file_fetcher=self.file_fetcher,
            summarize_review=review.summarize_review,
            max_file_chars=review.max_file_chars,
        ))
        self._tutor = Explainer(model=self.models["tutor"], prompt_builder=prompt_builder, timeout=timeout)
        # Questions go through the tutor model; reviews keep the feedback model.
        self._question_pipeline = ReviewPipeline(PipelineContext(
            router=self.pipeline.context.router,
            explainer=self._tutor,
            formatter=self.formatter,
            store=self.store,
            file_fetcher=self.file_fetcher,
            max_file_chars=review.max_file_chars,
        ))

        logger.info("Convention Reviewer initialized successfully")

    def _repository(self, repository: Optional[str]) -> str:
        return repository or self.config.repository or ""

    async def review_diff(
        self,
        pr_diff: Optional[PRDiffInput],
        repository: Optional[str] = None,
        conventions: Optional[Sequence[Convention]] = None,
    ) -> PipelineState:
        """
        Review an already fetched pull request diff.

        Args:
            pr_diff: Diff to review
            repository: ``owner/repo`` whose conventions apply
            conventions: Conventions to use instead of the stored ones

        Returns:
            Terminal PipelineState; ``final_output`` holds the FeedbackOutput
        """
        return await self.pipeline.review(pr_diff, self._repository(repository), conventions)

    async def review_pull_request(self, repository: str, pr_number: int) -> PipelineState:
        """
        Fetch a pull request from GitHub and review it.

        Args:
            repository: ``owner/repo``
            pr_number: Pull request number

        Returns:
            Terminal PipelineState
        """
        logger.info(f"Starting review: {repository}#{pr_number}")
        try:
            pr_diff = await self.diff_source.fetch_diff(repository, pr_number)
        except (GitHubAPIError, ValueError) as e:
            logger.error(f"Failed to fetch {repository}#{pr_number}: {e}")
            return PipelineState.for_review(None, repository).with_error(
                f"Failed to fetch PR {repository}#{pr_number}: {e}"
            )
        return await self.review_diff(pr_diff, repository)

    async def ask(
        self,
        question: str,
        repository: Optional[str] = None,
        session: Optional[PipelineState] = None,
    ) -> PipelineState:
        """
        Answer a question about a repository.

        Args:
            question: Free-form question
            repository: ``owner/repo``
            session: Earlier review state the question follows up on

        Returns:
            Terminal PipelineState; ``final_output`` holds the QuestionAnswer
        """
        return await self._question_pipeline.ask(question, self._repository(repository), session=session)

    async def collect_sources(self, repository: str) -> LearningSources:
        """Gather codebase files and ADRs of a repository for learning."""
        files = await self.file_fetcher.fetch_files(repository)
        adrs: List[RepoFile] = []
        if isinstance(self.file_fetcher, GitHubFileFetcher):
            adrs = await self.file_fetcher.fetch_adrs(repository)

        logger.info(f"Collected {len(files)} files and {len(adrs)} ADRs from {repository}")
        return LearningSources(
            codebase=[as_source_text(f) for f in files],
            adrs=[as_source_text(a) for a in adrs],
        )

    async def learn(
        self,
        repository: Optional[str] = None,
        sources: Optional[LearningSources] = None,
    ) -> PipelineState:
        """
        Learn conventions for a repository.

        Args:
            repository: ``owner/repo``
            sources: Learning sources; collected from the repository when omitted

        Returns:
            Terminal PipelineState; ``final_output`` holds the LearningReport
        """
        repository = self._repository(repository)
        if sources is None and repository:
            try:
                sources = await self.collect_sources(repository)
            except (GitHubAPIError, ValueError) as e:
                logger.error(f"Failed to collect sources for {repository}: {e}")
                return PipelineState.for_learning(None, repository).with_error(
                    f"Failed to collect sources for {repository}: {e}"
                )
        return await self.pipeline.learn(sources, repository)

    def render(self, state: PipelineState) -> Any:
        """
        Render a finished review for its delivery target.

        Returns:
            GitHub review payload or console text; ``None`` when the run
            produced no feedback output
        """
        output = state.final_output
        if output is None or not hasattr(output, "comments"):
            return None
        if self.formatter.delivery_target == "github":
            return self.formatter.to_github(output)
        return self.formatter.to_console(output)

