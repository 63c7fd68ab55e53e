"""
Convention Learner

Summarizes raw sources (code, ADRs, past PR reviews, incident reports) into
candidate conventions with a language model, deduplicates them and
persists the result as a recorded learning run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from ..llm.base import LanguageModel, invoke_with_timeout, parse_json_array, parse_json_object
from ..llm.prompts import PromptBuilder
from ..models.convention import Convention, ConventionPayload
from ..models.state import LearningSources
from .dedup import deduplicate_conventions
from .store import ConventionStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionJob:
    """One model call worth of source material"""
    source_type: str
    reference: str
    content: str


@dataclass
class LearningReport:
    """Counts reported by a learning run"""
    run_id: str
    repository: str
    extracted: int
    unique: int
    stored: int
    total_in_store: int
    errors: List[str] = field(default_factory=list)


def build_extraction_jobs(sources: LearningSources) -> List[ExtractionJob]:
    """
    Split sources into model calls.

    Every codebase item and every ADR is its own call; PR reviews and
    incidents are each joined into a single call.
    """
    jobs = []
    for index, code in enumerate(sources.codebase):
        if code.strip():
            jobs.append(ExtractionJob("codebase", f"codebase-{index + 1}", code))
    for index, adr in enumerate(sources.adrs):
        if adr.strip():
            jobs.append(ExtractionJob("adr", f"adr-{index + 1}", adr))

    reviews = [r for r in sources.pr_reviews if r.strip()]
    if reviews:
        jobs.append(ExtractionJob("pr-review", "pr-reviews", "\n\n---\n\n".join(reviews)))

    incidents = [i for i in sources.incidents if i.strip()]
    if incidents:
        jobs.append(ExtractionJob("incident", "incidents", "\n\n---\n\n".join(incidents)))

    return jobs


def parse_extracted_conventions(content: str) -> List[Any]:
    """
    Read the convention list out of model output.

    Accepts ``{"conventions": [...]}`` or a bare array.

    Raises:
        ValueError: If neither shape can be parsed
    """
    text = content or ""
    array_start = text.find("[")
    object_start = text.find("{")
    if array_start != -1 and (object_start == -1 or array_start < object_start):
        return parse_json_array(text)

    data = parse_json_object(text)
    items = data.get("conventions")
    if not isinstance(items, list):
        raise ValueError("Model output has no 'conventions' list")
    return items


class ConventionLearner:
    """
    Learns team conventions from raw sources.

    Extraction calls run concurrently. A failing source or an invalid
    convention is skipped with a warning; only store failures abort a run.
    """

    def __init__(
        self,
        model: LanguageModel,
        store: ConventionStore,
        prompt_builder: Optional[PromptBuilder] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model
        self.store = store
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.timeout = timeout

    async def _extract_job(self, job: ExtractionJob) -> List[Convention]:
        prompt = self.prompt_builder.build_extraction_prompt(job.source_type, job.content)
        response = await invoke_with_timeout(self.model, prompt, self.timeout)

        conventions = []
        for item in parse_extracted_conventions(response.content):
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object convention from {job.reference}")
                continue
            try:
                payload = ConventionPayload.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping invalid convention from {job.reference}: {e.error_count()} errors")
                continue
            conventions.append(payload.to_convention(job.source_type, job.reference))

        logger.info(f"Extracted {len(conventions)} conventions from {job.reference}")
        return conventions

    async def extract(self, sources: LearningSources) -> Tuple[List[Convention], List[str]]:
        """
        Extract candidate conventions from every source.

        Args:
            sources: Raw learning sources

        Returns:
            Tuple of (conventions in source order, error messages)
        """
        jobs = build_extraction_jobs(sources)
        results = await asyncio.gather(*(self._extract_job(job) for job in jobs), return_exceptions=True)

        conventions: List[Convention] = []
        errors: List[str] = []
        for job, result in zip(jobs, results):
            if isinstance(result, BaseException):
                message = f"Extraction from {job.reference} failed: {result}"
                logger.warning(message)
                errors.append(message)
                continue
            conventions.extend(result)

        return conventions, errors

    async def learn(self, repository: str, sources: LearningSources) -> LearningReport:
        """
        Run a complete learning pass for a repository.

        Args:
            repository: Repository name (owner/repo)
            sources: Raw learning sources

        Returns:
            LearningReport

        Raises:
            ConventionStoreError: If the store cannot record the run; the run
                is marked failed before the error propagates
        """
        logger.info(f"Learning conventions for {repository}")
        run_id = await self.store.start_learning_run(repository)

        try:
            extracted, errors = await self.extract(sources)
            unique = deduplicate_conventions(extracted)
            stored = await self.store.add_conventions(repository, unique, run_id)
            await self.store.complete_learning_run(repository, run_id, len(extracted), stored)
            stats = await self.store.get_stats(repository)
        except Exception as e:
            await self.store.fail_learning_run(repository, run_id, str(e))
            raise

        report = LearningReport(
            run_id=run_id,
            repository=repository,
            extracted=len(extracted),
            unique=len(unique),
            stored=stored,
            total_in_store=stats.conventions,
            errors=errors,
        )
        logger.info(
            f"Learning run {run_id}: {report.extracted} extracted, "
            f"{report.unique} unique, {report.total_in_store} in store"
        )
        return report
