"""
Relevance Retriever

Selects a bounded, ranked set of conventions and repository files worth
showing a language model for a question or a diff.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..conventions.store import ConventionStore
from ..models.convention import Convention
from ..models.diff import PRDiffInput, RepoFile
from .scoring import (
    build_file_tree,
    classify_question,
    extract_keywords,
    is_entry_point,
    rank,
    score_convention,
    score_file,
)


logger = logging.getLogger(__name__)


# question type -> (file limit, convention limit)
RETRIEVAL_MIX = {
    "structure": (5, 10),
    "convention": (3, 12),
    "specific": (8, 5),
    "howto": (8, 5),
    "general": (5, 8),
}


@dataclass
class ScoredConvention:
    convention: Convention
    score: float


@dataclass
class ScoredFile:
    path: str
    content: str
    score: float


@dataclass
class RetrievalResult:
    """Context bundle handed to the question-answering collaborator"""
    question_type: str
    files: List[ScoredFile] = field(default_factory=list)
    conventions: List[ScoredConvention] = field(default_factory=list)
    file_tree: Optional[str] = None

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "files": len(self.files),
            "conventions": len(self.conventions),
        }


class FileFetcher(ABC):
    """Supplies a flat list of repository files"""

    @abstractmethod
    async def fetch_files(self, repository: str) -> List[RepoFile]:
        """Return every code file of a repository"""


class StaticFileFetcher(FileFetcher):
    """Serves a fixed list of files regardless of repository"""

    def __init__(self, files: Iterable[RepoFile]):
        self.files = list(files)

    async def fetch_files(self, repository: str) -> List[RepoFile]:
        return list(self.files)


class RelevanceRetriever:
    """
    Keyword-based retrieval over conventions and repository files.

    Store and fetch failures degrade to empty results; nothing raised by a
    collaborator escapes to the caller.
    """

    def __init__(
        self,
        store: Optional[ConventionStore],
        file_fetcher: Optional[FileFetcher],
        repository: str,
        max_file_chars: int = 2000,
    ):
        """
        Initialize retriever.

        Args:
            store: Convention store to read from
            file_fetcher: Source of repository files
            repository: Repository name (owner/repo)
            max_file_chars: Maximum characters of file content returned
        """
        self.store = store
        self.file_fetcher = file_fetcher
        self.repository = repository
        self.max_file_chars = max_file_chars

    async def load_conventions(self) -> List[Convention]:
        if self.store is None:
            return []
        try:
            return await self.store.get_all_conventions(self.repository)
        except Exception as e:
            logger.warning(f"Failed to load conventions for {self.repository}: {e}")
            return []

    async def load_files(self) -> List[RepoFile]:
        if self.file_fetcher is None:
            return []
        try:
            return await self.file_fetcher.fetch_files(self.repository)
        except Exception as e:
            logger.warning(f"Failed to fetch files for {self.repository}: {e}")
            return []

    def rank_conventions(
        self,
        conventions: List[Convention],
        keywords: Iterable[str],
        limit: Optional[int],
    ) -> List[ScoredConvention]:
        keywords = list(keywords)
        ranked = rank(conventions, lambda c: score_convention(c, keywords), limit)
        return [ScoredConvention(convention=c, score=s) for c, s in ranked]

    def rank_files(
        self,
        files: List[RepoFile],
        keywords: Iterable[str],
        limit: Optional[int],
    ) -> List[ScoredFile]:
        keywords = list(keywords)
        ranked = rank(files, lambda f: score_file(f.path, f.content, keywords), limit)
        return [self._scored_file(f, s) for f, s in ranked]

    def _scored_file(self, repo_file: RepoFile, score: float) -> ScoredFile:
        return ScoredFile(
            path=repo_file.path,
            content=repo_file.content[:self.max_file_chars],
            score=score,
        )

    async def retrieve_conventions(self, text: str, limit: int = 8) -> List[ScoredConvention]:
        conventions = await self.load_conventions()
        return self.rank_conventions(conventions, extract_keywords(text), limit)

    async def retrieve_files(self, text: str, limit: int = 5) -> List[ScoredFile]:
        files = await self.load_files()
        return self.rank_files(files, extract_keywords(text), limit)

    async def retrieve_context(self, question: str) -> RetrievalResult:
        """
        Retrieve the context mix appropriate for a question.

        Structure questions get a directory tree plus entry-point files; the
        other question types get scored files and conventions in different
        proportions.

        Args:
            question: Free-text question

        Returns:
            RetrievalResult bundle
        """
        question_type = classify_question(question)
        keywords = extract_keywords(question)
        file_limit, convention_limit = RETRIEVAL_MIX[question_type]

        conventions = self.rank_conventions(await self.load_conventions(), keywords, convention_limit)
        files = await self.load_files()

        if question_type == "structure":
            entry_points = [f for f in files if is_entry_point(f.path)][:file_limit]
            result = RetrievalResult(
                question_type=question_type,
                files=[self._scored_file(f, 0.0) for f in entry_points],
                conventions=conventions,
                file_tree=build_file_tree(f.path for f in files),
            )
        else:
            result = RetrievalResult(
                question_type=question_type,
                files=self.rank_files(files, keywords, file_limit),
                conventions=conventions,
            )

        logger.info(
            f"Retrieved {result.counts['files']} files and {result.counts['conventions']} "
            f"conventions for {question_type} question"
        )
        return result

    async def repository_overview(self) -> str:
        files = await self.load_files()
        return build_file_tree(f.path for f in files)


def diff_keywords(pr_diff: PRDiffInput) -> List[str]:
    """Keywords describing a diff: its text plus the changed file extensions"""
    text = "\n".join([pr_diff.title] + [f"{f.path}\n{f.diff}" for f in pr_diff.files])
    keywords = extract_keywords(text)
    keywords.update(f.extension for f in pr_diff.files if f.extension)
    return sorted(keywords)


def select_conventions_for_diff(
    pr_diff: PRDiffInput,
    conventions: Iterable[Convention],
    category: str,
) -> List[Convention]:
    """
    Every convention of ``category``, most relevant to the diff first.

    Unlike question retrieval nothing is dropped: a convention that shares
    no keyword with the diff still applies to it.
    """
    in_category = [c for c in conventions if c.category == category]
    keywords = diff_keywords(pr_diff)
    scored = [(c, score_convention(c, keywords)) for c in in_category]
    scored.sort(key=lambda pair: -pair[1])
    return [c for c, _ in scored]
