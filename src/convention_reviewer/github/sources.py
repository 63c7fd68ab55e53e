"""
GitHub Sources

Async adapters exposing GitHub as the diff source and repository file
fetcher of the review pipeline. Blocking client calls run in worker
threads.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..models.diff import PRDiffInput, RepoFile
from ..retrieval.retriever import FileFetcher
from .client import GitHubAPIError, GitHubClient, split_repository
from .parser import PRDiffParser


logger = logging.getLogger(__name__)


MAX_FILES = 50
MAX_FILE_SIZE = 10000
MAX_ADRS = 20


class GitHubDiffSource:
    """Supplies pull request diffs from GitHub"""

    def __init__(self, client: GitHubClient, parser: Optional[PRDiffParser] = None):
        self.client = client
        self.parser = parser or PRDiffParser()

    def _fetch_sync(self, repository: str, pr_number: int) -> PRDiffInput:
        owner, repo = split_repository(repository)
        pr_data = self.client.get_pull_request(owner, repo, pr_number)
        files_data = self.client.get_pull_request_files(owner, repo, pr_number)
        return self.parser.parse_pr_diff(pr_data, files_data)

    async def fetch_diff(self, repository: str, pr_number: int) -> PRDiffInput:
        """
        Fetch a pull request diff.

        Raises:
            GitHubAPIError: If GitHub cannot be reached or the PR is missing
        """
        return await asyncio.to_thread(self._fetch_sync, repository, pr_number)


class GitHubFileFetcher(FileFetcher):
    """
    Fetches repository code files from GitHub.

    At most ``max_files`` code files are fetched and files larger than
    ``max_file_size`` characters are skipped. Results are cached per
    repository; concurrent first requests for one repository share a
    single fetch.
    """

    def __init__(
        self,
        client: GitHubClient,
        parser: Optional[PRDiffParser] = None,
        branch: Optional[str] = None,
        max_files: int = MAX_FILES,
        max_file_size: int = MAX_FILE_SIZE,
    ):
        self.client = client
        self.parser = parser or PRDiffParser()
        self.branch = branch
        self.max_files = max_files
        self.max_file_size = max_file_size
        self._cache: Dict[str, List[RepoFile]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _fetch_contents(self, owner: str, repo: str, paths: List[str], branch: str) -> List[RepoFile]:
        files = []
        for path in paths:
            try:
                content = self.client.get_file_content(owner, repo, path, ref=branch)
            except GitHubAPIError as e:
                logger.warning(f"Failed to fetch {path}: {e}")
                continue

            if len(content) > self.max_file_size:
                logger.debug(f"Skipping {path} (too large)")
                continue

            files.append(RepoFile(path=path, content=content))
        return files

    def _fetch_sync(self, repository: str) -> List[RepoFile]:
        owner, repo = split_repository(repository)
        branch = self.branch or self.client.get_default_branch(owner, repo)
        tree = self.client.get_tree(owner, repo, branch)

        code_paths = self.parser.select_code_files(tree)
        logger.info(f"Found {len(code_paths)} code files, fetching up to {self.max_files}")

        files = self._fetch_contents(owner, repo, code_paths[:self.max_files], branch)
        logger.info(f"Fetched {len(files)} files from {repository}")
        return files

    async def fetch_files(self, repository: str) -> List[RepoFile]:
        if repository in self._cache:
            return list(self._cache[repository])

        lock = self._locks.setdefault(repository, asyncio.Lock())
        async with lock:
            if repository not in self._cache:
                self._cache[repository] = await asyncio.to_thread(self._fetch_sync, repository)
        return list(self._cache[repository])

    def _fetch_adrs_sync(self, repository: str) -> List[RepoFile]:
        owner, repo = split_repository(repository)
        branch = self.branch or self.client.get_default_branch(owner, repo)
        adr_paths = self.parser.select_adr_files(self.client.get_tree(owner, repo, branch))
        logger.info(f"Found {len(adr_paths)} ADR files in {repository}")
        return self._fetch_contents(owner, repo, adr_paths[:MAX_ADRS], branch)

    async def fetch_adrs(self, repository: str) -> List[RepoFile]:
        """Architecture decision records of a repository (not cached)."""
        return await asyncio.to_thread(self._fetch_adrs_sync, repository)

    def invalidate(self, repository: Optional[str] = None) -> None:
        if repository is None:
            self._cache.clear()
        else:
            self._cache.pop(repository, None)
