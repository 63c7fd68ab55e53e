"""
GitHub API Client

Blocking REST client for the pull request and repository endpoints the
reviewer reads from. Requests share one session with retries; remaining
rate limit is tracked from response headers.
"""

import base64
import time
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple
from datetime import datetime
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


logger = logging.getLogger(__name__)


# Requests are refused locally once this few calls remain before reset
RATE_LIMIT_FLOOR = 10
PAGE_SIZE = 100


class GitHubAPIError(Exception):
    """GitHub API related errors"""
    def __init__(self, message: str, status_code: Optional[int] = None, response_data: Optional[Dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class RateLimitExceeded(GitHubAPIError):
    """GitHub API rate limit exceeded"""
    def __init__(self, reset_time: datetime):
        super().__init__(f"Rate limit exceeded. Resets at {reset_time}")
        self.reset_time = reset_time


def split_repository(repository: str) -> Tuple[str, str]:
    """Split ``owner/repo`` into its parts."""
    owner, _, repo = repository.partition('/')
    if not owner or not repo or '/' in repo:
        raise ValueError(f"Repository must be 'owner/repo', got: {repository!r}")
    return owner, repo


class GitHubClient:
    """
    Read-only GitHub REST client.

    Covers pull request metadata and changed files, repository metadata,
    recursive trees and file contents.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = "https://api.github.com",
        timeout: Optional[float] = 30,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub personal access token; public repositories work without one
            base_url: GitHub API base URL (default: https://api.github.com)
            timeout: Per-request timeout in seconds
        """
        self.token = token
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = self._create_session()
        self.rate_limit_remaining = 5000
        self.rate_limit_reset = datetime.now()

    def _create_session(self) -> requests.Session:
        session = requests.Session()

        adapter = HTTPAdapter(max_retries=Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
        ))
        for prefix in ("http://", "https://"):
            session.mount(prefix, adapter)

        session.headers['Accept'] = 'application/vnd.github.v3+json'
        session.headers['User-Agent'] = 'Convention-Reviewer/1.0'
        if self.token:
            session.headers['Authorization'] = f'token {self.token}'

        return session

    def _guard_rate_limit(self) -> None:
        if self.rate_limit_remaining > RATE_LIMIT_FLOOR:
            return
        seconds_left = (self.rate_limit_reset - datetime.now()).total_seconds()
        if seconds_left > 0:
            logger.warning(
                f"Only {self.rate_limit_remaining} GitHub requests left, "
                f"refusing until reset in {seconds_left:.1f}s"
            )
            raise RateLimitExceeded(self.rate_limit_reset)

    def _record_rate_limit(self, headers: Any) -> None:
        remaining = headers.get('X-RateLimit-Remaining')
        if remaining is not None:
            self.rate_limit_remaining = int(remaining)
        reset = headers.get('X-RateLimit-Reset')
        if reset is not None:
            self.rate_limit_reset = datetime.fromtimestamp(int(reset))

    def _make_request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """
        Send one API request.

        Args:
            method: HTTP method
            endpoint: Path below the base URL
            **kwargs: Passed through to ``requests``; ``timeout`` defaults
                to the client timeout

        Returns:
            Successful response

        Raises:
            GitHubAPIError: On transport failures and non-2xx responses
            RateLimitExceeded: When GitHub or the local guard refuses the call
        """
        self._guard_rate_limit()

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise GitHubAPIError(f"Request failed: {e}")

        self._record_rate_limit(response.headers)

        if response.status_code == 429:
            reset = response.headers.get('X-RateLimit-Reset', time.time() + 3600)
            raise RateLimitExceeded(datetime.fromtimestamp(int(reset)))

        if not response.ok:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {}
            message = error_data.get('message', 'Unknown error') if isinstance(error_data, dict) else 'Unknown error'
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code} - {message}",
                status_code=response.status_code,
                response_data=error_data,
            )

        return response

    def _get_json(self, endpoint: str, **params) -> Any:
        return self._make_request('GET', endpoint, params=params or None).json()

    def _paginate(self, endpoint: str) -> Iterator[Dict]:
        page = 1
        while True:
            items = self._get_json(endpoint, page=page, per_page=PAGE_SIZE)
            if not items:
                return
            yield from items
            if len(items) < PAGE_SIZE:
                return
            page += 1

    def get_pull_request(self, owner: str, repo: str, pr_number: int) -> Dict:
        logger.info(f"Fetching PR {owner}/{repo}#{pr_number}")
        return self._get_json(f'/repos/{owner}/{repo}/pulls/{pr_number}')

    def get_pull_request_files(self, owner: str, repo: str, pr_number: int) -> List[Dict]:
        """
        Changed files of a pull request, across every page.

        Returns:
            File entries (``filename``, ``status``, ``patch``, ...)
        """
        files = list(self._paginate(f'/repos/{owner}/{repo}/pulls/{pr_number}/files'))
        logger.info(f"{owner}/{repo}#{pr_number} changes {len(files)} files")
        return files

    def get_repository_info(self, owner: str, repo: str) -> Dict:
        return self._get_json(f'/repos/{owner}/{repo}')

    def get_default_branch(self, owner: str, repo: str) -> str:
        return self.get_repository_info(owner, repo).get('default_branch', 'main')

    def get_tree(self, owner: str, repo: str, branch: str) -> List[Dict]:
        """
        Recursive file tree of a branch.

        Args:
            owner: Repository owner
            repo: Repository name
            branch: Branch name

        Returns:
            Tree entries (``path``, ``type``, ``size``, ...)
        """
        logger.info(f"Fetching tree for {owner}/{repo}@{branch}")

        ref = self._get_json(f'/repos/{owner}/{repo}/git/ref/heads/{branch}')
        tree = self._get_json(f"/repos/{owner}/{repo}/git/trees/{ref['object']['sha']}", recursive='true')

        if tree.get('truncated'):
            logger.warning(f"Tree for {owner}/{repo}@{branch} was truncated by GitHub")
        return tree.get('tree', [])

    def get_file_content(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> str:
        """
        Decoded text content of a file.

        Args:
            owner: Repository owner
            repo: Repository name
            path: File path within the repository
            ref: Branch, tag or commit; default branch when omitted

        Raises:
            GitHubAPIError: If the path is not a file
        """
        params = {'ref': ref} if ref else {}
        data = self._get_json(f'/repos/{owner}/{repo}/contents/{path}', **params)

        if isinstance(data, list) or data.get('type') != 'file':
            raise GitHubAPIError(f"Not a file: {path}")

        if data.get('encoding') == 'base64':
            return base64.b64decode(data.get('content', '')).decode('utf-8', errors='replace')
        return data.get('content', '')
