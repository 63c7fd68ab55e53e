"""
GitHub Integration

GitHub API client, PR diff parsing and async diff/file sources
"""

from .client import GitHubAPIError, GitHubClient, RateLimitExceeded
from .parser import PRDiffParser
from .sources import GitHubDiffSource, GitHubFileFetcher

__all__ = [
    'GitHubAPIError',
    'GitHubClient',
    'RateLimitExceeded',
    'PRDiffParser',
    'GitHubDiffSource',
    'GitHubFileFetcher',
]
