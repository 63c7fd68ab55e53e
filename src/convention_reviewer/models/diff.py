"""
PR Diff Data Models

Pull request diff inputs supplied by a diff source for one review.
"""

from dataclasses import dataclass, field
from typing import List


FILE_STATUSES = ("added", "modified", "deleted", "renamed")


@dataclass
class DiffFile:
    """A single changed file in a pull request"""
    path: str
    diff: str
    status: str = "modified"
    additions: int = 0
    deletions: int = 0

    def __post_init__(self):
        """Validate file change data"""
        if not self.path.strip():
            raise ValueError("File path cannot be empty")
        if self.status not in FILE_STATUSES:
            raise ValueError(f"Invalid status: {self.status}")
        if self.additions < 0 or self.deletions < 0:
            raise ValueError("Addition and deletion counts must be non-negative")

    @property
    def extension(self) -> str:
        name = self.path.rsplit("/", 1)[-1]
        return name.rsplit(".", 1)[-1].lower() if "." in name else ""


@dataclass
class PRDiffInput:
    """Everything the reviewer needs to know about one pull request"""
    pr_number: int
    title: str
    files: List[DiffFile] = field(default_factory=list)
    base_branch: str = ""
    head_branch: str = ""

    def __post_init__(self):
        if self.pr_number < 0:
            raise ValueError("PR number must be non-negative")

    @property
    def paths(self) -> List[str]:
        return [f.path for f in self.files]

    @property
    def total_additions(self) -> int:
        return sum(f.additions for f in self.files)

    @property
    def total_deletions(self) -> int:
        return sum(f.deletions for f in self.files)

    def get_file(self, path: str) -> DiffFile:
        for diff_file in self.files:
            if diff_file.path == path:
                return diff_file
        raise KeyError(path)


@dataclass(frozen=True)
class RepoFile:
    """A repository file as returned by a file fetcher"""
    path: str
    content: str
