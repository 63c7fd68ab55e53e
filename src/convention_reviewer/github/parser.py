"""
PR Diff Parser

Parses GitHub API responses into the diff inputs and repository file
listings used by the reviewer.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..models.diff import DiffFile, PRDiffInput


logger = logging.getLogger(__name__)


CODE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".py", ".go", ".rs", ".java", ".kt", ".swift")


class PRDiffParser:
    """
    Parser for GitHub PR data.

    Converts GitHub API responses into PRDiffInput objects and selects the
    repository files worth fetching.
    """

    def __init__(self, code_extensions: Iterable[str] = CODE_EXTENSIONS):
        """
        Initialize PR diff parser.

        Args:
            code_extensions: File extensions (with dot) treated as code
        """
        self.code_extensions = tuple(ext.lower() for ext in code_extensions)

    def parse_pr_diff(self, pr_data: Dict, files_data: List[Dict]) -> PRDiffInput:
        """
        Parse PR data and files into a PRDiffInput.

        Args:
            pr_data: PR information from GitHub API
            files_data: List of file changes from GitHub API

        Returns:
            PRDiffInput
        """
        logger.info(f"Parsing PR diff for #{pr_data.get('number')}")

        files = [self._parse_file_change(file_data) for file_data in files_data]
        pr_diff = PRDiffInput(
            pr_number=pr_data['number'],
            title=pr_data.get('title', ''),
            files=files,
            base_branch=pr_data.get('base', {}).get('ref', ''),
            head_branch=pr_data.get('head', {}).get('ref', ''),
        )

        logger.info(
            f"Parsed PR diff: {len(files)} files, "
            f"+{pr_diff.total_additions}/-{pr_diff.total_deletions}"
        )
        return pr_diff

    def _parse_file_change(self, file_data: Dict) -> DiffFile:
        file_path = file_data['filename']
        logger.debug(f"Parsing file change: {file_path}")

        return DiffFile(
            path=file_path,
            diff=file_data.get('patch') or '',
            status=self._determine_change_type(file_data.get('status', '')),
            additions=file_data.get('additions', 0),
            deletions=file_data.get('deletions', 0),
        )

    def _determine_change_type(self, status: str) -> str:
        """
        Determine file change type from GitHub status.

        Args:
            status: GitHub file status

        Returns:
            Normalized change type
        """
        status_mapping = {
            'added': 'added',
            'removed': 'deleted',
            'modified': 'modified',
            'renamed': 'renamed',
            'copied': 'added',
        }

        return status_mapping.get(status, 'modified')

    def get_file_extension(self, file_path: str) -> Optional[str]:
        name = file_path.rsplit('/', 1)[-1]
        if '.' not in name:
            return None
        return '.' + name.rsplit('.', 1)[-1].lower()

    def is_code_file(self, file_path: str) -> bool:
        return self.get_file_extension(file_path) in self.code_extensions

    def is_adr_file(self, file_path: str) -> bool:
        path = file_path.lower()
        return path.endswith('.md') and ('adr' in path or 'decision' in path)

    def select_code_files(self, tree: List[Dict]) -> List[str]:
        """Paths of code blobs in a repository tree, in tree order."""
        return [
            entry['path'] for entry in tree
            if entry.get('type') == 'blob' and entry.get('path') and self.is_code_file(entry['path'])
        ]

    def select_adr_files(self, tree: List[Dict]) -> List[str]:
        """Paths of architecture decision records in a repository tree."""
        return [
            entry['path'] for entry in tree
            if entry.get('type') == 'blob' and entry.get('path') and self.is_adr_file(entry['path'])
        ]
