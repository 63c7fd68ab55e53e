"""
Prompt Builder

Builds the prompts sent to language models: routing plans, category-scoped
reviews, convention extraction, violation explanations, review summaries
and question answers.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..models.convention import Convention
from ..models.diff import DiffFile, PRDiffInput
from ..models.review import RawViolation
from .base import ChatMessage


logger = logging.getLogger(__name__)


# What each category reviewer looks for
CATEGORY_FOCUS = {
    "naming": "names of files, classes, functions, variables and constants",
    "structure": "module layout, layering, imports and where code lives",
    "pattern": "recurring implementation patterns, data access and API usage",
    "testing": "test structure, isolation, coverage and fixtures",
    "error-handling": "how errors are raised, propagated, logged and recovered from",
    "security": "secrets, input validation, authentication and unsafe calls",
    "performance": "algorithmic cost, I/O in loops, caching and resource use",
    "documentation": "docstrings, comments, READMEs and public API descriptions",
}

SOURCE_INSTRUCTIONS = {
    "codebase": """You are analyzing a team's codebase to extract coding conventions and patterns.

Analyze the following code and extract any conventions you can identify:
- Naming conventions (variables, functions, files, classes)
- Code structure patterns
- Error handling approaches
- Testing patterns
- Common patterns and idioms""",
    "adr": """You are analyzing Architecture Decision Records (ADRs) to extract team conventions.

ADRs document decisions that become team standards. Extract the coding
conventions, patterns and rules the team decided to follow.""",
    "pr-review": """You are analyzing past pull request reviews to learn what the team considers important.

Look for repeated feedback, common corrections, style preferences and
quality expectations.""",
    "incident": """You are analyzing incident reports to extract lessons that became conventions.

Look for root causes that led to new rules, practices adopted to prevent
recurrence, and patterns to avoid.""",
}

EXTRACTION_FORMAT = """Respond with JSON only, in this shape:
{"conventions": [{"category": "naming|structure|pattern|testing|error-handling|security|performance|documentation",
  "rule": "the convention in imperative form",
  "description": "why the convention exists",
  "examples": [{"good": "...", "bad": "...", "explanation": "..."}],
  "tags": ["..."],
  "confidence": 0.0}]}"""

VIOLATION_FORMAT = """Respond with a JSON array only. Each element:
{"issue": "what is wrong", "conventionId": "id of the violated rule",
 "file": "path of the file", "line": 1, "code": "offending code",
 "severity": "error|warning|suggestion",
 "reasoning": "which rule is broken and how",
 "impact": "what goes wrong if this ships",
 "recommendation": "the concrete fix"}
Respond with [] when nothing violates the rules."""


class PromptBuilder:
    """
    Builds structured prompts for the review pipeline.

    Chat-style prompts put the role and rules in the system message so a
    model (or a test double) can be identified by its system text.
    """

    def __init__(self, max_diff_chars: int = 8000, max_examples: int = 2):
        """
        Initialize prompt builder.

        Args:
            max_diff_chars: Diff text beyond this length is truncated
            max_examples: Examples shown per convention
        """
        self.max_diff_chars = max_diff_chars
        self.max_examples = max_examples

    def build_routing_messages(
        self,
        pr_diff: PRDiffInput,
        categories: Sequence[str],
    ) -> List[ChatMessage]:
        """
        Build the routing request. Only file paths and change stats are
        included, never diff content.
        """
        category_lines = "\n".join(
            f"- {category}: {CATEGORY_FOCUS.get(category, category)}" for category in categories
        )
        system = f"""You are the Reviewer Orchestrator for a team code review.

Decide which specialist reviewers should examine each changed file.
Available reviewers:
{category_lines}

Rules:
- Assign each file only the reviewers that are relevant to it
- Every file must get at least one reviewer
- Use only the reviewer names listed above

Respond with a JSON array only:
[{{"filePath": "path/of/file", "assignedReviewers": ["naming"], "reasoning": "short reason"}}]"""

        file_lines = "\n".join(
            f"- {f.path} ({f.status}, +{f.additions}/-{f.deletions})" for f in pr_diff.files
        )
        user = f"""Pull request #{pr_diff.pr_number}: {pr_diff.title}

Changed files:
{file_lines}"""

        return [ChatMessage.system(system), ChatMessage.user(user)]

    def build_category_review_messages(
        self,
        category: str,
        files: Sequence[DiffFile],
        conventions: Sequence[Convention],
    ) -> List[ChatMessage]:
        """Build a review request scoped to one category's files and rules."""
        system = f"""You are the {category} reviewer in a team code review.
You check {CATEGORY_FOCUS.get(category, category)}.

{category.upper()} RULES:
{self.format_conventions(conventions)}

Review only against these rules. Do not report anything the rules do not cover.
Only report problems in lines added by the diff.

{VIOLATION_FORMAT}"""

        user = "Files to review:\n\n" + "\n\n".join(self.format_diff_file(f) for f in files)
        return [ChatMessage.system(system), ChatMessage.user(user)]

    def build_extraction_prompt(self, source_type: str, content: str) -> str:
        instructions = SOURCE_INSTRUCTIONS.get(source_type, SOURCE_INSTRUCTIONS["codebase"])
        return f"""{instructions}

Content:
{content}

{EXTRACTION_FORMAT}"""

    def build_explanation_prompt(
        self,
        violation: RawViolation,
        convention: Convention,
        approved_pattern: str,
    ) -> str:
        return f"""You are a calm engineering tutor.

Violation:
{violation.file}:{violation.line}
{violation.code or violation.issue}

Team rule:
{convention.rule}

Why this rule exists:
{convention.description}

Approved pattern:
{approved_pattern}

Instructions:
Keep the explanation concise (4-6 sentences).
Teach. Do not shame."""

    def build_summary_prompt(self, violations: Sequence[RawViolation]) -> str:
        items = "\n---\n".join(
            f"Type: {v.category}\nIssue: {v.issue}\nImpact: {v.impact}" for v in violations
        )
        return f"""You are a senior engineer explaining this pull request to a junior developer.

Rules:
- Do not explain team rules
- Do not restate conventions
- Explain what is wrong in this pull request
- Be encouraging and human

Violations:
{items}

Write a 5-7 sentence summary."""

    def build_answer_prompt(
        self,
        question: str,
        files: Sequence[Dict[str, str]] = (),
        conventions: Sequence[Convention] = (),
        file_tree: Optional[str] = None,
        review_findings: Sequence[RawViolation] = (),
    ) -> str:
        """
        Build a grounded question-answering prompt.

        Args:
            question: The user's question
            files: Dicts with ``path`` and ``content``
            conventions: Relevant team conventions
            file_tree: Directory tree for structural questions
            review_findings: Violations from an earlier review in the session

        Returns:
            Prompt string
        """
        sections = [
            "You are a concise engineering tutor for this team's codebase.",
            "Answer in 3-4 sentences max. Focus on the team's reasoning and ground the answer in the context below.",
        ]

        if file_tree:
            sections.append(f"Repository layout:\n{file_tree}")

        if conventions:
            sections.append(f"Team conventions:\n{self.format_conventions(conventions)}")

        for repo_file in files:
            sections.append(f"File {repo_file['path']}:\n```\n{repo_file['content']}\n```")

        if review_findings:
            findings = "\n".join(
                f"- [{v.severity}] {v.file}:{v.line} {v.issue}" for v in review_findings
            )
            sections.append(f"Findings from the current review:\n{findings}")

        sections.append(f"Question:\n{question}")
        return "\n\n".join(sections)

    def format_conventions(self, conventions: Sequence[Convention]) -> str:
        """Format convention rules for prompt inclusion."""
        if not conventions:
            return "(none)"

        formatted = []
        for convention in conventions:
            text = f"- [{convention.id}] {convention.rule}"
            if convention.description:
                text += f"\n  Why: {convention.description}"
            for example in convention.examples[:self.max_examples]:
                if example.good:
                    text += f"\n  Good: {example.good}"
                if example.bad:
                    text += f"\n  Bad: {example.bad}"
            formatted.append(text)
        return "\n".join(formatted)

    def format_diff_file(self, diff_file: DiffFile) -> str:
        diff = diff_file.diff
        if len(diff) > self.max_diff_chars:
            diff = diff[:self.max_diff_chars] + "\n... (truncated)"
        return f"File: {diff_file.path} ({diff_file.status})\n```diff\n{diff}\n```"
