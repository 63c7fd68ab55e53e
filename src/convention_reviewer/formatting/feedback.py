"""
Feedback Formatter

Renders explained feedback as markdown comments plus a review summary, for
delivery to a pull request or a console.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..models.review import SEVERITY_ORDER, ExplainedFeedback, FeedbackOutput, FormattedComment


logger = logging.getLogger(__name__)


SEVERITY_EMOJI = {
    "error": "🔴",
    "warning": "🟡",
    "suggestion": "💡",
}

DELIVERY_TARGETS = ("console", "github")


def deduplicate_feedback(feedback: Sequence[ExplainedFeedback]) -> List[ExplainedFeedback]:
    """Keep the first feedback item per ``file:line:category``"""
    seen = set()
    unique = []
    for item in feedback:
        key = f"{item.violation.file}:{item.violation.line}:{item.violation.category}"
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


class FeedbackFormatter:
    """
    Formats explained feedback for delivery.

    Comments are ordered by severity, then file and line; bodies longer
    than ``max_comment_length`` are truncated at a line break.
    """

    def __init__(self, delivery_target: str = "console", max_comment_length: int = 65536):
        """
        Initialize feedback formatter.

        Args:
            delivery_target: ``console`` or ``github``
            max_comment_length: Longest comment body accepted by the target
        """
        if delivery_target not in DELIVERY_TARGETS:
            raise ValueError(f"Invalid delivery target: {delivery_target}")
        self.delivery_target = delivery_target
        self.max_comment_length = max_comment_length

    def format(
        self,
        feedback: Sequence[ExplainedFeedback],
        pr_number: int,
        review_summary: Optional[str] = None,
    ) -> FeedbackOutput:
        """
        Format feedback into comments and a summary.

        Args:
            feedback: Explained feedback items
            pr_number: Pull request number
            review_summary: Narrative summary, if one was generated

        Returns:
            FeedbackOutput
        """
        unique = deduplicate_feedback(feedback)
        if len(unique) < len(feedback):
            logger.info(f"Reduced feedback from {len(feedback)} to {len(unique)} items")

        ordered = sorted(
            unique,
            key=lambda f: (SEVERITY_ORDER[f.violation.severity], f.violation.file, f.violation.line),
        )
        comments = [self._to_comment(item) for item in ordered]

        return FeedbackOutput(
            pr_number=pr_number,
            summary=self.build_summary(comments, review_summary),
            comments=comments,
            delivery_target=self.delivery_target,
        )

    def _to_comment(self, feedback: ExplainedFeedback) -> FormattedComment:
        violation = feedback.violation
        return FormattedComment(
            id=f"comment-{feedback.id}",
            file=violation.file,
            line=violation.line,
            body=self._truncate_comment(self.format_comment(feedback)),
            severity=violation.severity,
            category=violation.category,
        )

    def format_comment(self, feedback: ExplainedFeedback) -> str:
        """Render one feedback item as a markdown comment body."""
        violation = feedback.violation
        emoji = SEVERITY_EMOJI.get(violation.severity, "")

        body = f"{emoji} **{violation.category.upper()}**: {violation.issue}\n\n"
        body += f"**Why this matters:** {feedback.explanation}\n\n"
        body += f"**What to do:** {feedback.team_expectation}"

        if feedback.code_example:
            body += (
                f"\n\n**Example fix:**\n```diff\n- {feedback.code_example.before}\n"
                f"+ {feedback.code_example.after}\n```"
            )

        if feedback.convention_reference:
            body += f"\n\n_Convention: {feedback.convention_reference['rule']}_"

        return body

    def build_summary(self, comments: Sequence[FormattedComment], review_summary: Optional[str] = None) -> str:
        counts = {severity: 0 for severity in SEVERITY_ORDER}
        for comment in comments:
            counts[comment.severity] = counts.get(comment.severity, 0) + 1

        lines = []
        if review_summary:
            lines.append(review_summary.strip())
            lines.append("")

        if comments:
            lines.append(
                f"**{len(comments)} issues**: {counts['error']} errors, "
                f"{counts['warning']} warnings, {counts['suggestion']} suggestions"
            )
        else:
            lines.append("**No convention issues found.**")

        return "\n".join(lines)

    def _truncate_comment(self, comment: str) -> str:
        """Truncate comment to fit the delivery target's limit."""
        if len(comment) <= self.max_comment_length:
            return comment

        truncation_msg = "\n\n---\n*Comment truncated due to length limit.*"
        truncate_at = max(self.max_comment_length - len(truncation_msg), 0)
        truncated = comment[:truncate_at]

        last_newline = truncated.rfind('\n')
        if last_newline > truncate_at - 500:
            truncated = truncated[:last_newline]

        return truncated + truncation_msg

    def to_github(self, output: FeedbackOutput) -> Dict[str, Any]:
        """Shape output as a pull request review payload."""
        return {
            "body": output.summary,
            "event": "REQUEST_CHANGES" if output.has_errors else "COMMENT",
            "comments": [
                {"path": c.file, "line": c.line, "body": c.body}
                for c in output.comments
            ],
        }

    def to_console(self, output: FeedbackOutput) -> str:
        """Render output as plain text for a terminal."""
        rule = "=" * 60
        divider = "-" * 60

        parts = [
            rule,
            f"PR #{output.pr_number} Review Summary",
            rule,
            "",
            output.summary,
            "",
            divider,
            "Detailed Feedback:",
            divider,
            "",
        ]
        for comment in output.comments:
            parts.append(f"{comment.file}:{comment.line}")
            parts.append(comment.body)
            parts.append("")
            parts.append("-" * 40)
            parts.append("")

        return "\n".join(parts)

    def get_comment_statistics(self, output: FeedbackOutput) -> Dict[str, Any]:
        """Get statistics about formatted comments."""
        by_category: Dict[str, int] = {}
        by_severity: Dict[str, int] = {}
        for comment in output.comments:
            by_category[comment.category] = by_category.get(comment.category, 0) + 1
            by_severity[comment.severity] = by_severity.get(comment.severity, 0) + 1

        return {
            'total_comments': len(output.comments),
            'by_category': by_category,
            'by_severity': by_severity,
            'files_affected': len({c.file for c in output.comments}),
        }
