"""
Output Formatting

Renders explained feedback for pull request or console delivery
"""

from .feedback import FeedbackFormatter, deduplicate_feedback

__all__ = ['FeedbackFormatter', 'deduplicate_feedback']
