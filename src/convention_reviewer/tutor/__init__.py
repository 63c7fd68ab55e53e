"""
Tutor

Explanations, review summaries and question answering
"""

from .explainer import Explainer, condense

__all__ = ['Explainer', 'condense']
