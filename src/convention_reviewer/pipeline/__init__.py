"""
Pipeline

State machine sequencing review, question and learn runs
"""

from .machine import END, ENTRY_NODES, TRANSITIONS, ReviewPipeline, route_trigger
from .nodes import PipelineContext, QuestionAnswer

__all__ = [
    'END',
    'ENTRY_NODES',
    'TRANSITIONS',
    'ReviewPipeline',
    'route_trigger',
    'PipelineContext',
    'QuestionAnswer',
]
