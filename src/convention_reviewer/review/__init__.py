"""
Review

Routing plans, category sub-reviewers and violation aggregation
"""

from .normalize import normalize_violation
from .router import ReviewerRouter, aggregate_violations
from .routing import RoutingPlanResult, build_fallback_plan, parse_routing_plan
from .sub_reviewers import CategoryReviewer

__all__ = [
    'normalize_violation',
    'ReviewerRouter',
    'aggregate_violations',
    'RoutingPlanResult',
    'build_fallback_plan',
    'parse_routing_plan',
    'CategoryReviewer',
]
