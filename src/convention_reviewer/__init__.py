"""
Convention Reviewer

팀 컨벤션 기반 Pull Request 리뷰 오케스트레이션 엔진
"""

__version__ = "1.0.0"

from .api import ConventionReviewerAPI
from .config import AppConfig

__all__ = ["ConventionReviewerAPI", "AppConfig"]
