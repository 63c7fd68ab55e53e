"""
Retrieval

Relevance scoring and context retrieval for questions and diffs
"""

from .retriever import (
    FileFetcher,
    RelevanceRetriever,
    RetrievalResult,
    ScoredConvention,
    ScoredFile,
    StaticFileFetcher,
    select_conventions_for_diff,
)
from .scoring import build_file_tree, classify_question, extract_keywords, score_convention, score_file

__all__ = [
    "FileFetcher",
    "RelevanceRetriever",
    "RetrievalResult",
    "ScoredConvention",
    "ScoredFile",
    "StaticFileFetcher",
    "select_conventions_for_diff",
    "build_file_tree",
    "classify_question",
    "extract_keywords",
    "score_convention",
    "score_file",
]
