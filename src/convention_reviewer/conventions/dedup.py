"""
Convention Deduplication

Collapses conventions that state the same rule in the same category.
"""

from typing import Dict, Iterable, List

from ..models.convention import Convention


def deduplicate_conventions(conventions: Iterable[Convention]) -> List[Convention]:
    """
    Keep one convention per ``category:rule`` key.

    On a collision the higher confidence wins; on a tie the first seen is
    kept. Output order follows the first appearance of each key, so the
    function is idempotent.

    Args:
        conventions: Candidate conventions

    Returns:
        Deduplicated conventions
    """
    kept: Dict[str, Convention] = {}
    for convention in conventions:
        key = convention.dedup_key
        current = kept.get(key)
        if current is None or convention.confidence > current.confidence:
            kept[key] = convention
    return list(kept.values())
