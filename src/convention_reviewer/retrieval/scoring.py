"""
Relevance Scoring

Deterministic keyword scoring used to decide which conventions and files are
worth sending to a language model. Everything here is pure and does no I/O.
"""

import re
from collections import OrderedDict
from typing import Callable, Iterable, List, Optional, Set, Tuple, TypeVar

from ..models.convention import Convention


T = TypeVar("T")


QUESTION_TYPES = ("structure", "howto", "specific", "convention", "general")

# Checked in order; the first family with a matching pattern wins.
_QUESTION_PATTERNS = (
    ("structure", (
        re.compile(r"folder|directory|structure|layout|architect|organiz|overview|codebase|repo\b|project\b", re.I),
        re.compile(r"how is .*(structured|organized|laid out)", re.I),
        re.compile(r"what .*(folders|directories|modules)", re.I),
    )),
    ("howto", (
        re.compile(r"how (do|does|to|can|should|would)", re.I),
        re.compile(r"what happens when", re.I),
        re.compile(r"explain how", re.I),
    )),
    ("specific", (
        re.compile(r"\.(ts|js|py|go|java|tsx|jsx)\b", re.I),
        re.compile(r"function|class|method|file|module|component", re.I),
        re.compile(r"where is|find|locate", re.I),
    )),
    ("convention", (
        re.compile(r"convention|naming|pattern|rule|standard|style|best practice", re.I),
        re.compile(r"should i|should we|is it ok|is it okay", re.I),
    )),
)

STOP_WORDS = frozenset("""
the a an is are was were be been being have has had do does did will would could
should may might must shall can need dare ought used to of in for on with at by
from as into through during before after above below between under again further
then once here there when where why how all each few more most other some such no
nor not only own same so than too very just and but if or because until while this
that these those what which who whom i you he she it we they me him her us them my
your his its our their myself yourself himself herself itself explain tell show
describe about please thanks
""".split())

_PUNCTUATION = re.compile(r"[`'\"{}()\[\]<>,;:!?*#=+|\\]")
_IDENTIFIER = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*(?:[A-Z][a-z]+)+|[a-z]+_[a-z_]+")

ENTRY_POINT_PATTERN = re.compile(r"index|main|app|server|router|service|controller|api", re.I)

RULE_WEIGHT = 10
DESCRIPTION_WEIGHT = 5
TAG_WEIGHT = 8
CATEGORY_WEIGHT = 6

PATH_WEIGHT = 15
CONTENT_WEIGHT = 2
CONTENT_CAP = 20
ENTRY_POINT_BOOST = 1.3


def classify_question(text: str) -> str:
    """Classify a question as structure, howto, specific, convention or general."""
    for question_type, patterns in _QUESTION_PATTERNS:
        if any(pattern.search(text) for pattern in patterns):
            return question_type
    return "general"


def extract_keywords(text: str) -> Set[str]:
    """
    Extract search keywords from free text.

    Words are lowercased, stripped of punctuation and filtered against a stop
    word list; camelCase, PascalCase and snake_case identifiers found in the
    original text are added case-folded.

    Args:
        text: Question or diff text

    Returns:
        Set of keywords
    """
    cleaned = _PUNCTUATION.sub(" ", text.lower())

    keywords = set()
    for raw_word in cleaned.split():
        word = raw_word.strip(".-/")
        if len(word) <= 2 or word in STOP_WORDS or word.isdigit():
            continue
        keywords.add(word)

    keywords.update(identifier.lower() for identifier in _IDENTIFIER.findall(text))
    return keywords


def score_convention(convention: Convention, keywords: Iterable[str]) -> float:
    """Additive keyword score for a convention, scaled by its confidence."""
    rule = convention.rule.lower()
    description = convention.description.lower()
    tags = [tag.lower() for tag in convention.tags]
    category = convention.category.lower()

    score = 0.0
    for keyword in keywords:
        if keyword in rule:
            score += RULE_WEIGHT
        if keyword in description:
            score += DESCRIPTION_WEIGHT
        if any(keyword in tag for tag in tags):
            score += TAG_WEIGHT
        if keyword in category:
            score += CATEGORY_WEIGHT

    return score * convention.confidence


def score_file(path: str, content: str, keywords: Iterable[str]) -> float:
    """Keyword score for a repository file; entry points get a boost."""
    path_lower = path.lower()
    content_lower = content.lower()

    score = 0.0
    for keyword in keywords:
        if keyword in path_lower:
            score += PATH_WEIGHT
        occurrences = content_lower.count(keyword)
        score += min(occurrences * CONTENT_WEIGHT, CONTENT_CAP)

    if ENTRY_POINT_PATTERN.search(path):
        score *= ENTRY_POINT_BOOST

    return score


def rank(
    items: Iterable[T],
    score: Callable[[T], float],
    limit: Optional[int] = None,
) -> List[Tuple[T, float]]:
    """
    Score items, drop non-positive scores and sort descending.

    The sort is stable, so equal scores keep their input order.
    """
    scored = [(item, score(item)) for item in items]
    positive = [pair for pair in scored if pair[1] > 0]
    positive.sort(key=lambda pair: -pair[1])
    if limit is not None:
        positive = positive[:max(limit, 0)]
    return positive


def is_entry_point(path: str) -> bool:
    return bool(ENTRY_POINT_PATTERN.search(path))


def build_file_tree(paths: Iterable[str]) -> str:
    """Render paths grouped by directory, one header line per directory."""
    tree = OrderedDict()
    for path in paths:
        directory, _, name = path.rpartition("/")
        tree.setdefault(directory or ".", []).append(name)

    lines = []
    for directory in sorted(tree):
        lines.append(f"{directory}/")
        for name in sorted(tree[directory]):
            lines.append(f"    {name}")
    return "\n".join(lines)
