"""
Property-based tests for deduplication, scoring, routing and aggregation.
"""

import json

from hypothesis import given, settings
from hypothesis import strategies as st

from convention_reviewer.conventions.dedup import deduplicate_conventions
from convention_reviewer.models.convention import Convention, ConventionSource
from convention_reviewer.models.review import REVIEWER_CATEGORIES, RawViolation
from convention_reviewer.retrieval.scoring import rank, score_convention, score_file
from convention_reviewer.review.router import aggregate_violations
from convention_reviewer.review.routing import build_fallback_plan, parse_routing_plan


SOURCE = ConventionSource(type="codebase", reference="src/", timestamp="2024-01-01T00:00:00+00:00")

words = st.sampled_from(["camelCase", "service", "controller", "async", "tests", "errors", "Logger"])
rules = st.lists(words, min_size=1, max_size=4).map(" ".join)
categories = st.sampled_from(REVIEWER_CATEGORIES)
confidences = st.floats(min_value=0.0, max_value=1.0, allow_nan=False)
paths = st.lists(
    st.from_regex(r"src/[a-z]{1,8}/[a-z_]{1,8}\.(ts|py)", fullmatch=True),
    min_size=1,
    max_size=6,
    unique=True,
)


@st.composite
def conventions(draw):
    items = draw(st.lists(st.tuples(categories, rules, confidences), max_size=12))
    return [
        Convention(
            id=f"conv-{index}",
            category=category,
            rule=rule,
            description="",
            examples=(),
            source=SOURCE,
            confidence=confidence,
        )
        for index, (category, rule, confidence) in enumerate(items)
    ]


@st.composite
def category_results(draw):
    counts = draw(st.dictionaries(categories, st.integers(min_value=0, max_value=5)))
    return {
        category: [
            RawViolation(
                id="", category=category, issue=f"issue {n}", convention_id="conv-1",
                file="src/a.ts", line=n + 1,
            )
            for n in range(count)
        ]
        for category, count in counts.items()
    }


class TestDeduplicationProperties:
    """Properties of convention deduplication."""

    @given(conventions())
    def test_idempotent(self, items):
        once = deduplicate_conventions(items)
        assert deduplicate_conventions(once) == once

    @given(conventions())
    def test_keys_unique_and_covering(self, items):
        result = deduplicate_conventions(items)
        keys = [c.dedup_key for c in result]

        assert len(keys) == len(set(keys))
        assert set(keys) == {c.dedup_key for c in items}

    @given(conventions())
    def test_keeps_highest_confidence(self, items):
        for kept in deduplicate_conventions(items):
            group = [c.confidence for c in items if c.dedup_key == kept.dedup_key]
            assert kept.confidence == max(group)


class TestScoringProperties:
    """Properties of keyword scoring."""

    @given(rules, st.sets(words.map(str.lower)), words.map(str.lower))
    def test_convention_score_monotonic_in_keywords(self, rule, keywords, extra):
        convention = Convention(
            id="conv-1", category="naming", rule=rule, description="", examples=(),
            source=SOURCE, confidence=0.8,
        )
        assert score_convention(convention, keywords | {extra}) >= score_convention(convention, keywords)

    @given(st.text(max_size=200), st.sets(words.map(str.lower)))
    def test_file_score_non_negative(self, content, keywords):
        assert score_file("src/lib/util.ts", content, keywords) >= 0

    @given(st.lists(st.integers(min_value=-5, max_value=20)), st.integers(min_value=0, max_value=10))
    def test_rank_sorted_positive_and_limited(self, values, limit):
        ranked = rank(values, float, limit=limit)
        scores = [score for _, score in ranked]

        assert all(score > 0 for score in scores)
        assert scores == sorted(scores, reverse=True)
        assert len(ranked) <= limit

    @given(rules, words, st.sets(words.map(str.lower)), confidences)
    def test_convention_score_monotonic_in_rule_occurrences(self, rule, extra, keywords, confidence):
        keywords = keywords | {extra.lower()}

        def convention(text):
            return Convention(
                id="conv-1", category="naming", rule=text, description="", examples=(),
                source=SOURCE, confidence=confidence,
            )

        assert score_convention(convention(f"{rule} {extra}"), keywords) >= score_convention(convention(rule), keywords)


class TestRoutingProperties:
    """Properties of routing plans and their fallback."""

    @given(paths, st.lists(categories, min_size=1, unique=True))
    def test_fallback_covers_every_file(self, file_paths, cats):
        plan = build_fallback_plan(file_paths, cats, "all")

        assert [r.file_path for r in plan] == file_paths
        assert all(r.assigned_reviewers == frozenset(cats) for r in plan)

    @given(paths)
    def test_fallback_none_is_empty(self, file_paths):
        assert build_fallback_plan(file_paths, REVIEWER_CATEGORIES, "none") == ()

    @given(paths, st.data())
    @settings(max_examples=50)
    def test_parsed_plan_stays_within_pull_request(self, file_paths, data):
        entries = [
            {
                "filePath": path,
                "assignedReviewers": data.draw(st.lists(categories, min_size=1, max_size=3)),
            }
            for path in data.draw(st.lists(st.sampled_from(file_paths), min_size=1))
        ]
        result = parse_routing_plan(json.dumps(entries), file_paths, REVIEWER_CATEGORIES)

        assert result.ok
        assert [r.file_path for r in result.plan] == file_paths
        for routing in result.plan:
            assert routing.assigned_reviewers
            assert routing.assigned_reviewers <= set(REVIEWER_CATEGORIES)

    @given(st.text(max_size=100), paths)
    def test_garbage_never_raises(self, content, file_paths):
        result = parse_routing_plan(content, file_paths, REVIEWER_CATEGORIES)
        assert result.ok or result.plan == ()


class TestAggregationProperties:
    """Properties of violation id assignment."""

    @given(category_results(), category_results())
    def test_ids_unique_and_prefixed(self, first, second):
        merged = aggregate_violations(second, aggregate_violations(first))
        ids = [v.id for v in merged]

        assert len(ids) == len(set(ids))
        for violation in merged:
            assert violation.id.startswith(f"{violation.category}-")

    @given(category_results())
    def test_count_preserved(self, results):
        merged = aggregate_violations(results)
        assert len(merged) == sum(len(v) for v in results.values())
