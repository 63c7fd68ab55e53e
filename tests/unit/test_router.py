"""
Unit tests for the reviewer router and aggregator.
"""

import asyncio
import json
import re

import pytest

from convention_reviewer.llm.base import LanguageModelError, LLMResponse, system_text
from convention_reviewer.models.diff import PRDiffInput
from convention_reviewer.models.review import RawViolation
from convention_reviewer.review.router import ReviewerRouter, aggregate_violations


CONTROLLER = "src/controllers/user_controller.ts"
PAYMENT = "src/services/payment.service.ts"
AUTH_SPEC = "src/tests/auth.spec.ts"


def violation(category: str, file: str = "a.ts", line: int = 1, vid: str = "") -> RawViolation:
    return RawViolation(id=vid, category=category, issue="x", convention_id="c", file=file, line=line)


class TestReviewerRouter:
    """Unit tests for routed review."""

    @pytest.mark.asyncio
    async def test_returns_violations_from_all_sub_reviewers(self, review_model, pr_diff, conventions):
        router = ReviewerRouter(review_model)
        outcome = await router.review(pr_diff, conventions)

        assert outcome.reviewed_files == [CONTROLLER, PAYMENT, AUTH_SPEC]
        assert not outcome.used_fallback_plan
        assert {v.category for v in outcome.violations} == {"naming", "structure", "pattern", "testing"}
        assert all(v.is_agentic for v in outcome.violations)

    @pytest.mark.asyncio
    async def test_naming_violation_for_controller(self, review_model, pr_diff, conventions):
        """Test the naming reviewer flags get_user in the controller."""
        outcome = await ReviewerRouter(review_model).review(pr_diff, conventions)

        naming = [v for v in outcome.violations if v.category == "naming"]
        assert len(naming) == 1
        assert naming[0].file == CONTROLLER
        assert naming[0].code == "get_user"

    @pytest.mark.asyncio
    async def test_sub_reviewers_only_report_assigned_files(
        self, review_model, pr_diff, conventions, mock_violations
    ):
        """Test a violation for a file outside the category's assignment is dropped."""
        stray = dict(mock_violations["naming"][0], file=AUTH_SPEC, line=2)
        review_model.add_rule("NAMING RULES", json.dumps(mock_violations["naming"] + [stray]))

        outcome = await ReviewerRouter(review_model).review(pr_diff, conventions)

        assert not [v for v in outcome.violations if v.file == AUTH_SPEC and v.category != "testing"]
        assert not [v for v in outcome.violations if v.file == PAYMENT and v.category == "structure"]

    @pytest.mark.asyncio
    async def test_sub_reviewers_receive_only_their_files_and_rules(self, review_model, pr_diff, conventions):
        await ReviewerRouter(review_model).review(pr_diff, conventions)

        structure_call = review_model.calls_matching("STRUCTURE RULES")[0]
        user_text = structure_call[1].content
        assert CONTROLLER in user_text
        assert PAYMENT not in user_text
        assert "conv-structure-1" in system_text(structure_call)
        assert "conv-naming-1" not in system_text(structure_call)

        testing_call = review_model.calls_matching("TESTING RULES")[0]
        assert CONTROLLER not in testing_call[1].content

    @pytest.mark.asyncio
    async def test_routing_request_carries_paths_only(self, review_model, pr_diff, conventions):
        await ReviewerRouter(review_model).review(pr_diff, conventions)

        routing_call = review_model.calls[0]
        assert "Reviewer Orchestrator" in system_text(routing_call)
        text = " ".join(message.content for message in routing_call)
        assert CONTROLLER in text
        assert "SELECT * FROM users" not in text

    @pytest.mark.asyncio
    async def test_violation_ids_unique_and_prefixed(self, review_model, pr_diff, conventions):
        outcome = await ReviewerRouter(review_model).review(pr_diff, conventions)

        ids = [v.id for v in outcome.violations]
        assert len(set(ids)) == len(ids)
        for v in outcome.violations:
            assert re.match(rf"^{v.category}-\d+$", v.id)

    @pytest.mark.asyncio
    async def test_routing_garbage_uses_fallback(self, scripted_model, pr_diff, conventions):
        model = scripted_model([("Reviewer Orchestrator", "I cannot produce a routing plan.")])
        outcome = await ReviewerRouter(model).review(pr_diff, conventions)

        assert outcome.used_fallback_plan
        assert outcome.reviewed_files == [CONTROLLER, PAYMENT, AUTH_SPEC]
        assert len(model.calls_matching("RULES:")) == 4
        assert outcome.violations == []

    @pytest.mark.asyncio
    async def test_routing_exception_uses_fallback(self, scripted_model, pr_diff, conventions):
        model = scripted_model([("Reviewer Orchestrator", RuntimeError("API key expired"))])
        outcome = await ReviewerRouter(model).review(pr_diff, conventions)

        assert outcome.used_fallback_plan
        assert len(outcome.routing_plan) == 3

    @pytest.mark.asyncio
    async def test_deeply_nested_routing_output_uses_fallback(self, review_model, pr_diff, conventions):
        review_model.add_rule("Reviewer Orchestrator", "[" * 100000 + "]" * 100000)

        outcome = await ReviewerRouter(review_model).review(pr_diff, conventions)

        assert outcome.used_fallback_plan
        assert outcome.reviewed_files == [CONTROLLER, PAYMENT, AUTH_SPEC]
        assert {v.category for v in outcome.violations} == {"naming", "structure", "pattern", "testing"}

    @pytest.mark.asyncio
    async def test_none_fallback_reviews_nothing(self, scripted_model, pr_diff, conventions):
        model = scripted_model([("Reviewer Orchestrator", "nope")])
        outcome = await ReviewerRouter(model, fallback_policy="none").review(pr_diff, conventions)

        assert outcome.used_fallback_plan
        assert outcome.routing_plan == ()
        assert len(model.calls) == 1

    @pytest.mark.asyncio
    async def test_empty_pr_makes_no_calls(self, review_model, conventions):
        empty = PRDiffInput(pr_number=1, title="Empty PR", base_branch="main", head_branch="empty")
        outcome = await ReviewerRouter(review_model).review(empty, conventions)

        assert outcome.violations == []
        assert review_model.calls == []

    @pytest.mark.asyncio
    async def test_no_conventions_skips_sub_reviewers(self, review_model, pr_diff):
        outcome = await ReviewerRouter(review_model).review(pr_diff, [])

        assert outcome.violations == []
        assert sorted(outcome.skipped_categories) == ["naming", "pattern", "structure", "testing"]
        assert len(review_model.calls) == 1

    @pytest.mark.asyncio
    async def test_failing_sub_reviewer_leaves_others_intact(self, review_model, pr_diff, conventions):
        review_model.add_rule("STRUCTURE RULES", LanguageModelError("rate limited"))
        review_model.add_rule("PATTERN RULES", "no json here")

        outcome = await ReviewerRouter(review_model).review(pr_diff, conventions)

        assert sorted(outcome.failed_categories) == ["pattern", "structure"]
        assert {v.category for v in outcome.violations} == {"naming", "testing"}

    @pytest.mark.asyncio
    async def test_malformed_line_drops_nothing_else(self, review_model, pr_diff, conventions, mock_violations):
        """Test an unrepresentable line number does not fail the whole category."""
        valid = json.dumps(mock_violations["naming"][0])
        overflowing = json.dumps(dict(mock_violations["naming"][0], code="fetch_user")).replace('"line": 3', '"line": 1e999')
        review_model.add_rule("NAMING RULES", f"[{valid}, {overflowing}]")

        outcome = await ReviewerRouter(review_model).review(pr_diff, conventions)

        assert outcome.failed_categories == []
        naming = [v for v in outcome.violations if v.category == "naming"]
        assert [(v.code, v.line) for v in naming] == [("get_user", 3), ("fetch_user", 1)]

    @pytest.mark.asyncio
    async def test_sub_reviewer_timeout(self, review_model, pr_diff, conventions):
        """Test a slow sub-reviewer times out without blocking the others."""

        class SlowPatternModel(type(review_model)):
            async def invoke(self, prompt):
                if "PATTERN RULES" in system_text(prompt):
                    await asyncio.sleep(5)
                return await super().invoke(prompt)

        model = SlowPatternModel(review_model.rules)
        outcome = await ReviewerRouter(model, timeout=0.05).review(pr_diff, conventions)

        assert outcome.failed_categories == ["pattern"]
        assert len(outcome.violations) == 3

    @pytest.mark.asyncio
    async def test_configured_categories(self, review_model, pr_diff, conventions):
        router = ReviewerRouter(review_model, categories=["naming", "testing"])
        outcome = await router.review(pr_diff, conventions)

        assert {v.category for v in outcome.violations} == {"naming", "testing"}


class TestAggregateViolations:
    """Unit tests for violation aggregation."""

    def test_assigns_sequential_ids_per_category(self):
        merged = aggregate_violations({
            "naming": [violation("naming"), violation("naming", line=2)],
            "testing": [violation("testing")],
        })

        assert [v.id for v in merged] == ["naming-1", "naming-2", "testing-1"]

    def test_appends_without_clobbering(self):
        existing = aggregate_violations({"naming": [violation("naming")]})
        merged = aggregate_violations({"naming": [violation("naming", line=5)]}, existing)

        assert [v.id for v in merged] == ["naming-1", "naming-2"]
        assert merged[0] is existing[0]

    def test_category_comes_from_producer(self):
        merged = aggregate_violations({"pattern": [violation("naming")]})
        assert merged[0].category == "pattern"
        assert merged[0].id == "pattern-1"
