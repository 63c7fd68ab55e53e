"""
End-to-end tests for ConventionReviewerAPI with scripted models, an
in-memory convention store and a mocked GitHub client.
"""

import json
from unittest.mock import Mock

import pytest

from conftest import ScriptedModel, review_rules, sample_conventions, sample_pr_diff
from convention_reviewer.api import ConventionReviewerAPI, as_source_text
from convention_reviewer.config import AppConfig, ReviewConfig, StoreConfig
from convention_reviewer.conventions.store import InMemoryConventionStore
from convention_reviewer.github.client import GitHubAPIError, GitHubClient
from convention_reviewer.models.diff import RepoFile
from convention_reviewer.models.review import FeedbackOutput
from convention_reviewer.models.state import LearningSources, PipelineStatus
from convention_reviewer.retrieval.retriever import StaticFileFetcher


pytestmark = pytest.mark.integration

REPO = "test-org/test-repo"

REPO_FILES = [
    RepoFile("src/index.ts", "import { app } from './app';\napp.listen(3000);"),
    RepoFile("src/controllers/user_controller.ts", "export class UserController {}"),
    RepoFile("src/services/payment.service.ts", "export function processPayment() {}"),
]

LEARNED = [
    {"category": "naming", "rule": "Use camelCase for function names", "confidence": 0.9},
    {"category": "naming", "rule": "use camelCase for function names ", "confidence": 0.7},
    {"category": "testing", "rule": "Reset shared state in beforeEach", "confidence": 0.8},
]


def github_pr_payloads():
    pr_diff = sample_pr_diff()
    pr_data = {
        "number": pr_diff.pr_number,
        "title": pr_diff.title,
        "base": {"ref": pr_diff.base_branch},
        "head": {"ref": pr_diff.head_branch},
    }
    files_data = [
        {
            "filename": f.path,
            "status": f.status,
            "additions": f.additions,
            "deletions": f.deletions,
            "patch": f.diff,
        }
        for f in pr_diff.files
    ]
    return pr_data, files_data


class TestConventionReviewerAPI:
    """End-to-end tests for the three pipeline triggers."""

    def setup_method(self):
        self.models = {
            "reviewer": ScriptedModel(review_rules()),
            "feedback": ScriptedModel(review_rules()),
            "tutor": ScriptedModel([("concise engineering tutor", "Controllers live in src/controllers.")]),
            "learner": ScriptedModel([("analyzing", json.dumps(LEARNED))]),
        }
        self.github_client = Mock(spec=GitHubClient)
        self.store = InMemoryConventionStore({REPO: sample_conventions()})

    def make_api(self, **review_options) -> ConventionReviewerAPI:
        config = AppConfig(
            store=StoreConfig(backend="memory"),
            review=ReviewConfig(**review_options),
            repository=REPO,
        )
        return ConventionReviewerAPI(
            config=config,
            models=self.models,
            store=self.store,
            github_client=self.github_client,
            file_fetcher=StaticFileFetcher(REPO_FILES),
        )

    @pytest.mark.asyncio
    async def test_review_diff(self):
        api = self.make_api()

        state = await api.review_diff(sample_pr_diff())

        assert state.status == PipelineStatus.COMPLETE
        assert state.repository == REPO
        assert len(state.conventions) == 4
        assert {v.category for v in state.violations} == {"naming", "structure", "pattern", "testing"}
        assert isinstance(state.final_output, FeedbackOutput)
        assert len(state.final_output.comments) == 4

        # Routing and category reviews run on the reviewer model only
        assert self.models["reviewer"].calls_matching("Reviewer Orchestrator")
        assert self.models["feedback"].calls_matching("Reviewer Orchestrator") == []
        assert len(self.models["feedback"].calls_matching("calm engineering tutor")) == 4
        assert self.models["tutor"].calls == []

        text = api.render(state)
        assert "PR #99 Review Summary" in text

    @pytest.mark.asyncio
    async def test_review_pull_request(self):
        pr_data, files_data = github_pr_payloads()
        self.github_client.get_pull_request.return_value = pr_data
        self.github_client.get_pull_request_files.return_value = files_data
        api = self.make_api(delivery_target="github", summarize_review=False)

        state = await api.review_pull_request(REPO, 99)

        assert state.status == PipelineStatus.COMPLETE
        self.github_client.get_pull_request.assert_called_once_with("test-org", "test-repo", 99)
        assert state.review_summary is None

        payload = api.render(state)
        assert payload["event"] == "REQUEST_CHANGES"
        assert {c["path"] for c in payload["comments"]} <= {f["filename"] for f in files_data}

    @pytest.mark.asyncio
    async def test_review_pull_request_fetch_failure(self):
        self.github_client.get_pull_request.side_effect = GitHubAPIError("Not Found", status_code=404)
        api = self.make_api()

        state = await api.review_pull_request(REPO, 404)

        assert state.status == PipelineStatus.ERROR
        assert state.errors[0].startswith(f"Failed to fetch PR {REPO}#404")
        assert api.render(state) is None
        assert self.models["reviewer"].calls == []

    @pytest.mark.asyncio
    async def test_routing_failure_falls_back_to_every_reviewer(self):
        self.models["reviewer"].add_rule("Reviewer Orchestrator", "I would rather not.")
        api = self.make_api()

        state = await api.review_diff(sample_pr_diff())

        assert state.status == PipelineStatus.COMPLETE
        assert all(
            r.assigned_reviewers == frozenset(api.config.review.reviewer_categories)
            for r in state.routing_plan
        )
        assert state.violations

    @pytest.mark.asyncio
    async def test_ask_uses_tutor_model(self):
        api = self.make_api()

        state = await api.ask("How is the project folder structured?")

        assert state.status == PipelineStatus.COMPLETE
        assert state.final_output.answer == "Controllers live in src/controllers."
        assert "src/controllers/" in state.final_output.file_tree
        assert self.models["feedback"].calls == []

    @pytest.mark.asyncio
    async def test_follow_up_question(self):
        api = self.make_api()
        review_state = await api.review_diff(sample_pr_diff())

        state = await api.ask("Why was get_user flagged?", session=review_state)

        assert state.status == PipelineStatus.COMPLETE
        [prompt] = self.models["tutor"].calls
        assert "get_user" in prompt

    @pytest.mark.asyncio
    async def test_learn_then_review(self):
        self.store = InMemoryConventionStore()
        api = self.make_api()

        learned = await api.learn(sources=LearningSources(codebase=["const getUser = () => {}"]))

        assert learned.status == PipelineStatus.COMPLETE
        report = learned.final_output
        assert report.extracted == 3
        assert report.unique == 2
        assert report.total_in_store == 2

        stored = await self.store.get_all_conventions(REPO)
        assert sorted(c.rule for c in stored) == [
            "Reset shared state in beforeEach",
            "Use camelCase for function names",
        ]

        reviewed = await api.review_diff(sample_pr_diff())
        assert reviewed.status == PipelineStatus.COMPLETE
        assert len(reviewed.conventions) == 2

    @pytest.mark.asyncio
    async def test_learn_collects_sources(self):
        api = self.make_api()

        state = await api.learn()

        assert state.status == PipelineStatus.COMPLETE
        prompts = self.models["learner"].calls
        assert len(prompts) == len(REPO_FILES)
        assert any(as_source_text(REPO_FILES[0]) in p for p in prompts)

    @pytest.mark.asyncio
    async def test_learn_without_repository(self):
        api = self.make_api()
        api.config.repository = None

        state = await api.learn(sources=LearningSources(codebase=["x = 1"]))

        assert state.status == PipelineStatus.ERROR
        assert state.errors == ("Repository name not configured",)
