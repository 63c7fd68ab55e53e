"""
Shared fixtures: a scripted language model and the sample pull request,
conventions and reviewer outputs used across the suite.
"""

import json
from typing import Any, Callable, List, Optional, Tuple, Union

import pytest

from convention_reviewer.llm.base import LanguageModel, LLMResponse, PromptInput, system_text
from convention_reviewer.models.convention import Convention, ConventionExample, ConventionSource
from convention_reviewer.models.diff import DiffFile, PRDiffInput


TIMESTAMP = "2024-01-01T00:00:00+00:00"

Reply = Union[str, BaseException, Callable[[PromptInput], str]]


class ScriptedModel(LanguageModel):
    """
    Fake language model answering by the text of the first message.

    Rules are ``(marker, reply)`` pairs checked in order; a reply can be a
    string, an exception to raise, or a callable receiving the prompt.
    """

    name = "scripted"

    def __init__(self, rules: Optional[List[Tuple[str, Reply]]] = None, default: str = "[]"):
        self.rules = list(rules or [])
        self.default = default
        self.calls: List[PromptInput] = []

    def add_rule(self, marker: str, reply: Reply) -> None:
        self.rules.insert(0, (marker, reply))

    def calls_matching(self, marker: str) -> List[PromptInput]:
        return [p for p in self.calls if marker in system_text(p)]

    async def invoke(self, prompt: PromptInput) -> LLMResponse:
        self.calls.append(prompt)
        text = system_text(prompt)
        for marker, reply in self.rules:
            if marker in text:
                if isinstance(reply, BaseException):
                    raise reply
                if callable(reply):
                    return LLMResponse(content=reply(prompt), model=self.name)
                return LLMResponse(content=reply, model=self.name)
        return LLMResponse(content=self.default, model=self.name)


MOCK_ROUTING_PLAN = [
    {
        "filePath": "src/controllers/user_controller.ts",
        "assignedReviewers": ["naming", "structure", "pattern"],
        "reasoning": "Controller file: needs naming, structure, and pattern review",
    },
    {
        "filePath": "src/services/payment.service.ts",
        "assignedReviewers": ["naming", "pattern", "testing"],
        "reasoning": "Service file with new logic: needs naming, pattern, and testing review",
    },
    {
        "filePath": "src/tests/auth.spec.ts",
        "assignedReviewers": ["testing"],
        "reasoning": "Test file: only needs testing review",
    },
]

MOCK_NAMING_VIOLATIONS = [
    {
        "issue": "Function get_user uses snake_case instead of camelCase",
        "conventionId": "conv-naming-1",
        "file": "src/controllers/user_controller.ts",
        "line": 3,
        "code": "get_user",
        "severity": "warning",
        "reasoning": "Team uses camelCase for all function names",
        "impact": "Inconsistent naming confuses new team members",
        "recommendation": "Rename to getUser",
    },
]

MOCK_STRUCTURE_VIOLATIONS = [
    {
        "issue": "Controller imports directly from database layer",
        "conventionId": "conv-structure-1",
        "file": "src/controllers/user_controller.ts",
        "line": 1,
        "code": "import { db } from '../database/connection'",
        "severity": "error",
        "reasoning": "Controllers must go through the service layer",
        "impact": "Tight coupling makes the controller untestable in isolation",
        "recommendation": "Create a UserService and inject it into the controller",
    },
]

MOCK_PATTERN_VIOLATIONS = [
    {
        "issue": "Raw SQL query in controller",
        "conventionId": "conv-pattern-1",
        "file": "src/controllers/user_controller.ts",
        "line": 4,
        "code": "db.query('SELECT * FROM users WHERE id = $1', [id])",
        "severity": "error",
        "reasoning": "Team forbids raw SQL outside repository layer",
        "impact": "SQL injection risk and no query reuse",
        "recommendation": "Move query to UserRepository.findById()",
    },
]

MOCK_TESTING_VIOLATIONS = [
    {
        "issue": "Shared mutable state between tests",
        "conventionId": "conv-testing-1",
        "file": "src/tests/auth.spec.ts",
        "line": 1,
        "code": "let sharedState: any = {}",
        "severity": "warning",
        "reasoning": "Shared state causes flaky, order-dependent tests",
        "impact": "Tests may pass or fail depending on execution order",
        "recommendation": "Move state into beforeEach or use local variables per test",
    },
]

EXPLANATION_TEXT = (
    "The team keeps one naming style so code reads the same everywhere. "
    "Mixed styles slow down reviews. Rename the function to match the rule."
)
SUMMARY_TEXT = "This PR mixes layers and naming styles. Start with the database import in the controller."


def make_convention(
    convention_id: str,
    category: str,
    rule: str,
    description: str = "",
    confidence: float = 0.9,
    tags: Tuple[str, ...] = (),
    examples: Tuple[ConventionExample, ...] = (),
    source_type: str = "codebase",
    reference: str = "src/",
) -> Convention:
    return Convention(
        id=convention_id,
        category=category,
        rule=rule,
        description=description,
        examples=examples,
        source=ConventionSource(type=source_type, reference=reference, timestamp=TIMESTAMP),
        confidence=confidence,
        tags=tags,
    )


def sample_conventions() -> List[Convention]:
    return [
        make_convention(
            "conv-naming-1", "naming", "Use camelCase for function names",
            description="All functions must use camelCase",
            confidence=0.95,
            tags=("naming", "functions"),
            examples=(ConventionExample(explanation="Team standard", good="getUser()", bad="get_user()"),),
        ),
        make_convention(
            "conv-structure-1", "structure", "Controllers must not import database modules directly",
            description="Controllers call services; services call the DB layer",
            confidence=0.9,
            tags=("structure", "layering"),
            examples=(ConventionExample(explanation="Layer violation", bad="import { db } from '../db'"),),
            source_type="adr",
            reference="docs/adr-002.md",
        ),
        make_convention(
            "conv-pattern-1", "pattern", "No raw SQL in controllers",
            description="Use service/repository layer for DB access",
            confidence=0.85,
            tags=("pattern", "sql"),
            examples=(ConventionExample(explanation="Coupling risk", bad="db.query('SELECT *')"),),
            source_type="pr-review",
            reference="PR #42",
        ),
        make_convention(
            "conv-testing-1", "testing", "Every service file must have a corresponding test file",
            description="New logic in services requires test coverage",
            confidence=0.9,
            tags=("testing", "coverage"),
            examples=(ConventionExample(explanation="Matches source", good="payment.service.test.ts"),),
            reference="src/tests/",
        ),
    ]


def sample_pr_diff() -> PRDiffInput:
    return PRDiffInput(
        pr_number=99,
        title="Add user controller and payment service",
        base_branch="main",
        head_branch="feature/user-payments",
        files=[
            DiffFile(
                path="src/controllers/user_controller.ts",
                diff=(
                    "+import { db } from '../database/connection';\n"
                    "+export class user_controller {\n"
                    "+  async get_user(id: string) {\n"
                    "+    const result = await db.query('SELECT * FROM users WHERE id = $1', [id]);\n"
                    "+    console.log('fetched', result);\n"
                    "+    return result;\n"
                    "+  }\n"
                    "+}"
                ),
                status="added",
                additions=8,
            ),
            DiffFile(
                path="src/services/payment.service.ts",
                diff=(
                    "+export function processPayment(amount: number, currency: string) {\n"
                    "+  if (amount <= 0) return null;\n"
                    "+  return { success: true, amount, currency };\n"
                    "+}"
                ),
                status="added",
                additions=4,
            ),
            DiffFile(
                path="src/tests/auth.spec.ts",
                diff=(
                    "+let sharedState: any = {};\n"
                    "+describe('auth', () => {\n"
                    "+  it('test 1', () => {\n"
                    "+    sharedState.user = { id: 1 };\n"
                    "+  });\n"
                    "+});"
                ),
                status="added",
                additions=6,
            ),
        ],
    )


def review_rules() -> List[Tuple[str, Any]]:
    return [
        ("Reviewer Orchestrator", json.dumps(MOCK_ROUTING_PLAN)),
        ("NAMING RULES", json.dumps(MOCK_NAMING_VIOLATIONS)),
        ("STRUCTURE RULES", json.dumps(MOCK_STRUCTURE_VIOLATIONS)),
        ("PATTERN RULES", json.dumps(MOCK_PATTERN_VIOLATIONS)),
        ("TESTING RULES", json.dumps(MOCK_TESTING_VIOLATIONS)),
        ("calm engineering tutor", EXPLANATION_TEXT),
        ("senior engineer explaining", SUMMARY_TEXT),
    ]


@pytest.fixture
def conventions() -> List[Convention]:
    return sample_conventions()


@pytest.fixture
def pr_diff() -> PRDiffInput:
    return sample_pr_diff()


@pytest.fixture
def review_model() -> ScriptedModel:
    """Model scripted with the routing plan and one violation per category."""
    return ScriptedModel(review_rules())


@pytest.fixture
def scripted_model() -> Callable[..., ScriptedModel]:
    return ScriptedModel


@pytest.fixture
def convention_factory() -> Callable[..., Convention]:
    return make_convention


@pytest.fixture
def mock_violations():
    return {
        "naming": MOCK_NAMING_VIOLATIONS,
        "structure": MOCK_STRUCTURE_VIOLATIONS,
        "pattern": MOCK_PATTERN_VIOLATIONS,
        "testing": MOCK_TESTING_VIOLATIONS,
    }


@pytest.fixture
def routing_plan_payload():
    return MOCK_ROUTING_PLAN
