from typing import Callable

import pytest

from casecraft.schemas.testcase import TestCase
from casecraft.services.testcase_store import TestCaseStore


def _make_test_case(**overrides) -> TestCase:
    data = {
        "title": "Login with valid credentials",
        "description": "Registered users can sign in with email and password.",
        "preconditions": "A registered user account exists",
        "steps": [
            "Open the login page",
            "Enter a valid email and password",
            "Click Sign in",
        ],
        "expected_result": "The user lands on the dashboard",
        "priority": "High",
        "type": "Functional",
        "tags": ["auth", "Smoke"],
        "source_requirement": "As a user I want to log in so that I can see my dashboard",
    }
    data.update(overrides)
    return TestCase(**data)


@pytest.fixture
def make_test_case() -> Callable[..., TestCase]:
    return _make_test_case


@pytest.fixture
def store(tmp_path) -> TestCaseStore:
    return TestCaseStore(tmp_path / "data" / "test-cases.json")
