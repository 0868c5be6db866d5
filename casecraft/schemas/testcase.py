from datetime import datetime, timezone
from typing import List, Literal, Optional
from uuid import UUID, uuid4

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    conint,
    conlist,
    constr,
    model_validator,
)
from pydantic.alias_generators import to_camel

Priority = Literal["Critical", "High", "Medium", "Low"]
VALID_PRIORITIES: tuple[str, ...] = ("Critical", "High", "Medium", "Low")

TestType = Literal[
    "Functional",
    "Edge Case",
    "Negative",
    "Performance",
    "Security",
    "Usability",
]
VALID_TEST_TYPES: tuple[str, ...] = (
    "Functional",
    "Edge Case",
    "Negative",
    "Performance",
    "Security",
    "Usability",
)

Status = Literal["Draft", "Review", "Approved"]

LLMProviderName = Literal["openai", "ollama"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """
    Base model whose JSON field names are camelCase.

    Python code uses the snake_case attribute names; both spellings are
    accepted on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TestCase(CamelModel):
    """
    Canonical stored test case.

    This is both the on-disk record in the JSON store and the API
    representation.
    """

    id: UUID = Field(default_factory=uuid4)

    title: constr(min_length=1)
    description: str
    preconditions: str
    steps: List[str] = Field(
        ...,
        min_length=1,
        description="Ordered list of steps to perform in the test.",
    )
    expected_result: constr(min_length=1)
    priority: Priority
    type: TestType
    status: Status = "Draft"
    tags: List[str] = Field(default_factory=list)
    source_requirement: str = ""

    created_at: AwareDatetime = Field(default_factory=utc_now)
    updated_at: AwareDatetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def check_timestamps(self) -> "TestCase":
        if self.updated_at < self.created_at:
            raise ValueError("updatedAt must not be earlier than createdAt")
        return self


class TestCaseUpdate(CamelModel):
    """
    Partial update of a stored test case. ``id`` and ``createdAt`` are not
    accepted; ``updatedAt`` is always set by the store.
    """

    title: Optional[constr(min_length=1)] = None
    description: Optional[str] = None
    preconditions: Optional[str] = None
    steps: Optional[conlist(str, min_length=1)] = None
    expected_result: Optional[constr(min_length=1)] = None
    priority: Optional[Priority] = None
    type: Optional[TestType] = None
    status: Optional[Status] = None
    tags: Optional[List[str]] = None
    source_requirement: Optional[str] = None

    @model_validator(mode="after")
    def require_one_field(self) -> "TestCaseUpdate":
        if not self.changes():
            raise ValueError("At least one field must be provided for update")
        return self

    def changes(self) -> dict:
        """Fields explicitly set by the caller, excluding nulls."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class SaveTestCasesRequest(CamelModel):
    test_cases: List[TestCase]


class SaveTestCasesResponse(CamelModel):
    test_cases: List[TestCase]
    count: int


class TestCaseListResponse(CamelModel):
    test_cases: List[TestCase]
    total: int


# --- Bulk delete ---

DeleteOutcomeStatus = Literal["deleted", "not_found", "failed"]


class DeleteOutcome(CamelModel):
    id: UUID
    status: DeleteOutcomeStatus
    error: Optional[str] = None


class BulkDeleteRequest(CamelModel):
    ids: List[UUID] = Field(..., min_length=1)


class BulkDeleteResponse(CamelModel):
    results: List[DeleteOutcome]
    deleted: int
    not_found: int
    failed: int


# --- Generation ---


class GenerateTestCasesRequest(CamelModel):
    """
    Schema for requesting test case generation from the AI.

    When ``count`` is omitted the model decides, aiming for 5-10 cases.
    """

    requirements: constr(min_length=10, max_length=10000) = Field(
        ...,
        description="Requirement or user story to generate test cases from.",
    )
    context: Optional[constr(max_length=5000)] = Field(
        default=None,
        description="Optional additional context included in the prompt.",
    )
    count: Optional[conint(ge=1, le=30)] = Field(
        default=None,
        description="Exact number of test cases to request.",
    )
    types: Optional[List[TestType]] = Field(
        default=None,
        description="Test types to focus on. Defaults to a mix of all types.",
    )
    provider: Optional[LLMProviderName] = Field(
        default=None,
        description="LLM provider: 'openai' or a local 'ollama'. Defaults to the configured provider.",
    )
    model: Optional[str] = Field(
        default=None,
        description="Model name. Defaults to the configured model of the provider.",
    )


class GeneratedTestCase(CamelModel):
    """Field-set returned by the model for one test case."""

    title: str
    description: str
    preconditions: str
    steps: List[str]
    expected_result: str
    priority: Priority
    type: TestType
    tags: List[str] = Field(default_factory=list)


class GeneratedTestCases(CamelModel):
    test_cases: List[GeneratedTestCase]


class GenerationMetadata(CamelModel):
    model: str
    provider: LLMProviderName
    tokens_used: int
    generated_at: AwareDatetime


class GenerateTestCasesResponse(CamelModel):
    test_cases: List[TestCase]
    metadata: GenerationMetadata


# --- Multi-story generation ---

StoryGenerationStatus = Literal["completed", "failed"]


class StoryInput(CamelModel):
    id: Optional[int] = None
    content: constr(min_length=10, max_length=10000)
    source: Optional[str] = None


class GenerateFromStoriesRequest(CamelModel):
    """Generate test cases for several stories with shared options."""

    stories: List[StoryInput] = Field(..., min_length=1)
    context: Optional[constr(max_length=5000)] = None
    count: Optional[conint(ge=1, le=30)] = None
    types: Optional[List[TestType]] = None
    provider: Optional[LLMProviderName] = None
    model: Optional[str] = None


class StoryGenerationResult(CamelModel):
    story_id: Optional[int] = None
    source: Optional[str] = None
    status: StoryGenerationStatus
    test_cases: List[TestCase] = Field(default_factory=list)
    metadata: Optional[GenerationMetadata] = None
    error: Optional[str] = None


class GenerateFromStoriesResponse(CamelModel):
    results: List[StoryGenerationResult]
    total_test_cases: int
    failed: int
