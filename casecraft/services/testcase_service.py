from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence
from uuid import uuid4

import httpx
import openai
from pydantic import ValidationError

from casecraft.providers.base import LLMCompletion, LLMProvider
from casecraft.providers.factory import get_provider
from casecraft.schemas.testcase import (
    VALID_PRIORITIES,
    VALID_TEST_TYPES,
    GeneratedTestCase,
    GenerateFromStoriesRequest,
    GenerateFromStoriesResponse,
    GenerateTestCasesRequest,
    GenerateTestCasesResponse,
    GenerationMetadata,
    StoryGenerationResult,
    TestCase,
    utc_now,
)
from casecraft.utils.prompt_builder import SYSTEM_PROMPT, build_user_prompt


logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Optional[str]], LLMProvider]


class GenerationError(RuntimeError):
    """The provider failed or returned output that is not a usable test case list."""


class TestCaseService:
    """
    Application service that turns requirements into test cases via an LLM.

    Business logic is concentrated here to keep route handlers thin.
    LLM calls go through the provider abstraction (OpenAI or Ollama).
    Generated cases are returned, not stored; callers persist the ones
    they accept.
    """

    def __init__(self, provider_factory: ProviderFactory = get_provider) -> None:
        self._provider_factory = provider_factory

    @staticmethod
    def _strip_markdown_code_blocks(text: str) -> str:
        """Remove markdown code blocks (```json ... ``` or ``` ... ```)."""
        stripped = text.strip()
        for pattern in (r"^```\s*json\s*\n?", r"^```\s*\n?"):
            stripped = re.sub(pattern, "", stripped, flags=re.IGNORECASE)
        stripped = re.sub(r"\n?```\s*$", "", stripped)
        return stripped.strip()

    @staticmethod
    def _extract_json_object(raw_output: str) -> str:
        text = raw_output.strip()
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            return text
        return text[start : end + 1]

    @staticmethod
    def _repair_json(text: str) -> str:
        """
        Fix common LLM JSON output errors before parsing.
        - Removes trailing commas before } or ].
        - Inserts missing comma between adjacent } and { (e.g. in testCases array).
        """
        repaired = re.sub(r",(\s*[}\]])", r"\1", text)
        repaired = re.sub(r"}\s*{", "}, {", repaired)
        return repaired

    @staticmethod
    def _parse_json_lenient(text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return json.loads(TestCaseService._repair_json(text))

    @staticmethod
    def _parse_llm_response(response_text: str) -> List[Any]:
        """
        Parse the model output into the raw testCases list.
        - Strips markdown code blocks and surrounding prose.
        - Accepts testCases, test_cases, or a bare JSON array.
        - Raises GenerationError with a content snippet when parsing fails.
        """
        if not response_text or not response_text.strip():
            logger.warning("LLM returned empty response")
            raise GenerationError("LLM returned empty response; expected JSON object.")
        raw_preview = response_text[:500]
        logger.debug("LLM raw response (first 500 chars): %s", raw_preview)

        cleaned = TestCaseService._strip_markdown_code_blocks(response_text)
        if not cleaned.startswith("["):
            cleaned = TestCaseService._extract_json_object(cleaned)
        try:
            parsed = TestCaseService._parse_json_lenient(cleaned)
        except json.JSONDecodeError as exc:
            snippet = (cleaned[:300] + "...") if len(cleaned) > 300 else cleaned
            logger.error(
                "JSON parse error: %s; snippet: %s",
                exc,
                snippet,
                extra={"raw_preview": raw_preview},
            )
            raise GenerationError(
                f"LLM output is not valid JSON: {exc}. "
                f"Content received (first 300 chars): {snippet!r}"
            ) from exc

        if isinstance(parsed, list):
            return parsed
        if not isinstance(parsed, dict):
            raise GenerationError(
                "LLM output must be a JSON object with a 'testCases' field; "
                f"received type {type(parsed).__name__}."
            )
        for key in ("testCases", "test_cases"):
            if isinstance(parsed.get(key), list):
                return parsed[key]
        keys_preview = list(parsed.keys())[:10]
        logger.error(
            "Parsed object missing 'testCases'; keys: %s",
            keys_preview,
            extra={"parsed_keys": list(parsed.keys())},
        )
        raise GenerationError(
            "LLM output must be a JSON object with a 'testCases' array. "
            f"Received keys: {keys_preview!r}."
        )

    @staticmethod
    def _match_choice(value: Any, choices: Sequence[str], default: str) -> str:
        text = str(value or "").strip().lower()
        for choice in choices:
            if choice.lower() == text:
                return choice
        return default

    @staticmethod
    def _clean_test_case_data(item: Dict[str, Any]) -> Dict[str, Any]:
        """Fill empty fields with neutral defaults and normalize enum casing."""
        data = dict(item)
        if "expectedResult" not in data and "expected_result" in data:
            data["expectedResult"] = data.pop("expected_result")

        for key in ("title", "description", "preconditions", "expectedResult"):
            value = data.get(key)
            data[key] = str(value).strip() if value is not None else ""
        if not data["title"]:
            data["title"] = "Test scenario as described"
        if not data["preconditions"]:
            data["preconditions"] = "No specific preconditions required"
        if not data["expectedResult"]:
            data["expectedResult"] = "Behavior matches the requirement and acceptance criteria."

        steps = data.get("steps")
        if isinstance(steps, str):
            steps = steps.splitlines()
        steps = [str(s).strip() for s in (steps or []) if str(s).strip()]
        data["steps"] = steps or ["Execute the test scenario as described"]

        tags = data.get("tags")
        if isinstance(tags, str):
            tags = tags.split(",")
        data["tags"] = [str(t).strip() for t in (tags or []) if str(t).strip()]

        data["priority"] = TestCaseService._match_choice(
            data.get("priority"), VALID_PRIORITIES, "Medium"
        )
        data["type"] = TestCaseService._match_choice(
            data.get("type"), VALID_TEST_TYPES, "Functional"
        )
        return data

    def _validate_cases(self, raw_cases: List[Any]) -> List[GeneratedTestCase]:
        cases: List[GeneratedTestCase] = []
        for idx, item in enumerate(raw_cases, start=1):
            if not isinstance(item, dict):
                raise GenerationError(
                    f"Test case {idx} must be a JSON object; got {type(item).__name__}."
                )
            try:
                cases.append(GeneratedTestCase.model_validate(self._clean_test_case_data(item)))
            except ValidationError as exc:
                raise GenerationError(f"Test case {idx} has an invalid structure: {exc}") from exc
        if not cases:
            raise GenerationError("LLM returned no test cases")
        return cases

    @staticmethod
    def _stamp(cases: List[GeneratedTestCase], requirements: str) -> List[TestCase]:
        now = utc_now()
        return [
            TestCase(
                **case.model_dump(),
                id=uuid4(),
                status="Draft",
                source_requirement=requirements,
                created_at=now,
                updated_at=now,
            )
            for case in cases
        ]

    async def _generate_with(
        self,
        provider: LLMProvider,
        requirements: str,
        *,
        context: Optional[str],
        count: Optional[int],
        types: Optional[Sequence[str]],
        model: Optional[str],
    ) -> GenerateTestCasesResponse:
        prompt = build_user_prompt(requirements, context, count, types)
        try:
            completion: LLMCompletion = await provider.generate(
                SYSTEM_PROMPT,
                prompt,
                model=model,
                count=count,
            )
        except (httpx.HTTPError, openai.OpenAIError, ValueError) as exc:
            raise GenerationError(f"{provider.name} request failed: {exc}") from exc

        generated = self._validate_cases(self._parse_llm_response(completion.content))
        test_cases = self._stamp(generated, requirements)
        metadata = GenerationMetadata(
            model=completion.model,
            provider=provider.name,
            tokens_used=completion.tokens_used,
            generated_at=test_cases[0].created_at,
        )
        logger.info(
            "Generated %d test cases",
            len(test_cases),
            extra={
                "provider": provider.name,
                "model": completion.model,
                "tokens_used": completion.tokens_used,
            },
        )
        return GenerateTestCasesResponse(test_cases=test_cases, metadata=metadata)

    async def generate_test_cases(
        self,
        payload: GenerateTestCasesRequest,
    ) -> GenerateTestCasesResponse:
        provider = self._provider_factory(payload.provider)
        logger.info(
            "AI test case generation requested",
            extra={
                "provider": provider.name,
                "model": payload.model,
                "count": payload.count,
                "requirements_length": len(payload.requirements),
            },
        )
        try:
            return await self._generate_with(
                provider,
                payload.requirements,
                context=payload.context,
                count=payload.count,
                types=payload.types,
                model=payload.model,
            )
        finally:
            await provider.close()

    async def generate_for_stories(
        self,
        payload: GenerateFromStoriesRequest,
    ) -> GenerateFromStoriesResponse:
        """
        Generate test cases for each story in turn. A failing story is
        recorded with its error and the next story is still processed.
        """
        provider = self._provider_factory(payload.provider)
        results: List[StoryGenerationResult] = []
        try:
            for story in payload.stories:
                try:
                    generated = await self._generate_with(
                        provider,
                        story.content,
                        context=payload.context,
                        count=payload.count,
                        types=payload.types,
                        model=payload.model,
                    )
                except Exception as exc:
                    logger.exception("Generation for story %s failed: %s", story.id, exc)
                    results.append(
                        StoryGenerationResult(
                            story_id=story.id,
                            source=story.source,
                            status="failed",
                            error=str(exc),
                        )
                    )
                    continue
                results.append(
                    StoryGenerationResult(
                        story_id=story.id,
                        source=story.source,
                        status="completed",
                        test_cases=generated.test_cases,
                        metadata=generated.metadata,
                    )
                )
        finally:
            await provider.close()

        return GenerateFromStoriesResponse(
            results=results,
            total_test_cases=sum(len(r.test_cases) for r in results),
            failed=sum(1 for r in results if r.status == "failed"),
        )
