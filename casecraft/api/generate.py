from fastapi import APIRouter, Depends, HTTPException, status

from casecraft.api.dependencies import get_testcase_service
from casecraft.schemas.testcase import (
    GenerateFromStoriesRequest,
    GenerateFromStoriesResponse,
    GenerateTestCasesRequest,
    GenerateTestCasesResponse,
)
from casecraft.services.testcase_service import GenerationError, TestCaseService


router = APIRouter()


@router.post(
    "",
    response_model=GenerateTestCasesResponse,
    summary="Generate test cases from a requirement using the AI model",
)
async def generate_test_cases(
    payload: GenerateTestCasesRequest,
    service: TestCaseService = Depends(get_testcase_service),
) -> GenerateTestCasesResponse:
    """
    Generate structured test cases with the selected provider (OpenAI or Ollama).
    Results are stamped as Draft but not stored; save them via POST /test-cases.
    """
    try:
        return await service.generate_test_cases(payload)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except GenerationError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to generate test cases from AI: {exc}",
        ) from exc


@router.post(
    "/stories",
    response_model=GenerateFromStoriesResponse,
    summary="Generate test cases for several stories",
)
async def generate_from_stories(
    payload: GenerateFromStoriesRequest,
    service: TestCaseService = Depends(get_testcase_service),
) -> GenerateFromStoriesResponse:
    """
    Run one generation per story with shared options. A failing story is
    reported in its result entry and does not stop the others.
    """
    try:
        return await service.generate_for_stories(payload)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
