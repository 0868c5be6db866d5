from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from casecraft.api.dependencies import get_store
from casecraft.schemas.testcase import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    Priority,
    SaveTestCasesRequest,
    SaveTestCasesResponse,
    Status,
    TestCase,
    TestCaseListResponse,
    TestCaseUpdate,
    TestType,
)
from casecraft.services.testcase_store import DuplicateTestCaseError, TestCaseStore


router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Test case not found",
    )


@router.get(
    "",
    response_model=TestCaseListResponse,
    summary="List stored test cases",
)
async def list_test_cases(
    status_filter: Optional[Status] = Query(default=None, alias="status"),
    tag: Optional[str] = None,
    priority: Optional[Priority] = None,
    test_type: Optional[TestType] = Query(default=None, alias="type"),
    store: TestCaseStore = Depends(get_store),
) -> TestCaseListResponse:
    """
    Return stored test cases in storage order. Filters combine with AND;
    ``tag`` matches case-insensitively.
    """
    cases: List[TestCase] = await store.get_all()
    if status_filter:
        cases = [tc for tc in cases if tc.status == status_filter]
    if tag:
        wanted = tag.lower()
        cases = [tc for tc in cases if any(t.lower() == wanted for t in tc.tags)]
    if priority:
        cases = [tc for tc in cases if tc.priority == priority]
    if test_type:
        cases = [tc for tc in cases if tc.type == test_type]
    return TestCaseListResponse(test_cases=cases, total=len(cases))


@router.post(
    "",
    response_model=SaveTestCasesResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save accepted test cases",
)
async def save_test_cases(
    payload: SaveTestCasesRequest,
    store: TestCaseStore = Depends(get_store),
) -> SaveTestCasesResponse:
    """Append full test case records. Returns only the records just saved."""
    try:
        saved = await store.save(payload.test_cases)
    except DuplicateTestCaseError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return SaveTestCasesResponse(test_cases=saved, count=len(saved))


@router.post(
    "/bulk-delete",
    response_model=BulkDeleteResponse,
    summary="Delete several test cases with per-item outcomes",
)
async def bulk_delete_test_cases(
    payload: BulkDeleteRequest,
    store: TestCaseStore = Depends(get_store),
) -> BulkDeleteResponse:
    outcomes = await store.remove_many(payload.ids)
    return BulkDeleteResponse(
        results=outcomes,
        deleted=sum(1 for o in outcomes if o.status == "deleted"),
        not_found=sum(1 for o in outcomes if o.status == "not_found"),
        failed=sum(1 for o in outcomes if o.status == "failed"),
    )


@router.get(
    "/{test_case_id}",
    response_model=TestCase,
    summary="Get a single test case by id",
)
async def get_test_case(
    test_case_id: UUID,
    store: TestCaseStore = Depends(get_store),
) -> TestCase:
    test_case = await store.get_by_id(test_case_id)
    if not test_case:
        raise _not_found()
    return test_case


@router.put(
    "/{test_case_id}",
    response_model=TestCase,
    summary="Update fields of a test case",
)
async def update_test_case(
    test_case_id: UUID,
    payload: TestCaseUpdate,
    store: TestCaseStore = Depends(get_store),
) -> TestCase:
    try:
        updated = await store.update(test_case_id, payload.changes())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid update data: {exc}",
        ) from exc
    if not updated:
        raise _not_found()
    return updated


@router.delete(
    "/{test_case_id}",
    summary="Delete a test case",
)
async def delete_test_case(
    test_case_id: UUID,
    store: TestCaseStore = Depends(get_store),
) -> dict:
    deleted = await store.remove(test_case_id)
    if not deleted:
        raise _not_found()
    return {"success": True}
