from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response

from casecraft.api.dependencies import get_store
from casecraft.schemas.testcase import TestCase
from casecraft.services.testcase_store import TestCaseStore
from casecraft.utils.exporters import EXPORT_FORMATS, to_csv, to_excel, to_json


router = APIRouter()


def _parse_ids(ids: str) -> List[UUID]:
    parsed: List[UUID] = []
    for raw in ids.split(","):
        try:
            parsed.append(UUID(raw.strip()))
        except ValueError:
            # Unknown ids simply match nothing.
            continue
    return parsed


@router.get(
    "/export",
    summary="Download test cases as CSV, Excel, or JSON",
)
async def export_test_cases(
    export_format: str = Query(default="json", alias="format"),
    ids: Optional[str] = Query(default=None, description="Comma-separated test case ids"),
    store: TestCaseStore = Depends(get_store),
) -> Response:
    """
    Export all stored test cases, or only those listed in ``ids``.
    """
    cases: List[TestCase]
    if ids:
        by_id = {tc.id: tc for tc in await store.get_all()}
        cases = [by_id[i] for i in _parse_ids(ids) if i in by_id]
        if not cases:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No test cases found for the provided IDs",
            )
    else:
        cases = await store.get_all()

    if not cases:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No test cases available to export",
        )

    if export_format not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported format: {export_format}. Use csv, xlsx, or json.",
        )

    media_type, filename = EXPORT_FORMATS[export_format]
    if export_format == "csv":
        content: bytes | str = to_csv(cases)
    elif export_format == "xlsx":
        content = to_excel(cases)
    else:
        content = to_json(cases)

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
