import asyncio

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from casecraft.core.config import get_settings
from casecraft.schemas.story import ParseResult
from casecraft.services.file_parser import (
    FileParseError,
    UnsupportedFileTypeError,
    check_extension,
    parse_file,
)


router = APIRouter()


@router.post(
    "/parse-file",
    response_model=ParseResult,
    summary="Extract user stories from an uploaded file",
)
async def parse_uploaded_file(
    file: UploadFile = File(..., description=".txt, .csv, .xlsx or .xls file"),
) -> ParseResult:
    """
    Accept a multipart upload and return the candidate stories it contains.
    Text files are split on blank lines or "---" separators; tables use the
    detected story column.
    """
    settings = get_settings()
    file_name = file.filename or ""

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)} MB.",
        )

    try:
        check_extension(file_name)
        result = await asyncio.to_thread(parse_file, content, file_name)
    except UnsupportedFileTypeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except FileParseError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    if not result.stories:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                "No user stories found in the file. Ensure the file contains "
                "text with at least 10 characters per story."
            ),
        )
    return result
