"""
Extract candidate user stories from uploaded files.

Supported formats:
- .txt  : stories separated by blank lines or a line of "---" / "==="
- .csv  : one story per row, taken from the detected story column
- .xlsx / .xls : same as CSV, applied to the first sheet

Column detection is an ordered chain of pure functions over the header
list and rows: exact name match, then substring match, then the column
with the longest average text.
"""
from __future__ import annotations

import csv
import io
import logging
import re
from datetime import date, datetime, time
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import xlrd
from openpyxl import load_workbook

from casecraft.schemas.story import ParsedStory, ParseResult

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: tuple[str, ...] = ("txt", "csv", "xlsx", "xls")

# Candidates shorter than this (after trimming) are discarded.
MIN_STORY_LENGTH: int = 10

STORY_COLUMN_NAMES: tuple[str, ...] = (
    "story",
    "user story",
    "user_story",
    "userstory",
    "requirement",
    "requirements",
    "description",
    "acceptance criteria",
    "feature",
    "scenario",
)

# Two or more newlines (whitespace allowed between), or a separator line.
_BLOCK_SEPARATOR = re.compile(r"\n\s*\n|^-{3,}$|^={3,}$", re.MULTILINE)

# Zip container signature; .xlsx files start with it, legacy .xls files do not.
_ZIP_MAGIC = b"PK\x03\x04"

Row = Dict[str, str]


class UnsupportedFileTypeError(ValueError):
    """The file extension is not one of SUPPORTED_EXTENSIONS."""


class FileParseError(ValueError):
    """The file could not be decoded or read."""


def file_extension(file_name: str) -> str:
    """Text after the last dot, lower-cased (the whole name if there is no dot)."""
    return file_name.rsplit(".", 1)[-1].lower()


def check_extension(file_name: str) -> str:
    ext = file_extension(file_name)
    if ext not in SUPPORTED_EXTENSIONS:
        supported = ", ".join(f".{e}" for e in SUPPORTED_EXTENSIONS)
        raise UnsupportedFileTypeError(
            f"Unsupported file type: .{ext}. Supported: {supported}"
        )
    return ext


def parse_file(data: bytes, file_name: str) -> ParseResult:
    """
    Parse an uploaded file and extract user stories.

    Raises UnsupportedFileTypeError for unknown extensions and
    FileParseError for content that cannot be read. Never returns a
    partial result alongside an error.
    """
    ext = check_extension(file_name)

    if ext == "txt":
        result = parse_text_file(data, file_name)
    elif ext == "csv":
        result = parse_csv_file(data, file_name)
    else:
        result = parse_excel_file(data, file_name)

    logger.info(
        "Extracted %d stories from %s",
        result.total_found,
        file_name,
        extra={"file_name": file_name, "format": ext},
    )
    return result


def _decode_text(data: bytes) -> str:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FileParseError(f"File is not valid UTF-8 text: {exc}") from exc
    return text.replace("\r\n", "\n").replace("\r", "\n")


# ---------------------------------------------------------------------------
# Text file
# ---------------------------------------------------------------------------


def split_text_blocks(text: str) -> List[str]:
    """Split text into trimmed blocks, keeping only those long enough to be stories."""
    blocks = (block.strip() for block in _BLOCK_SEPARATOR.split(text))
    return [block for block in blocks if len(block) >= MIN_STORY_LENGTH]


def parse_text_file(data: bytes, file_name: str) -> ParseResult:
    blocks = split_text_blocks(_decode_text(data))
    stories = [
        ParsedStory(id=i, content=content, source=f"{file_name} (block {i})")
        for i, content in enumerate(blocks, start=1)
    ]
    return ParseResult(stories=stories, file_name=file_name, total_found=len(stories))


# ---------------------------------------------------------------------------
# Column selection
# ---------------------------------------------------------------------------


def find_exact_column(headers: Sequence[str], rows: Sequence[Row]) -> Optional[str]:
    for header in headers:
        if header.lower().strip() in STORY_COLUMN_NAMES:
            return header
    return None


def find_partial_column(headers: Sequence[str], rows: Sequence[Row]) -> Optional[str]:
    for header in headers:
        lower = header.lower().strip()
        if any(name in lower for name in STORY_COLUMN_NAMES):
            return header
    return None


def find_longest_column(headers: Sequence[str], rows: Sequence[Row]) -> Optional[str]:
    """Column with the greatest average cell length; ties go to the earlier column."""
    if not headers or not rows:
        return None
    best_column = headers[0]
    best_average = 0.0
    for header in headers:
        average = sum(len(row.get(header) or "") for row in rows) / len(rows)
        if average > best_average:
            best_average = average
            best_column = header
    return best_column


ColumnStrategy = Callable[[Sequence[str], Sequence[Row]], Optional[str]]

COLUMN_STRATEGIES: tuple[ColumnStrategy, ...] = (
    find_exact_column,
    find_partial_column,
    find_longest_column,
)


def select_story_column(headers: Sequence[str], rows: Sequence[Row]) -> Optional[str]:
    for strategy in COLUMN_STRATEGIES:
        column = strategy(headers, rows)
        if column is not None:
            logger.debug("Story column %r selected by %s", column, strategy.__name__)
            return column
    return None


# ---------------------------------------------------------------------------
# Tabular extraction (CSV and Excel)
# ---------------------------------------------------------------------------


def _unique_headers(raw_headers: Sequence[str]) -> List[str]:
    headers: List[str] = []
    seen: Dict[str, int] = {}
    for idx, raw in enumerate(raw_headers, start=1):
        name = raw if raw.strip() else f"Column {idx}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        headers.append(name)
    return headers


def rows_from_table(table: Iterable[Sequence[str]]) -> Tuple[List[str], List[Row]]:
    """
    Turn raw table rows into (headers, rows). The first non-empty row is the
    header; fully empty rows are skipped; missing cells read as "".
    """
    non_empty = (cells for cells in table if any(cell != "" for cell in cells))
    header_row = next(non_empty, None)
    if header_row is None:
        return [], []
    headers = _unique_headers(header_row)
    rows: List[Row] = []
    for cells in non_empty:
        rows.append(
            {header: (cells[idx] if idx < len(cells) else "") for idx, header in enumerate(headers)}
        )
    return headers, rows


def extract_stories_from_rows(
    headers: Sequence[str],
    rows: Sequence[Row],
    file_name: str,
) -> ParseResult:
    if not rows:
        return ParseResult(stories=[], file_name=file_name, total_found=0)

    story_column = select_story_column(headers, rows)
    stories: List[ParsedStory] = []
    for idx, row in enumerate(rows):
        content = (row.get(story_column) or "").strip()
        if len(content) < MIN_STORY_LENGTH:
            continue
        # +2: 1-based rows plus the header row
        stories.append(
            ParsedStory(id=idx + 1, content=content, source=f"{file_name} (row {idx + 2})")
        )
    return ParseResult(stories=stories, file_name=file_name, total_found=len(stories))


def parse_csv_file(data: bytes, file_name: str) -> ParseResult:
    text = _decode_text(data)
    # A single quoted cell may hold the whole upload.
    if len(text) > csv.field_size_limit():
        csv.field_size_limit(len(text))
    try:
        table = list(csv.reader(io.StringIO(text)))
    except csv.Error as exc:
        raise FileParseError(f"Could not read CSV file: {exc}") from exc
    headers, rows = rows_from_table(table)
    return extract_stories_from_rows(headers, rows, file_name)


# ---------------------------------------------------------------------------
# Excel file
# ---------------------------------------------------------------------------


def cell_to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def _read_xlsx_rows(data: bytes) -> List[List[str]]:
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise FileParseError(f"Could not read Excel file: {exc}") from exc
    try:
        if not workbook.worksheets:
            raise FileParseError("Excel file has no sheets.")
        sheet = workbook.worksheets[0]
        return [
            [cell_to_text(value) for value in row]
            for row in sheet.iter_rows(values_only=True)
        ]
    finally:
        workbook.close()


def _xls_cell_to_text(cell, datemode: int) -> str:
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return cell_to_text(bool(cell.value))
    if cell.ctype == xlrd.XL_CELL_DATE:
        return cell_to_text(xlrd.xldate_as_datetime(cell.value, datemode))
    if cell.ctype == xlrd.XL_CELL_ERROR:
        return xlrd.error_text_from_code.get(cell.value, "")
    return cell_to_text(cell.value)


def _read_xls_rows(data: bytes) -> List[List[str]]:
    try:
        book = xlrd.open_workbook(file_contents=data)
    except Exception as exc:
        raise FileParseError(f"Could not read Excel file: {exc}") from exc
    if book.nsheets == 0:
        raise FileParseError("Excel file has no sheets.")
    sheet = book.sheet_by_index(0)
    return [
        [_xls_cell_to_text(cell, book.datemode) for cell in sheet.row(r)]
        for r in range(sheet.nrows)
    ]


def parse_excel_file(data: bytes, file_name: str) -> ParseResult:
    """Read the first sheet; the container format is detected from the bytes, not the name."""
    if data.startswith(_ZIP_MAGIC):
        table = _read_xlsx_rows(data)
    else:
        table = _read_xls_rows(data)
    headers, rows = rows_from_table(table)
    return extract_stories_from_rows(headers, rows, file_name)
