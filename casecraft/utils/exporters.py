from __future__ import annotations

import csv
import io
import json
from datetime import datetime
from typing import Dict, Iterable, List

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from casecraft.schemas.testcase import TestCase

EXPORT_HEADERS: List[str] = [
    "ID",
    "Title",
    "Description",
    "Preconditions",
    "Steps",
    "Expected Result",
    "Priority",
    "Type",
    "Status",
    "Tags",
    "Source Requirement",
    "Created At",
    "Updated At",
]

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# format -> (media type, download filename)
EXPORT_FORMATS: Dict[str, tuple[str, str]] = {
    "csv": ("text/csv; charset=utf-8", "test-cases.csv"),
    "xlsx": (XLSX_MEDIA_TYPE, "test-cases.xlsx"),
    "json": ("application/json; charset=utf-8", "test-cases.json"),
}

MIN_COLUMN_WIDTH = 20


def _isoformat(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def flatten_test_case(tc: TestCase) -> Dict[str, str]:
    """One export row; steps are numbered lines, tags comma-separated."""
    return {
        "ID": str(tc.id),
        "Title": tc.title,
        "Description": tc.description,
        "Preconditions": tc.preconditions,
        "Steps": "\n".join(f"{i}. {step}" for i, step in enumerate(tc.steps, start=1)),
        "Expected Result": tc.expected_result,
        "Priority": tc.priority,
        "Type": tc.type,
        "Status": tc.status,
        "Tags": ", ".join(tc.tags),
        "Source Requirement": tc.source_requirement,
        "Created At": _isoformat(tc.created_at),
        "Updated At": _isoformat(tc.updated_at),
    }


def to_csv(cases: Iterable[TestCase]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=EXPORT_HEADERS)
    writer.writeheader()
    for tc in cases:
        writer.writerow(flatten_test_case(tc))
    return buf.getvalue()


def to_excel(cases: Iterable[TestCase]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Test Cases"

    bold_font = Font(bold=True)
    ws.append(EXPORT_HEADERS)
    for col_idx, header in enumerate(EXPORT_HEADERS, start=1):
        ws.cell(row=1, column=col_idx).font = bold_font
        ws.column_dimensions[get_column_letter(col_idx)].width = max(
            len(header), MIN_COLUMN_WIDTH
        )

    for tc in cases:
        row = flatten_test_case(tc)
        ws.append([row[header] for header in EXPORT_HEADERS])

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def to_json(cases: Iterable[TestCase]) -> str:
    return json.dumps(
        [tc.model_dump(mode="json", by_alias=True) for tc in cases],
        indent=2,
        ensure_ascii=False,
    )
