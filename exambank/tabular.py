"""
Tabular Mapper
==============
Reads spreadsheet exports (first sheet only) and maps each row directly
onto the candidate record shape. Workbooks are read with openpyxl, legacy
binary .xls files with xlrd.

Expected headers (any capitalization / spacing):
    Question Body, Alternative 1..4, Correct Alternative,
    Syllabus Category Name (optional), Additional Information (optional)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence, Union

import xlrd
from openpyxl import load_workbook

from .models import (
    CandidateQuestion,
    GrammarName,
    Rejection,
    RejectionReason,
    TabularRow,
)

logger = logging.getLogger(__name__)

# Digit, letter and roman spellings of each alternative, in index order
ANSWER_LABELS = (
    ("1", "A", "I"),
    ("2", "B", "II"),
    ("3", "C", "III"),
    ("4", "D", "IV"),
)


def _to_records(header: Sequence, rows: Iterable[Sequence]) -> list[dict]:
    records = []
    for values in rows:
        if all(v is None or str(v).strip() == "" for v in values):
            continue
        records.append({
            name: value
            for name, value in zip(header, values)
            if name is not None and name != ""
        })
    return records


def _read_xlsx_rows(path: Path) -> list[dict]:
    workbook = load_workbook(str(path), read_only=True, data_only=True)
    try:
        rows = workbook.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        return _to_records(header, rows)
    finally:
        workbook.close()


def _read_xls_rows(path: Path) -> list[dict]:
    book = xlrd.open_workbook(str(path))
    try:
        sheet = book.sheet_by_index(0)
        if sheet.nrows == 0:
            return []
        return _to_records(
            sheet.row_values(0),
            (sheet.row_values(i) for i in range(1, sheet.nrows)),
        )
    finally:
        book.release_resources()


def read_rows(path: Union[str, Path]) -> list[dict]:
    """
    Read the first worksheet into header -> value maps.
    Header cells come from the first row; fully empty rows are skipped.
    """
    path = Path(path)
    if path.suffix.lower() == ".xls":
        return _read_xls_rows(path)
    return _read_xlsx_rows(path)


def resolve_answer(raw: str) -> int:
    """
    Map a raw correct-alternative value to a zero-based index.

    Alternatives are tried in order 1..4; each matches when its digit
    appears anywhere in the value ("Option 1", "3") or the value is
    exactly its letter or roman numeral. So "32" resolves to the second
    alternative. Returns -1 when none apply.
    """
    text = str(raw).strip().upper()

    for index, (digit, letter, numeral) in enumerate(ANSWER_LABELS):
        if digit in text or text == letter or text == numeral:
            return index
    return -1


def build_explanation(row: TabularRow) -> str:
    info = row.additional_information or ""
    if row.syllabus_category_name:
        return (
            f"<strong>Category:</strong> {row.syllabus_category_name}"
            f"<br><br>{info}"
        )
    return info


def map_row(
    raw: dict, source: str, row_number: int = 0
) -> Union[CandidateQuestion, Rejection]:
    """Map one decoded row to a candidate, or explain why it was skipped."""
    row = TabularRow.from_mapping(raw)

    missing = row.missing_fields
    if missing:
        logger.info(
            f"[{source}] Skipping row {row_number}: missing {', '.join(missing)}"
        )
        return Rejection(
            source=source,
            reason=RejectionReason.MISSING_FIELDS,
            detail=f"row {row_number}: missing {', '.join(missing)}",
            question=(row.question_body or "")[:80],
        )

    correct_index = resolve_answer(row.correct_alternative)
    if correct_index == -1:
        logger.info(
            f"[{source}] Skipping row {row_number}: "
            f"invalid answer format \"{row.correct_alternative}\""
        )
        return Rejection(
            source=source,
            reason=RejectionReason.UNRESOLVED_ANSWER,
            detail=f"row {row_number}: correct alternative "
                   f"\"{row.correct_alternative}\"",
            question=row.question_body[:80],
        )

    return CandidateQuestion(
        question=row.question_body,
        options=list(row.alternatives),
        correct_index=correct_index,
        explanation=build_explanation(row),
        source=source,
        grammar=GrammarName.TABULAR,
    )


class TabularMapper:
    """Turns every row of a spreadsheet into candidates and rejections."""

    def map_file(
        self, path: Union[str, Path]
    ) -> tuple[list[CandidateQuestion], list[Rejection]]:
        source = Path(path).name
        rows = read_rows(path)
        logger.info(f"[{source}] Found {len(rows)} rows")

        candidates: list[CandidateQuestion] = []
        rejections: list[Rejection] = []
        # Spreadsheet row numbers: header is row 1
        for offset, raw in enumerate(rows, start=2):
            mapped = map_row(raw, source, row_number=offset)
            if isinstance(mapped, Rejection):
                rejections.append(mapped)
            else:
                candidates.append(mapped)
        return candidates, rejections
