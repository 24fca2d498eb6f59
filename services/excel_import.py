"""
Excel Question Import
Turns the "Questions" worksheet into paragraphs / audio sections and the
questions that hang off them, inside a single transaction.

Column layout (1-based, fixed):
    1 type | 2 content | 3 correct answer | 4 choices | 5 explanation |
    6 parent order | 7 (unused) | 8 link | 9 order
"""

from __future__ import annotations

import io
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta

import pandas as pd
from flask import current_app
from sqlalchemy import false, or_, update

from models import NO_PARENT, ContentRecord, PracticeTest, db

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"xlsx", "xls"}

# Leading data rows holding paragraphs (reading) or audio sections (listening)
CONTENT_ROWS_BY_TYPE = {
    PracticeTest.TYPE_READING: 3,
    PracticeTest.TYPE_LISTENING: 4,
}

COL_TYPE = 1
COL_CONTENT = 2
COL_CORRECT_ANSWER = 3
COL_CHOICES = 4
COL_EXPLANATION = 5
COL_PARENT_ORDER = 6
COL_LINK = 8
COL_ORDER = 9


class ImportConflictError(Exception):
    """Another import for the same test is still running."""

    def __init__(self, test_id):
        super().__init__(f"An import for test {test_id} is already in progress")
        self.test_id = test_id


class ImportValidationError(Exception):
    """Input rejected before or during import; message is shown as-is."""


@dataclass
class ImportResult:
    success: bool
    message: str
    imported_count: int = 0
    content_count: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def allowed_file(filename):
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def content_row_count(test_type: str | None) -> int:
    return CONTENT_ROWS_BY_TYPE.get((test_type or "").strip().lower(), 0)


def parse_int(text: str) -> int | None:
    """Parse an integer cell; ``"2.0"`` counts as 2. Returns None when not an integer."""
    try:
        return int(text)
    except ValueError:
        pass
    try:
        value = float(text)
    except ValueError:
        return None
    if value.is_integer():
        return int(value)
    return None


class SheetRow:
    """One worksheet row with text access by 1-based column."""

    def __init__(self, number: int, cells: list[str], warnings: list[str]):
        self.number = number
        self.cells = cells
        self._warnings = warnings

    def text(self, col: int) -> str:
        if col > len(self.cells):
            return ""
        return self.cells[col - 1]

    def integer(self, col: int) -> int:
        raw = self.text(col)
        if not raw:
            return 0
        value = parse_int(raw)
        if value is None:
            message = f"Row {self.number}, column {col}: {raw!r} is not an integer, using 0"
            logger.warning(message)
            self._warnings.append(message)
            return 0
        return value


def _cell_text(value) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def read_sheet_rows(file_bytes: bytes, sheet_name: str, warnings: list[str]) -> list[SheetRow]:
    """Read data rows (header excluded, blank rows skipped) from the named sheet."""
    with pd.ExcelFile(io.BytesIO(file_bytes)) as workbook:
        if sheet_name not in workbook.sheet_names:
            raise ImportValidationError(f"Cannot find worksheet '{sheet_name}'")
        frame = workbook.parse(
            sheet_name, header=None, dtype=str, keep_default_na=False
        )

    if frame.empty:
        raise ImportValidationError("Worksheet is empty")

    rows = []
    for index, values in enumerate(frame.itertuples(index=False, name=None)):
        if index == 0:
            continue  # header
        cells = [_cell_text(v) for v in values]
        if not any(cells):
            continue
        rows.append(SheetRow(index + 1, cells, warnings))

    if not rows:
        raise ImportValidationError("Excel file must contain at least one data row")
    return rows


def _build_contents(rows: list[SheetRow], test_id: int) -> list[ContentRecord]:
    contents = []
    seen = {}
    for row in rows:
        order = row.integer(COL_ORDER)
        if order in seen:
            raise ValueError(
                f"Row {row.number}: content order {order} already used on row {seen[order]}"
            )
        seen[order] = row.number
        contents.append(
            ContentRecord(
                question_type=row.text(COL_TYPE),
                content=row.text(COL_CONTENT),
                correct_answer="",
                choices="",
                explanation=row.text(COL_EXPLANATION),
                link=row.text(COL_LINK),
                parent_id=NO_PARENT,
                test_id=test_id,
                order=order,
            )
        )
    return contents


def _build_questions(
    rows: list[SheetRow], test_id: int, parent_ids: dict[int, int]
) -> list[ContentRecord]:
    questions = []
    for row in rows:
        parent_order = row.integer(COL_PARENT_ORDER)
        if parent_order not in parent_ids:
            raise LookupError(
                f"Row {row.number}: parent reference {parent_order} does not match any content row"
            )
        questions.append(
            ContentRecord(
                question_type=row.text(COL_TYPE),
                content=row.text(COL_CONTENT),
                correct_answer=row.text(COL_CORRECT_ANSWER),
                choices=row.text(COL_CHOICES),
                explanation=row.text(COL_EXPLANATION),
                parent_id=parent_ids[parent_order],
                test_id=test_id,
                link=row.text(COL_LINK),
                order=row.integer(COL_ORDER),
            )
        )
    return questions


def _claim_test(test_id: int) -> None:
    """Set the import flag, taking over claims older than IMPORT_LOCK_TIMEOUT."""
    if db.session.get(PracticeTest, test_id) is None:
        raise ImportValidationError(f"Test {test_id} not found")
    now = datetime.utcnow()
    stale_before = now - timedelta(seconds=current_app.config["IMPORT_LOCK_TIMEOUT"])
    claimed = db.session.execute(
        update(PracticeTest)
        .where(
            PracticeTest.id == test_id,
            or_(
                PracticeTest.is_importing == false(),
                PracticeTest.import_started_at < stale_before,
            ),
        )
        .values(is_importing=True, import_started_at=now)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.session.commit()
    if not claimed:
        raise ImportConflictError(test_id)


def _release_test(test_id: int) -> None:
    db.session.execute(
        update(PracticeTest)
        .where(PracticeTest.id == test_id)
        .values(is_importing=False, import_started_at=None)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


def import_questions(file_bytes, filename, test_id, test_type) -> ImportResult:
    """Import a question workbook into ``test_id``.

    Content rows are inserted and flushed first so their ids can be looked up
    by order value; question rows then reference them through column 6.
    Nothing is kept unless both passes succeed. Raises
    :class:`ImportConflictError` if the test is already being imported.
    """
    if not file_bytes:
        return ImportResult(False, "No file provided or file is empty")
    if not filename or not allowed_file(filename):
        return ImportResult(False, "Invalid file format. Only .xlsx and .xls files are allowed")

    try:
        _claim_test(test_id)
    except ImportValidationError as exc:
        return ImportResult(False, str(exc))

    warnings: list[str] = []
    try:
        rows = read_sheet_rows(file_bytes, current_app.config["IMPORT_SHEET_NAME"], warnings)
        split = content_row_count(test_type)

        contents = _build_contents(rows[:split], test_id)
        db.session.add_all(contents)
        db.session.flush()
        parent_ids = {content.order: content.id for content in contents}

        questions = _build_questions(rows[split:], test_id, parent_ids)
        if not questions:
            raise ImportValidationError("No valid questions found in the Excel file")
        db.session.add_all(questions)
        db.session.flush()

        db.session.commit()
    except ImportValidationError as exc:
        db.session.rollback()
        return ImportResult(False, str(exc), warnings=warnings)
    except Exception as exc:
        db.session.rollback()
        logger.exception("Question import for test %s failed", test_id)
        return ImportResult(False, f"Error importing questions: {exc}", warnings=warnings)
    finally:
        _release_test(test_id)

    logger.info(
        "Imported %d content row(s) and %d question(s) into test %s (%d warning(s))",
        len(contents), len(questions), test_id, len(warnings),
    )
    return ImportResult(
        True,
        f"Successfully imported {len(questions)} question(s)",
        imported_count=len(questions),
        content_count=len(contents),
        warnings=warnings,
    )
