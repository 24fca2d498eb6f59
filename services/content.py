"""Content record store and test assembly reader.

Paragraphs / audio sections and their questions live in one table. Callers
outside this module see them as two shapes, :class:`StructuralContent` and
:class:`GradableQuestion`, and get multi-value fields as lists.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Union

from models import NO_PARENT, ContentRecord, PracticeTest, db

logger = logging.getLogger(__name__)


class ContentError(Exception):
    """Base class for content store errors."""


class TestNotFoundError(ContentError):
    __test__ = False

    def __init__(self, test_id):
        super().__init__(f"Test {test_id} not found")
        self.test_id = test_id


class RecordNotFoundError(ContentError):
    def __init__(self, record_id):
        super().__init__(f"Record {record_id} not found")
        self.record_id = record_id


class InvalidRecordError(ContentError):
    pass


class InvalidParentError(InvalidRecordError):
    pass


class RecordHasChildrenError(ContentError):
    def __init__(self, record_id, child_count):
        super().__init__(
            f"Record {record_id} still owns {child_count} question(s)"
        )
        self.record_id = record_id
        self.child_count = child_count


# ============================================================================
# Delimiter encoding (storage edge only)
# ============================================================================

def choice_separator(question_type: str) -> str:
    if (question_type or "").lower() == "matching":
        return ContentRecord.MATCHING_SEPARATOR
    return ContentRecord.CHOICE_SEPARATOR


def split_values(raw: str | None, separator: str) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(separator) if part.strip()]


def join_values(values: Union[str, Iterable[str], None], separator: str) -> str:
    if values is None:
        return ""
    if isinstance(values, str):
        return values.strip()
    return separator.join(str(v).strip() for v in values if str(v).strip())


# ============================================================================
# Variant shapes
# ============================================================================

@dataclass(frozen=True)
class StructuralContent:
    id: int
    test_id: int
    question_type: str
    content: str
    explanation: str
    link: str
    order: int
    kind: str = "content"
    parent_id: int = NO_PARENT


@dataclass(frozen=True)
class GradableQuestion:
    id: int
    test_id: int
    parent_id: int
    question_type: str
    content: str
    choices: list[str] = field(default_factory=list)
    correct_answers: list[str] = field(default_factory=list)
    explanation: str = ""
    link: str = ""
    order: int = 0
    kind: str = "question"


def to_variant(record: ContentRecord) -> Union[StructuralContent, GradableQuestion]:
    if record.is_structural:
        return StructuralContent(
            id=record.id,
            test_id=record.test_id,
            question_type=record.question_type,
            content=record.content,
            explanation=record.explanation,
            link=record.link,
            order=record.order,
        )
    return GradableQuestion(
        id=record.id,
        test_id=record.test_id,
        parent_id=record.parent_id,
        question_type=record.question_type,
        content=record.content,
        choices=split_values(record.choices, choice_separator(record.question_type)),
        correct_answers=split_values(record.correct_answer, ContentRecord.CHOICE_SEPARATOR),
        explanation=record.explanation,
        link=record.link,
        order=record.order,
    )


def record_payload(record: ContentRecord) -> dict:
    return asdict(to_variant(record))


# ============================================================================
# Reader
# ============================================================================

def _ordered(query):
    return query.order_by(ContentRecord.order, ContentRecord.id)


def get_full_content(test_id: int) -> list[ContentRecord]:
    """Every record of the test, structural and gradable, in a stable order."""
    return _ordered(ContentRecord.query.filter_by(test_id=test_id)).all()


def get_questions_only(test_id: int) -> list[ContentRecord]:
    return _ordered(
        ContentRecord.query.filter(
            ContentRecord.test_id == test_id,
            ContentRecord.parent_id != NO_PARENT,
        )
    ).all()


def count_questions(test_id: int) -> int:
    return ContentRecord.query.filter(
        ContentRecord.test_id == test_id,
        ContentRecord.parent_id != NO_PARENT,
    ).count()


def get_record(record_id: int) -> ContentRecord:
    record = db.session.get(ContentRecord, record_id)
    if record is None:
        raise RecordNotFoundError(record_id)
    return record


def get_question(record_id: int) -> ContentRecord:
    record = get_record(record_id)
    if record.is_structural:
        raise RecordNotFoundError(record_id)
    return record


def _display_key(record: ContentRecord) -> tuple[int, int]:
    return record.order, record.id


@dataclass
class Section:
    content: ContentRecord
    questions: list[ContentRecord] = field(default_factory=list)


def group_sections(
    records: Iterable[ContentRecord],
) -> tuple[list[Section], list[ContentRecord]]:
    """Group a flat record list into sections.

    Returns the sections ordered by their ordinal key and the questions whose
    parent is not part of ``records``.
    """
    records = list(records)
    sections = {
        r.id: Section(content=r)
        for r in sorted((r for r in records if r.is_structural), key=_display_key)
    }
    unassigned = []
    for question in sorted((r for r in records if not r.is_structural), key=_display_key):
        section = sections.get(question.parent_id)
        if section is None:
            unassigned.append(question)
        else:
            section.questions.append(question)
    return list(sections.values()), unassigned


def sections_payload(records: Iterable[ContentRecord]) -> dict:
    sections, unassigned = group_sections(records)
    return {
        "sections": [
            {
                **record_payload(section.content),
                "questions": [record_payload(q) for q in section.questions],
            }
            for section in sections
        ],
        "unassigned": [record_payload(q) for q in unassigned],
    }


# ============================================================================
# Single-record writes
# ============================================================================

def require_test(test_id) -> PracticeTest:
    test = db.session.get(PracticeTest, test_id) if test_id is not None else None
    if test is None:
        raise TestNotFoundError(test_id)
    return test


def _check_parent(parent_id: int, test_id: int, record_id: int | None = None) -> None:
    if parent_id == NO_PARENT:
        return
    if record_id is not None and parent_id == record_id:
        raise InvalidParentError("A record cannot be its own parent")
    parent = db.session.get(ContentRecord, parent_id)
    if parent is None or parent.test_id != test_id:
        raise InvalidParentError(
            f"Parent {parent_id} is not a content record of test {test_id}"
        )
    if not parent.is_structural:
        raise InvalidParentError(f"Parent {parent_id} is a question, not content")


def _child_count(record: ContentRecord) -> int:
    return ContentRecord.query.filter_by(parent_id=record.id, test_id=record.test_id).count()


def _as_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRecordError(f"Expected an integer, got {value!r}") from None


def _apply_fields(record: ContentRecord, data: dict) -> None:
    record.question_type = (data.get("question_type") or "").strip()
    record.content = data.get("content") or ""
    record.explanation = data.get("explanation") or ""
    record.link = (data.get("link") or "").strip()
    record.order = _as_int(data.get("order"))
    record.parent_id = _as_int(data.get("parent_id"), NO_PARENT)

    if record.parent_id == NO_PARENT:
        record.choices = ""
        record.correct_answer = ""
        return

    record.choices = join_values(data.get("choices"), choice_separator(record.question_type))
    answers = data.get("correct_answers", data.get("correct_answer"))
    record.correct_answer = join_values(answers, ContentRecord.CHOICE_SEPARATOR)


def create_record(data: dict) -> ContentRecord:
    """Create one paragraph/audio section (``parent_id`` 0) or one question."""
    test = require_test(_as_int(data.get("test_id"), None))
    record = ContentRecord(test_id=test.id)
    _apply_fields(record, data)
    _check_parent(record.parent_id, test.id)

    db.session.add(record)
    db.session.commit()
    logger.info("Created record %s in test %s", record.id, test.id)
    return record


def update_record(record_id: int, data: dict) -> ContentRecord:
    """Replace every field of a record except its id and test."""
    record = get_record(record_id)
    new_parent = _as_int(data.get("parent_id"), NO_PARENT)
    _check_parent(new_parent, record.test_id, record.id)
    if new_parent != NO_PARENT and record.is_structural:
        children = _child_count(record)
        if children:
            raise RecordHasChildrenError(record.id, children)

    try:
        _apply_fields(record, data)
    except ContentError:
        # Drop the fields already assigned before the bad value
        db.session.rollback()
        raise
    db.session.commit()
    return record


def delete_record(record_id: int, cascade: bool = False) -> int:
    """Delete a record; returns how many rows were removed.

    Content that still owns questions is only removed together with them
    when ``cascade`` is set.
    """
    record = get_record(record_id)
    removed = 0
    if record.is_structural:
        children = ContentRecord.query.filter_by(
            parent_id=record.id, test_id=record.test_id
        )
        child_count = children.count()
        if child_count and not cascade:
            raise RecordHasChildrenError(record.id, child_count)
        removed += children.delete(synchronize_session=False)

    db.session.delete(record)
    db.session.commit()
    removed += 1
    logger.info("Deleted record %s (%d row(s))", record_id, removed)
    return removed
