import io
import sys
from pathlib import Path

import pytest
from openpyxl import Workbook

# Make the flat project layout importable when running pytest from anywhere
ROOT = Path(__file__).resolve().parent.parent
if ROOT.as_posix() not in sys.path:
    sys.path.insert(0, ROOT.as_posix())

from app import create_app  # noqa: E402
from config import TestingConfig  # noqa: E402
from models import ContentRecord, PracticeTest, db  # noqa: E402

HEADER = [
    "Type", "Content", "CorrectAnswer", "Choices", "Explanation",
    "ParentOrder", "Unused", "Link", "Order",
]


def content_row(kind, text, order, link=None):
    return [kind, text, None, None, None, None, None, link, order]


def question_row(kind, text, answer, parent_order, order, choices=None, link=None):
    return [kind, text, answer, choices, None, parent_order, None, link, order]


def build_workbook(rows, sheet_name="Questions", header=True) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name
    if header:
        sheet.append(HEADER)
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _make_test(name, test_type):
    test = PracticeTest(test_name=name, test_type=test_type)
    db.session.add(test)
    db.session.commit()
    return test


@pytest.fixture
def reading_test(app):
    return _make_test("Cambridge 18 Reading Test 1", PracticeTest.TYPE_READING)


@pytest.fixture
def listening_test(app):
    return _make_test("Cambridge 18 Listening Test 1", PracticeTest.TYPE_LISTENING)


@pytest.fixture
def reading_sheet():
    """Header + 3 passages (order 1..3) + one question per passage."""
    return build_workbook([
        content_row("Paragraph", "Passage one", 1),
        content_row("Paragraph", "Passage two", 2),
        content_row("Paragraph", "Passage three", 3),
        question_row("SingleChoice", "Q1", "A", 1, 1, choices="A|B|C|D"),
        question_row("ShortAnswer", "Q2", "river", 2, 2),
        question_row("MultipleChoice", "Q3", "B|D", 3, 3, choices="A|B|C|D|E"),
    ])


@pytest.fixture
def graded_test(reading_test):
    """A passage with two questions whose answers are "A" and "B"."""
    passage = ContentRecord(
        question_type="Paragraph", content="Passage", test_id=reading_test.id, order=1
    )
    db.session.add(passage)
    db.session.flush()
    q1 = ContentRecord(
        question_type="SingleChoice", content="Q1", correct_answer="A",
        choices="A|B|C", parent_id=passage.id, test_id=reading_test.id, order=1,
    )
    q2 = ContentRecord(
        question_type="SingleChoice", content="Q2", correct_answer="B",
        choices="A|B|C", parent_id=passage.id, test_id=reading_test.id, order=2,
    )
    db.session.add_all([q1, q2])
    db.session.commit()
    return {"test": reading_test, "passage": passage, "q1": q1, "q2": q2}
