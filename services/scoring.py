"""Grading of submitted answer sheets and IELTS band conversion."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta
from typing import Mapping

from flask import current_app

from models import NO_PARENT, ContentRecord, TestSubmission, TestSubmissionDetail, db
from services.content import require_test

logger = logging.getLogger(__name__)

# (minimum correct answers, band); first match from the top wins
BAND_THRESHOLDS = (
    (39, 9.0),
    (37, 8.5),
    (35, 8.0),
    (32, 7.5),
    (30, 7.0),
    (26, 6.5),
    (23, 6.0),
    (18, 5.5),
    (16, 5.0),
    (13, 4.5),
    (10, 4.0),
)


class SubmissionNotFoundError(Exception):
    def __init__(self, submission_id):
        super().__init__(f"Submission {submission_id} not found")
        self.submission_id = submission_id


@dataclass
class SubmissionResult:
    submission_id: int
    score: float
    correct: int
    incorrect: int
    submitted_at: datetime

    def to_dict(self) -> dict:
        data = asdict(self)
        data["submitted_at"] = self.submitted_at.isoformat()
        return data


def band_score(correct: int) -> float:
    """Convert a raw listening/reading score (0-40) to an IELTS band."""
    for minimum, band in BAND_THRESHOLDS:
        if correct >= minimum:
            return band
    return 0.0


def normalize_answer(answer) -> str:
    if answer is None:
        return ""
    return str(answer).strip().lower()


def count_correct(correct_answers: Mapping[int, str], answer_map: Mapping[int, str]) -> int:
    """Count answers matching the stored key, ignoring case.

    Ids missing from ``correct_answers`` are skipped.
    """
    correct = 0
    for question_id, answer in answer_map.items():
        expected = correct_answers.get(question_id)
        if expected is None:
            continue
        if normalize_answer(expected) == normalize_answer(answer):
            correct += 1
    return correct


def normalize_answer_map(raw: Mapping) -> dict[int, str]:
    """Coerce JSON-style ``{"12": "A"}`` input to ``{12: "A"}``."""
    answers = {}
    for key, value in raw.items():
        try:
            question_id = int(key)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid question id {key!r}") from None
        answers[question_id] = "" if value is None else str(value)
    return answers


def serialize_answers(answer_map: Mapping[int, str]) -> str:
    """Canonical JSON form: string keys in ascending question-id order."""
    ordered = {str(qid): answer_map[qid] for qid in sorted(answer_map)}
    return json.dumps(ordered, ensure_ascii=False)


def deserialize_answers(text: str | None) -> dict[int, str]:
    if not text:
        return {}
    return {int(qid): answer for qid, answer in json.loads(text).items()}


def submit(user_id: int, test_id: int, answer_map: Mapping) -> SubmissionResult:
    """Grade ``answer_map`` against the test and store submission + detail.

    Both rows are written in one transaction; on any error nothing is kept
    and the exception propagates. Raises TestNotFoundError for an unknown test
    and ValueError for a question id that is not an integer.
    """
    answer_map = normalize_answer_map(answer_map)
    require_test(test_id)
    total = current_app.config["TOTAL_QUESTIONS"]
    try:
        submission = TestSubmission(
            user_id=user_id, test_id=test_id, submitted_at=datetime.utcnow()
        )
        db.session.add(submission)
        db.session.flush()

        rows = (
            ContentRecord.query.with_entities(ContentRecord.id, ContentRecord.correct_answer)
            .filter(
                ContentRecord.test_id == test_id,
                ContentRecord.parent_id != NO_PARENT,
            )
            .all()
        )
        correct = count_correct({row.id: row.correct_answer for row in rows}, answer_map)

        submission.score = band_score(correct)
        db.session.add(
            TestSubmissionDetail(
                submission_id=submission.id,
                feedback=current_app.config["SUBMISSION_FEEDBACK"],
                answer=serialize_answers(answer_map),
            )
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "User %s scored %s on test %s (%d correct)",
        user_id, submission.score, test_id, correct,
    )
    return SubmissionResult(
        submission_id=submission.id,
        score=submission.score,
        correct=correct,
        incorrect=max(total - correct, 0),
        submitted_at=submission.submitted_at,
    )


# ============================================================================
# Submission history
# ============================================================================

def submission_payload(submission: TestSubmission) -> dict:
    return {
        "id": submission.id,
        "user_id": submission.user_id,
        "test_id": submission.test_id,
        "submitted_at": submission.submitted_at.isoformat() if submission.submitted_at else None,
        "score": submission.score,
    }


def get_submission(submission_id: int) -> TestSubmission:
    submission = db.session.get(TestSubmission, submission_id)
    if submission is None:
        raise SubmissionNotFoundError(submission_id)
    return submission


def get_submission_detail(submission_id: int) -> dict:
    """Detail of a submission, looked up by the owning submission id."""
    detail = TestSubmissionDetail.query.filter_by(submission_id=submission_id).first()
    if detail is None:
        raise SubmissionNotFoundError(submission_id)
    return {
        "id": detail.id,
        "submission_id": detail.submission_id,
        "feedback": detail.feedback,
        "answers": deserialize_answers(detail.answer),
    }


def list_user_submissions(user_id: int) -> list[TestSubmission]:
    return (
        TestSubmission.query.filter_by(user_id=user_id)
        .order_by(TestSubmission.submitted_at.desc(), TestSubmission.id.desc())
        .all()
    )


def submission_window(start: date, period: str) -> tuple[datetime, datetime] | None:
    """Day or Monday-based week containing ``start``; None means no bounds."""
    day = datetime.combine(start, time.min)
    if period == "day":
        return day, day + timedelta(days=1)
    if period == "week":
        monday = day - timedelta(days=day.weekday())
        return monday, monday + timedelta(days=7)
    return None


def count_submissions(start: date, period: str) -> int:
    query = TestSubmission.query
    window = submission_window(start, period)
    if window is not None:
        begin, end = window
        query = query.filter(
            TestSubmission.submitted_at >= begin, TestSubmission.submitted_at < end
        )
    return query.count()
