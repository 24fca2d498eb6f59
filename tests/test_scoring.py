"""
Tests for band conversion, answer grading and submission persistence.
"""

import json
from datetime import date, datetime

import pytest

import services.scoring as scoring
from models import TestSubmission, TestSubmissionDetail, db
from services.content import TestNotFoundError
from services.scoring import (
    band_score,
    count_correct,
    count_submissions,
    deserialize_answers,
    get_submission_detail,
    list_user_submissions,
    normalize_answer_map,
    serialize_answers,
    submission_window,
    submit,
)


class TestBandScore:

    @pytest.mark.parametrize("correct,band", [
        (40, 9.0), (39, 9.0), (38, 8.5), (37, 8.5), (36, 8.0), (35, 8.0),
        (34, 7.5), (32, 7.5), (31, 7.0), (30, 7.0), (29, 6.5), (26, 6.5),
        (25, 6.0), (23, 6.0), (22, 5.5), (18, 5.5), (17, 5.0), (16, 5.0),
        (15, 4.5), (13, 4.5), (12, 4.0), (10, 4.0), (9, 0.0), (1, 0.0), (0, 0.0),
    ])
    def test_band_table(self, correct, band):
        assert band_score(correct) == band

    def test_band_is_monotonic(self):
        bands = [band_score(n) for n in range(41)]
        assert bands == sorted(bands)


class TestGrading:

    def test_comparison_ignores_case_and_padding(self):
        key = {1: "paris", 2: "B|D", 3: "river"}
        answers = {1: "Paris", 2: "b|d", 3: " River "}
        assert count_correct(key, answers) == 3

    def test_unknown_question_ids_ignored(self):
        assert count_correct({1: "A"}, {1: "a", 99: "a"}) == 1

    def test_result_independent_of_answer_order(self):
        key = {1: "A", 2: "B", 3: "C"}
        forward = {1: "A", 2: "x", 3: "C"}
        backward = dict(reversed(list(forward.items())))
        assert count_correct(key, forward) == count_correct(key, backward) == 2

    def test_answer_map_keys_coerced_to_int(self):
        assert normalize_answer_map({"12": "A", 3: None}) == {12: "A", 3: ""}

    def test_answer_map_rejects_bad_keys(self):
        with pytest.raises(ValueError, match="Invalid question id"):
            normalize_answer_map({"q1": "A"})

    def test_serialization_is_canonical(self):
        text = serialize_answers({10: "b", 2: "a"})
        assert text == '{"2": "a", "10": "b"}'
        assert deserialize_answers(text) == {2: "a", 10: "b"}


class TestSubmit:

    def test_round_trip_scores_and_persists(self, graded_test):
        q1, q2 = graded_test["q1"], graded_test["q2"]
        test_id = graded_test["test"].id

        result = submit(7, test_id, {q1.id: "a", q2.id: "C"})

        assert result.correct == 1
        assert result.incorrect == 39
        assert result.score == 0.0

        submission = db.session.get(TestSubmission, result.submission_id)
        assert submission.user_id == 7
        assert submission.score == 0.0
        detail = TestSubmissionDetail.query.filter_by(submission_id=submission.id).one()
        assert detail.feedback == "this is good feedback"
        assert json.loads(detail.answer) == {str(q1.id): "a", str(q2.id): "C"}

    def test_string_question_ids_are_graded(self, graded_test):
        q1, q2 = graded_test["q1"], graded_test["q2"]
        result = submit(2, graded_test["test"].id, {str(q1.id): "A", str(q2.id): "b"})
        assert result.correct == 2

        detail = get_submission_detail(result.submission_id)
        assert detail["answers"] == {q1.id: "A", q2.id: "b"}

    def test_non_numeric_question_id_rejected(self, graded_test):
        with pytest.raises(ValueError, match="Invalid question id"):
            submit(2, graded_test["test"].id, {"q1": "A"})
        assert TestSubmission.query.count() == 0

    def test_structural_records_are_not_graded(self, graded_test):
        passage = graded_test["passage"]
        result = submit(1, graded_test["test"].id, {passage.id: ""})
        assert result.correct == 0

    def test_score_uses_band_table(self, app, graded_test, monkeypatch):
        monkeypatch.setattr(scoring, "count_correct", lambda key, answers: 30)
        result = submit(1, graded_test["test"].id, {})
        assert result.score == 7.0
        assert result.incorrect == 10

    def test_unknown_test_raises(self, app):
        with pytest.raises(TestNotFoundError):
            submit(1, 404, {1: "A"})
        assert TestSubmission.query.count() == 0

    def test_failure_keeps_nothing(self, graded_test, monkeypatch):
        def explode(answer_map):
            raise RuntimeError("disk full")

        monkeypatch.setattr(scoring, "serialize_answers", explode)

        with pytest.raises(RuntimeError, match="disk full"):
            submit(1, graded_test["test"].id, {graded_test["q1"].id: "A"})

        assert TestSubmission.query.count() == 0
        assert TestSubmissionDetail.query.count() == 0

    def test_detail_lookup_by_submission(self, graded_test):
        q1 = graded_test["q1"]
        result = submit(3, graded_test["test"].id, {q1.id: "A"})

        detail = get_submission_detail(result.submission_id)

        assert detail["submission_id"] == result.submission_id
        assert detail["answers"] == {q1.id: "A"}


class TestSubmissionHistory:

    def _add(self, user_id, test_id, submitted_at):
        submission = TestSubmission(user_id=user_id, test_id=test_id, submitted_at=submitted_at, score=5.0)
        db.session.add(submission)
        db.session.commit()
        return submission

    def test_user_submissions_newest_first(self, reading_test):
        old = self._add(5, reading_test.id, datetime(2026, 10, 1, 9, 0))
        new = self._add(5, reading_test.id, datetime(2026, 10, 2, 9, 0))
        self._add(6, reading_test.id, datetime(2026, 10, 3, 9, 0))

        assert [s.id for s in list_user_submissions(5)] == [new.id, old.id]

    @pytest.mark.parametrize("start,period,expected", [
        (date(2026, 10, 21), "day", (datetime(2026, 10, 21), datetime(2026, 10, 22))),
        (date(2026, 10, 21), "week", (datetime(2026, 10, 19), datetime(2026, 10, 26))),
        (date(2026, 10, 25), "week", (datetime(2026, 10, 19), datetime(2026, 10, 26))),
        (date(2026, 10, 19), "week", (datetime(2026, 10, 19), datetime(2026, 10, 26))),
        (date(2026, 10, 21), "all", None),
    ])
    def test_submission_window(self, start, period, expected):
        assert submission_window(start, period) == expected

    def test_count_submissions(self, reading_test):
        self._add(1, reading_test.id, datetime(2026, 10, 19, 8, 0))
        self._add(1, reading_test.id, datetime(2026, 10, 21, 23, 59))
        self._add(1, reading_test.id, datetime(2026, 10, 26, 0, 0))

        assert count_submissions(date(2026, 10, 21), "day") == 1
        assert count_submissions(date(2026, 10, 21), "week") == 2
        assert count_submissions(date(2026, 10, 21), "all") == 3
