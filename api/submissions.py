"""Test submission API: grading and submission history."""

from datetime import date, datetime

from flask import Blueprint, current_app, jsonify, request

from services.content import TestNotFoundError
from services.scoring import (
    SubmissionNotFoundError,
    count_submissions,
    get_submission,
    get_submission_detail,
    list_user_submissions,
    normalize_answer_map,
    submission_payload,
    submit,
)

submission_bp = Blueprint("submission", __name__, url_prefix="/api/submissions")


@submission_bp.route("", methods=["POST"])
def submit_test():
    """Grade an answer sheet: {"user_id", "test_id", "answers": {question_id: answer}}."""
    data = request.get_json(silent=True) or {}
    user_id = data.get("user_id")
    test_id = data.get("test_id")
    raw_answers = data.get("answers")

    if not isinstance(user_id, int) or not isinstance(test_id, int):
        return jsonify({"ok": False, "error": "missing_params"}), 400
    if not isinstance(raw_answers, dict):
        return jsonify({"ok": False, "error": "invalid_answers"}), 400

    try:
        answers = normalize_answer_map(raw_answers)
    except ValueError as e:
        return jsonify({"ok": False, "error": "invalid_answers", "message": str(e)}), 400

    try:
        result = submit(user_id, test_id, answers)
    except TestNotFoundError:
        return jsonify({"ok": False, "error": "test_not_found"}), 404
    except Exception as e:
        current_app.logger.exception("Failed to grade submission for test %s", test_id)
        return jsonify({"ok": False, "error": "submit_failed", "message": str(e)}), 500

    return jsonify({"ok": True, **result.to_dict()}), 201


@submission_bp.route("/<int:submission_id>", methods=["GET"])
def get_submission_view(submission_id):
    try:
        submission = get_submission(submission_id)
    except SubmissionNotFoundError:
        return jsonify({"ok": False, "error": "submission_not_found"}), 404
    return jsonify({"ok": True, "submission": submission_payload(submission)})


@submission_bp.route("/<int:submission_id>/detail", methods=["GET"])
def get_submission_detail_view(submission_id):
    try:
        detail = get_submission_detail(submission_id)
    except SubmissionNotFoundError:
        return jsonify({"ok": False, "error": "submission_not_found"}), 404
    # JSON object keys must be strings
    detail["answers"] = {str(k): v for k, v in detail["answers"].items()}
    return jsonify({"ok": True, "detail": detail})


@submission_bp.route("/users/<int:user_id>", methods=["GET"])
def get_user_submissions(user_id):
    """A student's submissions, newest first."""
    submissions = list_user_submissions(user_id)
    return jsonify({"ok": True, "submissions": [submission_payload(s) for s in submissions]})


@submission_bp.route("/count", methods=["GET"])
def get_submission_count():
    """Count submissions for ?period=day|week around ?start=YYYY-MM-DD (all otherwise)."""
    period = request.args.get("period", "all").lower()
    start_raw = request.args.get("start")
    if start_raw:
        try:
            start = datetime.strptime(start_raw, "%Y-%m-%d").date()
        except ValueError:
            return jsonify({"ok": False, "error": "invalid_date"}), 400
    else:
        start = date.today()

    return jsonify({"ok": True, "period": period, "count": count_submissions(start, period)})
