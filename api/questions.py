"""
Question API
Paragraph / audio-section content, questions, and Excel import.
"""

from flask import Blueprint, current_app, jsonify, request
from werkzeug.utils import secure_filename

from services import content
from services.excel_import import ImportConflictError, import_questions

question_bp = Blueprint("question", __name__, url_prefix="/api/questions")


def _content_error(exc: content.ContentError):
    if isinstance(exc, (content.RecordNotFoundError, content.TestNotFoundError)):
        code = "test_not_found" if isinstance(exc, content.TestNotFoundError) else "record_not_found"
        return jsonify({"ok": False, "error": code, "message": str(exc)}), 404
    if isinstance(exc, content.RecordHasChildrenError):
        return jsonify({
            "ok": False,
            "error": "content_has_questions",
            "message": str(exc),
            "child_count": exc.child_count,
        }), 409
    return jsonify({"ok": False, "error": "invalid_record", "message": str(exc)}), 400


# ============================================================================
# Test assembly
# ============================================================================

@question_bp.route("/tests/<int:test_id>", methods=["GET"])
def get_full_content(test_id):
    """All paragraphs/audio sections and questions of a test."""
    records = content.get_full_content(test_id)
    return jsonify({"ok": True, "records": [content.record_payload(r) for r in records]})


@question_bp.route("/tests/<int:test_id>/questions", methods=["GET"])
def get_questions_only(test_id):
    records = content.get_questions_only(test_id)
    return jsonify({"ok": True, "questions": [content.record_payload(r) for r in records]})


@question_bp.route("/tests/<int:test_id>/count", methods=["GET"])
def count_questions(test_id):
    return jsonify({"ok": True, "count": content.count_questions(test_id)})


@question_bp.route("/tests/<int:test_id>/sections", methods=["GET"])
def get_sections(test_id):
    """Content grouped into sections for rendering a test page."""
    records = content.get_full_content(test_id)
    return jsonify({"ok": True, **content.sections_payload(records)})


# ============================================================================
# Record CRUD
# ============================================================================

@question_bp.route("/<int:record_id>", methods=["GET"])
def get_record(record_id):
    try:
        record = content.get_record(record_id)
    except content.ContentError as exc:
        return _content_error(exc)
    return jsonify({"ok": True, "record": content.record_payload(record)})


@question_bp.route("", methods=["POST"])
def create_record():
    data = request.get_json(silent=True) or {}
    try:
        record = content.create_record(data)
    except content.ContentError as exc:
        return _content_error(exc)
    return jsonify({"ok": True, "record": content.record_payload(record)}), 201


@question_bp.route("/<int:record_id>", methods=["PUT"])
def update_record(record_id):
    data = request.get_json(silent=True) or {}
    try:
        record = content.update_record(record_id, data)
    except content.ContentError as exc:
        return _content_error(exc)
    return jsonify({"ok": True, "record": content.record_payload(record)})


@question_bp.route("/<int:record_id>", methods=["DELETE"])
def delete_record(record_id):
    """Delete a record. Content owning questions needs ?cascade=1."""
    cascade = request.args.get("cascade", "").lower() in ("1", "true", "yes")
    try:
        removed = content.delete_record(record_id, cascade=cascade)
    except content.ContentError as exc:
        return _content_error(exc)
    return jsonify({"ok": True, "removed": removed})


# ============================================================================
# Excel import
# ============================================================================

@question_bp.route("/upload-excel", methods=["POST"])
def upload_excel():
    """Import paragraphs/audio sections and questions from an Excel file."""
    file = request.files.get("file")
    test_id = request.form.get("test_id", type=int)
    test_type = request.form.get("test_type", "")

    if test_id is None:
        return jsonify({"ok": False, "error": "missing_params", "message": "test_id is required"}), 400

    # Extension check needs the raw name; secure_filename drops non-ASCII stems
    filename = file.filename if file and file.filename else ""
    file_bytes = file.read() if file else b""

    try:
        result = import_questions(file_bytes, filename, test_id, test_type)
    except ImportConflictError as exc:
        return jsonify({"ok": False, "error": "import_in_progress", "message": str(exc)}), 409

    if not result.success:
        current_app.logger.warning(
            "Excel import of %s for test %s rejected: %s",
            secure_filename(filename), test_id, result.message,
        )
        return jsonify({"ok": False, "error": "import_failed", **result.to_dict()}), 400

    return jsonify({"ok": True, **result.to_dict()})
