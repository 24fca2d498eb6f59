from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.ext.hybrid import hybrid_property

db = SQLAlchemy()

# parent_id value marking a record as structural content (paragraph / audio section)
NO_PARENT = 0


class TimestampMixin:
    """Add created_at / updated_at columns to track record lifecycle."""

    created_at = db.Column(
        db.DateTime, default=datetime.utcnow, nullable=False, index=True
    )
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
        index=True,
    )


class PracticeTest(db.Model, TimestampMixin):
    """A reading/listening paper that owns its content records."""

    __tablename__ = "tests"

    TYPE_READING = "reading"
    TYPE_LISTENING = "listening"

    id = db.Column(db.Integer, primary_key=True)
    test_name = db.Column(db.String(200), nullable=False)
    test_type = db.Column(db.String(50), nullable=False, index=True)
    # Set while a spreadsheet import is running for this test
    is_importing = db.Column(db.Boolean, default=False, nullable=False)
    import_started_at = db.Column(db.DateTime, nullable=True)

    records = db.relationship("ContentRecord", backref="test", lazy="dynamic")
    submissions = db.relationship("TestSubmission", backref="test", lazy="dynamic")

    def __repr__(self):
        return f"<PracticeTest {self.id}: {self.test_name}>"


class ContentRecord(db.Model, TimestampMixin):
    """Paragraphs, audio sections and questions share one table.

    A record with ``parent_id == 0`` is structural content; any other value
    is the id of the structural record that owns the question.
    """

    __tablename__ = "question"

    TYPE_PARAGRAPH = "Paragraph"
    TYPE_AUDIO = "Audio"

    CHOICE_SEPARATOR = "|"
    MATCHING_SEPARATOR = "\n"

    id = db.Column(db.Integer, primary_key=True)
    question_type = db.Column(db.String(50), nullable=False, default="")
    content = db.Column(db.Text, nullable=False, default="")
    choices = db.Column(db.Text, nullable=False, default="")
    correct_answer = db.Column(db.Text, nullable=False, default="")
    explanation = db.Column(db.Text, nullable=False, default="")
    link = db.Column(db.String(500), nullable=False, default="")
    parent_id = db.Column(db.Integer, nullable=False, default=NO_PARENT, index=True)
    test_id = db.Column(db.Integer, db.ForeignKey("tests.id"), nullable=False, index=True)
    # Structural content: ordinal key used by the importer. Questions: display sequence.
    order = db.Column("order", db.Integer, nullable=False, default=0)

    @hybrid_property
    def is_structural(self):
        return self.parent_id == NO_PARENT

    def __repr__(self):
        return f"<ContentRecord {self.id}: {self.question_type} parent={self.parent_id}>"


class TestSubmission(db.Model):
    """One graded attempt at a test."""

    __tablename__ = "test_submission"
    __test__ = False

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    test_id = db.Column(db.Integer, db.ForeignKey("tests.id"), nullable=False, index=True)
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    score = db.Column(db.Float)

    detail = db.relationship(
        "TestSubmissionDetail",
        backref="submission",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<TestSubmission {self.id}: user={self.user_id} test={self.test_id} score={self.score}>"


class TestSubmissionDetail(db.Model):
    """Audit record holding the raw answers of a submission."""

    __tablename__ = "test_submission_detail"
    __test__ = False

    id = db.Column(db.Integer, primary_key=True)
    submission_id = db.Column(
        db.Integer, db.ForeignKey("test_submission.id"), nullable=False, unique=True
    )
    feedback = db.Column(db.Text, nullable=False, default="")
    answer = db.Column(db.Text, nullable=False, default="{}")  # JSON answer map

    def __repr__(self):
        return f"<TestSubmissionDetail submission={self.submission_id}>"
