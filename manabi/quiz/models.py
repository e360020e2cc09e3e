"""
Database models for quiz functionality.

Supports two quiz types:
- mcq: Multiple choice questions, graded automatically on submission
- open-ended: A single prompt answered with text and/or a file, graded by an admin
"""
from datetime import datetime, timedelta

from manabi import db

QUIZ_TYPE_MCQ = 'mcq'
QUIZ_TYPE_OPEN_ENDED = 'open-ended'
QUIZ_TYPES = (QUIZ_TYPE_MCQ, QUIZ_TYPE_OPEN_ENDED)

ATTEMPT_IN_PROGRESS = 'in_progress'
ATTEMPT_SUBMITTED = 'submitted'

# Answer key variants for a question. Only single-answer questions exist today.
ANSWER_KIND_SINGLE = 'single'
ANSWER_KINDS = (ANSWER_KIND_SINGLE,)

UNANSWERED = -1


class Quiz(db.Model):
    """
    A quiz attached to a curriculum slot of a course.

    The slot is identified by (course_id, module_index, item_index).
    """
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id", ondelete='CASCADE'), nullable=False, index=True)
    module_index = db.Column(db.Integer, nullable=False)
    item_index = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    quiz_type = db.Column(db.String(20), nullable=False)
    time_limit_minutes = db.Column(db.Integer, nullable=True)  # None means untimed
    total_points = db.Column(db.Numeric(7, 2, asdecimal=False), nullable=False, default=0)
    passing_score = db.Column(db.Numeric(5, 2, asdecimal=False), nullable=False, default=60.0)  # Percentage
    allow_multiple_attempts = db.Column(db.Boolean, default=False, nullable=False)
    show_answers_after_submission = db.Column(db.Boolean, default=True, nullable=False)
    randomize_questions = db.Column(db.Boolean, default=False, nullable=False)
    randomize_options = db.Column(db.Boolean, default=False, nullable=False)
    is_published = db.Column(db.Boolean, default=False, nullable=False, index=True)

    # open-ended only
    open_ended_question = db.Column(db.Text, nullable=True)
    open_ended_question_file = db.Column(db.String(1024), nullable=True)
    accept_text_answer = db.Column(db.Boolean, default=True, nullable=False)
    accept_file_upload = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='SET NULL'), nullable=True)

    questions = db.relationship(
        "Question", backref="quiz", cascade="all, delete-orphan", order_by="Question.question_index"
    )
    submissions = db.relationship("Submission", backref="quiz", lazy="dynamic", cascade="all, delete-orphan")
    attempt_sessions = db.relationship("AttemptSession", backref="quiz", lazy="dynamic", cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint('course_id', 'module_index', 'item_index', name='uq_quiz_slot'),
    )

    def __repr__(self) -> str:
        return f"<Quiz {self.id}: {self.title}>"

    @property
    def is_mcq(self) -> bool:
        return self.quiz_type == QUIZ_TYPE_MCQ

    def slot(self) -> dict:
        return {
            'courseId': self.course_id,
            'moduleIndex': self.module_index,
            'itemIndex': self.item_index,
        }


class Question(db.Model):
    """
    A multiple choice question. Exactly one option is correct.
    """
    __tablename__ = "quiz_questions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    question_index = db.Column(db.Integer, nullable=False)
    answer_kind = db.Column(db.String(20), nullable=False, default=ANSWER_KIND_SINGLE)
    question_text = db.Column(db.Text, nullable=False)
    points = db.Column(db.Numeric(7, 2, asdecimal=False), nullable=False, default=1.0)
    explanation = db.Column(db.Text, nullable=True)  # Shown on review when the student got it wrong

    options = db.relationship(
        "QuestionOption", backref="question", cascade="all, delete-orphan", order_by="QuestionOption.option_index"
    )

    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'question_index', name='uq_quiz_question_index'),
    )

    def __repr__(self) -> str:
        return f"<Question {self.id}: #{self.question_index}>"

    def correct_option_index(self):
        """Index of the option flagged correct, or None."""
        for option in self.options:
            if option.is_correct:
                return option.option_index
        return None


class QuestionOption(db.Model):
    __tablename__ = "quiz_question_options"

    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey("quiz_questions.id", ondelete='CASCADE'), nullable=False, index=True)
    option_index = db.Column(db.Integer, nullable=False)
    text = db.Column(db.Text, nullable=False)
    is_correct = db.Column(db.Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<QuestionOption {self.id}: {self.text[:50]}>"


class AttemptSession(db.Model):
    """
    Server-side record of an attempt in progress.

    started_at and deadline_at are set by the server when the quiz is fetched,
    so the time limit does not depend on the client's clock.
    """
    __tablename__ = "quiz_attempt_sessions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='CASCADE'), nullable=False, index=True)
    attempt_number = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=ATTEMPT_IN_PROGRESS, index=True)
    started_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    deadline_at = db.Column(db.DateTime, nullable=True)

    # advisory integrity flags reported by the client
    tab_switches = db.Column(db.Integer, default=0, nullable=False)
    copy_paste_attempts = db.Column(db.Integer, default=0, nullable=False)
    context_menu_attempts = db.Column(db.Integer, default=0, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'student_id', 'attempt_number', name='uq_attempt_session'),
    )

    def __repr__(self) -> str:
        return f"<AttemptSession {self.id}: Student {self.student_id}, Quiz {self.quiz_id}>"

    def seconds_remaining(self, now: datetime):
        if self.deadline_at is None:
            return None
        return max(0, int((self.deadline_at - now).total_seconds()))

    def seconds_past_deadline(self, now: datetime, grace_seconds: int = 0) -> int:
        """How far `now` is past deadline + grace; 0 when still in time or untimed."""
        if self.deadline_at is None:
            return 0
        late = (now - (self.deadline_at + timedelta(seconds=grace_seconds))).total_seconds()
        return int(late) if late > 0 else 0

    def to_dict(self, now: datetime) -> dict:
        return {
            'id': self.id,
            'attemptNumber': self.attempt_number,
            'status': self.status,
            'startedAt': self.started_at.isoformat(),
            'deadlineAt': self.deadline_at.isoformat() if self.deadline_at else None,
            'secondsRemaining': self.seconds_remaining(now),
        }


class Submission(db.Model):
    """
    One submitted attempt of a quiz by a student.
    """
    __tablename__ = "quiz_submissions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id", ondelete='CASCADE'), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='CASCADE'), nullable=False, index=True)
    attempt_session_id = db.Column(
        db.Integer, db.ForeignKey("quiz_attempt_sessions.id", ondelete='SET NULL'), nullable=True
    )
    attempt_number = db.Column(db.Integer, nullable=False, default=1)
    quiz_type = db.Column(db.String(20), nullable=False)
    student_name = db.Column(db.String(255), nullable=False, default="")

    started_at = db.Column(db.DateTime, nullable=False)
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    time_spent = db.Column(db.Integer, nullable=False, default=0)  # seconds
    auto_submitted = db.Column(db.Boolean, default=False, nullable=False)

    score = db.Column(db.Numeric(7, 2, asdecimal=False), nullable=False, default=0)
    total_points = db.Column(db.Numeric(7, 2, asdecimal=False), nullable=False, default=0)
    percentage = db.Column(db.Integer, nullable=False, default=0)
    passed = db.Column(db.Boolean, nullable=False, default=False)

    # open-ended only
    text_answer = db.Column(db.Text, nullable=True)
    file_url = db.Column(db.String(1024), nullable=True)

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    student = db.relationship("User", foreign_keys=[student_id])
    mcq_answers = db.relationship(
        "McqAnswer", backref="submission", cascade="all, delete-orphan", order_by="McqAnswer.question_index"
    )
    grade_events = db.relationship(
        "GradeEvent", backref="submission", cascade="all, delete-orphan", order_by="GradeEvent.id"
    )

    __table_args__ = (
        db.UniqueConstraint('quiz_id', 'student_id', 'attempt_number', name='uq_submission_attempt'),
        db.Index('ix_quiz_submissions_quiz_student', 'quiz_id', 'student_id'),
    )

    def __repr__(self) -> str:
        return f"<Submission {self.id}: Student {self.student_id}, Quiz {self.quiz_id}, Attempt {self.attempt_number}>"

    @property
    def current_grade(self):
        """The latest grade event, or None while the submission is ungraded."""
        return self.grade_events[-1] if self.grade_events else None

    @property
    def is_graded(self) -> bool:
        return bool(self.grade_events)


class McqAnswer(db.Model):
    __tablename__ = "quiz_mcq_answers"

    id = db.Column(db.Integer, primary_key=True)
    submission_id = db.Column(db.Integer, db.ForeignKey("quiz_submissions.id", ondelete='CASCADE'), nullable=False, index=True)
    question_index = db.Column(db.Integer, nullable=False)
    selected_option_index = db.Column(db.Integer, nullable=False, default=UNANSWERED)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    points_earned = db.Column(db.Numeric(7, 2, asdecimal=False), nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint('submission_id', 'question_index', name='uq_submission_question'),
    )


class GradeEvent(db.Model):
    """
    Append-only record of a manual grade. The event with the highest id is the current grade.
    """
    __tablename__ = "quiz_grade_events"

    id = db.Column(db.Integer, primary_key=True)
    submission_id = db.Column(db.Integer, db.ForeignKey("quiz_submissions.id", ondelete='CASCADE'), nullable=False, index=True)
    score = db.Column(db.Numeric(7, 2, asdecimal=False), nullable=False)
    percentage = db.Column(db.Integer, nullable=False)
    passed = db.Column(db.Boolean, nullable=False)
    feedback = db.Column(db.Text, nullable=False, default="")
    graded_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    graded_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete='SET NULL'), nullable=True)
    graded_by_name = db.Column(db.String(255), nullable=False, default="")

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'score': self.score,
            'percentage': self.percentage,
            'passed': self.passed,
            'feedback': self.feedback,
            'gradedAt': self.graded_at.isoformat() if self.graded_at else None,
            'gradedBy': self.graded_by_name,
            'gradedById': self.graded_by_id,
        }
