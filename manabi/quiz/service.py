"""
Quiz lifecycle services.

QuizService covers the student side (fetch, submit, integrity flags,
results); GradingService covers the admin side (grading queue, grading,
grade history). Every method receives an explicit RequestContext carrying
the caller's identity, the database session and the clock.
"""
import random
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from manabi.common.context import RequestContext
from manabi.courses.models import Course
from manabi.quiz.authoring import question_to_dict
from manabi.quiz.errors import (
    AttemptConflictError,
    QuizAccessError,
    QuizNotFoundError,
    QuizValidationError,
)
from manabi.quiz.grading import (
    AnswerKey,
    is_passing,
    normalize_mcq_answers,
    percentage_of,
    score_mcq,
    validate_grade_score,
    validate_mcq_selections,
    validate_open_ended_answer,
)
from manabi.quiz.models import (
    ATTEMPT_IN_PROGRESS,
    ATTEMPT_SUBMITTED,
    QUIZ_TYPE_MCQ,
    QUIZ_TYPE_OPEN_ENDED,
    AttemptSession,
    GradeEvent,
    McqAnswer,
    Quiz,
    Submission,
)
from manabi.quiz.results import (
    build_student_results,
    grading_entry,
    partition_for_grading,
    submission_summary,
)
from manabi.quiz.session import INTEGRITY_EVENTS
from manabi.security import SecurityLogger

INTEGRITY_COLUMNS = {
    'tab_switch': 'tab_switches',
    'copy_paste': 'copy_paste_attempts',
    'context_menu': 'context_menu_attempts',
}

ANSWER_FIELDS = {
    QUIZ_TYPE_MCQ: frozenset({'mcqAnswers'}),
    QUIZ_TYPE_OPEN_ENDED: frozenset({'textAnswer', 'fileUrl'}),
}


def _index(value, name: str) -> int:
    if value is None or value == '' or isinstance(value, bool):
        raise QuizValidationError('Missing required parameters')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise QuizValidationError(f'{name} must be an integer')
    if number < 0:
        raise QuizValidationError(f'{name} must not be negative')
    return number


def parse_slot(source) -> tuple:
    """Read (courseId, moduleIndex, itemIndex) from query args or a JSON body."""
    return (
        _index(source.get('courseId'), 'courseId'),
        _index(source.get('moduleIndex'), 'moduleIndex'),
        _index(source.get('itemIndex'), 'itemIndex'),
    )


def load_quiz(ctx: RequestContext, slot: tuple) -> Quiz:
    course_id, module_index, item_index = slot
    if ctx.session.get(Course, course_id) is None:
        raise QuizNotFoundError('Course not found')
    quiz = ctx.session.query(Quiz).filter_by(
        course_id=course_id,
        module_index=module_index,
        item_index=item_index,
    ).first()
    if quiz is None:
        raise QuizNotFoundError('Quiz not found')
    return quiz


def _grace_seconds() -> int:
    return current_app.config.get('QUIZ_GRACE_SECONDS', 30)


class QuizService:
    """Student-facing quiz operations."""

    @staticmethod
    def _submissions(ctx: RequestContext, quiz: Quiz) -> list:
        return ctx.session.query(Submission).filter_by(
            quiz_id=quiz.id,
            student_id=ctx.user_id,
        ).order_by(Submission.attempt_number.desc()).all()

    @staticmethod
    def _open_attempt(ctx: RequestContext, quiz: Quiz):
        return ctx.session.query(AttemptSession).filter_by(
            quiz_id=quiz.id,
            student_id=ctx.user_id,
            status=ATTEMPT_IN_PROGRESS,
        ).order_by(AttemptSession.attempt_number.desc()).first()

    @staticmethod
    def _expire_attempt(ctx: RequestContext, quiz: Quiz, attempt: AttemptSession) -> Submission:
        """
        Close an attempt whose time ran out with an empty, automatically
        submitted answer and commit it.

        Raises:
            AttemptConflictError: the attempt was submitted by a parallel request
        """
        now = ctx.now()
        submission = Submission(
            quiz_id=quiz.id,
            student_id=ctx.user_id,
            attempt_session_id=attempt.id,
            attempt_number=attempt.attempt_number,
            quiz_type=quiz.quiz_type,
            student_name=ctx.display_name,
            started_at=attempt.started_at,
            submitted_at=now,
            time_spent=int((now - attempt.started_at).total_seconds()),
            auto_submitted=True,
            total_points=quiz.total_points,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent[:512],
        )
        if quiz.is_mcq:
            result = score_mcq([AnswerKey.from_question(q) for q in quiz.questions], {},
                               quiz.total_points, quiz.passing_score)
            QuizService._apply_mcq_result(submission, result)
        attempt.status = ATTEMPT_SUBMITTED
        ctx.session.add(submission)
        try:
            ctx.session.commit()
        except IntegrityError:
            ctx.session.rollback()
            SecurityLogger.log_duplicate_submission(ctx.user_id, quiz.id, attempt.attempt_number)
            raise AttemptConflictError('This attempt has already been submitted', alreadySubmitted=True)
        current_app.logger.info(
            f"Attempt {attempt.id} of quiz {quiz.id} expired without submission; recorded empty attempt"
        )
        return submission

    @staticmethod
    def _apply_mcq_result(submission: Submission, result) -> None:
        submission.mcq_answers = [
            McqAnswer(
                question_index=a.question_index,
                selected_option_index=a.selected_option_index,
                is_correct=a.is_correct,
                points_earned=a.points_earned,
            )
            for a in result.answers
        ]
        submission.score = result.score
        submission.total_points = result.total_points
        submission.percentage = result.percentage
        submission.passed = result.passed

    @staticmethod
    def _student_view(quiz: Quiz, attempt: AttemptSession) -> dict:
        """Quiz as shown to a student: no answer key, optionally shuffled."""
        view = {
            'title': quiz.title,
            'description': quiz.description,
            'quizType': quiz.quiz_type,
            'timeLimit': quiz.time_limit_minutes,
            'totalPoints': quiz.total_points,
            'passingScore': quiz.passing_score,
            'allowMultipleAttempts': quiz.allow_multiple_attempts,
            'attemptNumber': attempt.attempt_number,
        }
        if quiz.is_mcq:
            # Same attempt, same order: the shuffle is seeded by the attempt
            rng = random.Random(attempt.id)
            questions = [question_to_dict(q, include_answers=False) for q in quiz.questions]
            if quiz.randomize_questions:
                rng.shuffle(questions)
            if quiz.randomize_options:
                for question in questions:
                    rng.shuffle(question['options'])
            view['questions'] = questions
        else:
            view.update({
                'question': quiz.open_ended_question,
                'questionFile': quiz.open_ended_question_file,
                'acceptTextAnswer': quiz.accept_text_answer,
                'acceptFileUpload': quiz.accept_file_upload,
            })
        return view

    @staticmethod
    def fetch(ctx: RequestContext, slot: tuple) -> dict:
        """
        Return the quiz for a student and start (or resume) the server-side attempt.

        Raises:
            QuizNotFoundError: course or quiz missing
            QuizAccessError: quiz unpublished, or already submitted on a single-attempt quiz
        """
        quiz = load_quiz(ctx, slot)
        if not quiz.is_published:
            raise QuizAccessError('Quiz is not published')

        now = ctx.now()
        attempt = QuizService._open_attempt(ctx, quiz)
        if attempt is not None and attempt.seconds_past_deadline(now, _grace_seconds()):
            QuizService._expire_attempt(ctx, quiz, attempt)
            attempt = None

        submissions = QuizService._submissions(ctx, quiz)
        if submissions and not quiz.allow_multiple_attempts:
            raise QuizAccessError(
                'You have already submitted this quiz',
                alreadySubmitted=True,
                submission=submission_summary(submissions[0]),
            )

        if attempt is None:
            attempt = AttemptSession(
                quiz_id=quiz.id,
                student_id=ctx.user_id,
                attempt_number=len(submissions) + 1,
                status=ATTEMPT_IN_PROGRESS,
                started_at=now,
                deadline_at=now + timedelta(minutes=quiz.time_limit_minutes) if quiz.time_limit_minutes else None,
            )
            ctx.session.add(attempt)
            try:
                ctx.session.commit()
            except IntegrityError:
                # A parallel request opened the same attempt first
                ctx.session.rollback()
                attempt = QuizService._open_attempt(ctx, quiz)
                if attempt is None:
                    raise AttemptConflictError('Could not start the quiz attempt, please retry')
            else:
                current_app.logger.info(
                    f"Student {ctx.user_id} started attempt {attempt.attempt_number} of quiz {quiz.id}"
                )

        return {
            'success': True,
            'quiz': QuizService._student_view(quiz, attempt),
            'previousAttempts': len(submissions),
            'attempt': attempt.to_dict(now),
        }

    @staticmethod
    def submit(ctx: RequestContext, payload: dict) -> dict:
        """
        Evaluate and store a submission for the caller's open attempt.

        MCQ answers are graded immediately; open-ended answers are stored
        ungraded. Submissions later than deadline + grace are refused and
        the attempt is closed with an empty answer.
        """
        if not isinstance(payload, dict):
            raise QuizValidationError('Request body must be a JSON object')
        slot = parse_slot(payload)
        quiz_type = payload.get('quizType')
        if not quiz_type:
            raise QuizValidationError('Missing required fields')

        quiz = load_quiz(ctx, slot)
        if not quiz.is_published:
            raise QuizAccessError('Quiz is not published')
        if quiz_type != quiz.quiz_type:
            raise QuizValidationError('quizType does not match the quiz')

        answers = payload.get('answers') or {}
        if not isinstance(answers, dict):
            raise QuizValidationError('answers must be an object')
        unknown = sorted(set(answers) - ANSWER_FIELDS[quiz.quiz_type])
        if unknown:
            expected = ', '.join(sorted(ANSWER_FIELDS[quiz.quiz_type]))
            raise QuizValidationError(
                f"Unexpected answer fields: {', '.join(unknown)}. Expected: {expected}"
            )
        if quiz.quiz_type == QUIZ_TYPE_MCQ:
            keys = [AnswerKey.from_question(q) for q in quiz.questions]
            selected = normalize_mcq_answers(answers.get('mcqAnswers'))
            validate_mcq_selections(keys, selected)

        existing = QuizService._submissions(ctx, quiz)
        if existing and not quiz.allow_multiple_attempts:
            SecurityLogger.log_duplicate_submission(ctx.user_id, quiz.id, len(existing) + 1)
            raise QuizAccessError(
                'Multiple attempts not allowed for this quiz',
                alreadySubmitted=True,
                existingSubmission=submission_summary(existing[0]),
            )

        attempt = QuizService._open_attempt(ctx, quiz)
        if attempt is None:
            raise AttemptConflictError('No attempt in progress. Open the quiz to start an attempt.')

        now = ctx.now()
        grace = _grace_seconds()
        seconds_late = attempt.seconds_past_deadline(now, grace)
        if seconds_late:
            SecurityLogger.log_late_submission(ctx.user_id, quiz.id, seconds_late)
            expired = QuizService._expire_attempt(ctx, quiz, attempt)
            raise QuizAccessError(
                'Time limit exceeded. The attempt was closed without your answers.',
                timeExpired=True,
                submission=submission_summary(expired),
            )

        auto_submitted = payload.get('autoSubmitted') is True
        # Only a countdown that has really run out may submit an empty answer
        time_is_up = (
            attempt.deadline_at is not None
            and now >= attempt.deadline_at - timedelta(seconds=grace)
        )

        submission = Submission(
            quiz_id=quiz.id,
            student_id=ctx.user_id,
            attempt_session_id=attempt.id,
            attempt_number=attempt.attempt_number,
            quiz_type=quiz.quiz_type,
            student_name=ctx.display_name,
            started_at=attempt.started_at,
            submitted_at=now,
            time_spent=max(0, int((now - attempt.started_at).total_seconds())),
            auto_submitted=auto_submitted,
            total_points=quiz.total_points,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent[:512],
        )

        if quiz.quiz_type == QUIZ_TYPE_MCQ:
            result = score_mcq(keys, selected, quiz.total_points, quiz.passing_score)
            QuizService._apply_mcq_result(submission, result)
        else:
            text, file_url = validate_open_ended_answer(
                quiz.accept_text_answer,
                quiz.accept_file_upload,
                answers.get('textAnswer'),
                answers.get('fileUrl'),
                forced=auto_submitted and time_is_up,
            )
            submission.text_answer = text
            submission.file_url = file_url
            submission.score = 0
            submission.percentage = 0
            submission.passed = False

        attempt.status = ATTEMPT_SUBMITTED
        ctx.session.add(submission)
        try:
            ctx.session.commit()
        except IntegrityError:
            ctx.session.rollback()
            SecurityLogger.log_duplicate_submission(ctx.user_id, quiz.id, attempt.attempt_number)
            raise AttemptConflictError('This attempt has already been submitted', alreadySubmitted=True)

        current_app.logger.info(
            f"Student {ctx.user_id} submitted attempt {submission.attempt_number} of quiz {quiz.id} "
            f"({quiz.quiz_type}, auto={auto_submitted})"
        )

        if quiz.quiz_type == QUIZ_TYPE_OPEN_ENDED:
            return {
                'success': True,
                'message': 'Answer submitted successfully. It will be graded by the instructor.',
                'submission': {
                    'id': submission.id,
                    'submittedAt': submission.submitted_at.isoformat(),
                    'attemptNumber': submission.attempt_number,
                },
            }
        if quiz.show_answers_after_submission:
            return {
                'success': True,
                'submission': build_student_results(quiz, [submission])['submissions'][0],
                'showAnswers': True,
                'questions': [question_to_dict(q, include_answers=True) for q in quiz.questions],
            }
        return {
            'success': True,
            'submission': submission_summary(submission),
            'showAnswers': False,
        }

    @staticmethod
    def record_integrity_event(ctx: RequestContext, payload: dict) -> dict:
        """Count an advisory integrity flag on the open attempt. Never blocks the attempt."""
        if not isinstance(payload, dict):
            raise QuizValidationError('Request body must be a JSON object')
        event = payload.get('event')
        if event not in INTEGRITY_EVENTS:
            raise QuizValidationError(f"event must be one of: {', '.join(INTEGRITY_EVENTS)}")

        quiz = load_quiz(ctx, parse_slot(payload))
        attempt = QuizService._open_attempt(ctx, quiz)
        if attempt is None:
            raise AttemptConflictError('No attempt in progress')

        column = INTEGRITY_COLUMNS[event]
        count = (getattr(attempt, column) or 0) + 1
        setattr(attempt, column, count)
        ctx.session.commit()
        SecurityLogger.log_integrity_event(ctx.user_id, quiz.id, event, count)
        return {
            'success': True,
            'attemptId': attempt.id,
            'counts': {name: getattr(attempt, col) for name, col in INTEGRITY_COLUMNS.items()},
        }

    @staticmethod
    def results(ctx: RequestContext, slot: tuple, submission_id=None) -> dict:
        quiz = load_quiz(ctx, slot)
        query = ctx.session.query(Submission).filter_by(quiz_id=quiz.id, student_id=ctx.user_id)
        if submission_id is not None:
            query = query.filter_by(id=_index(submission_id, 'submissionId'))
        submissions = query.order_by(Submission.attempt_number.desc()).all()
        if not submissions:
            raise QuizNotFoundError('No submissions found')
        return build_student_results(quiz, submissions)

    @staticmethod
    def all_submissions(ctx: RequestContext) -> dict:
        """Every submission of the caller across quizzes, newest first."""
        rows = ctx.session.query(Submission, Quiz, Course).join(
            Quiz, Submission.quiz_id == Quiz.id
        ).join(
            Course, Quiz.course_id == Course.id
        ).filter(
            Submission.student_id == ctx.user_id
        ).order_by(Submission.submitted_at.desc(), Submission.id.desc()).all()

        submissions = []
        for submission, quiz, course in rows:
            item = submission_summary(submission)
            item.update(quiz.slot())
            item['courseTitle'] = course.title
            item['quizTitle'] = quiz.title
            if submission.quiz_type == QUIZ_TYPE_OPEN_ENDED:
                item['status'] = 'graded' if submission.is_graded else 'pending'
            submissions.append(item)
        return {'success': True, 'submissions': submissions}


class GradingService:
    """Admin-facing grading of open-ended submissions."""

    @staticmethod
    def queue(ctx: RequestContext, slot: tuple) -> dict:
        quiz = load_quiz(ctx, slot)
        submissions = ctx.session.query(Submission).filter_by(
            quiz_id=quiz.id,
            quiz_type=QUIZ_TYPE_OPEN_ENDED,
        ).order_by(Submission.submitted_at.desc(), Submission.id.desc()).all()
        return partition_for_grading(submissions)

    @staticmethod
    def grade(ctx: RequestContext, payload: dict) -> dict:
        """
        Record a grade for an open-ended submission.

        The grade is appended to the submission's grade history; the
        submission's score, percentage and pass flag follow the latest grade.
        An out-of-range score is rejected before anything is written.
        """
        if not isinstance(payload, dict):
            raise QuizValidationError('Request body must be a JSON object')
        submission_id = payload.get('submissionId')
        score = payload.get('score')
        if submission_id is None or score is None:
            raise QuizValidationError('Missing required fields')

        submission = ctx.session.get(Submission, _index(submission_id, 'submissionId'))
        if submission is None:
            raise QuizNotFoundError('Submission not found')
        if submission.quiz_type != QUIZ_TYPE_OPEN_ENDED:
            raise QuizValidationError('Can only grade open-ended quizzes')

        quiz = submission.quiz
        if payload.get('courseId') is not None:
            if parse_slot(payload) != (quiz.course_id, quiz.module_index, quiz.item_index):
                raise QuizValidationError('Submission does not belong to this quiz')

        value = validate_grade_score(score, quiz.total_points)
        feedback = payload.get('feedback') or ''
        if not isinstance(feedback, str):
            raise QuizValidationError('feedback must be a string')

        previous = submission.current_grade
        percentage = percentage_of(value, quiz.total_points)
        event = GradeEvent(
            score=value,
            percentage=percentage,
            passed=is_passing(percentage, quiz.passing_score),
            feedback=feedback.strip(),
            graded_at=ctx.now(),
            graded_by_id=ctx.user_id,
            graded_by_name=ctx.display_name,
        )
        submission.grade_events.append(event)
        submission.score = event.score
        submission.percentage = event.percentage
        submission.passed = event.passed
        ctx.session.commit()

        SecurityLogger.log_grade_change(submission.id, ctx.user_id, {
            'previous_score': previous.score if previous else None,
            'new_score': value,
        })
        return {'success': True, 'submission': grading_entry(submission), 'gradeCount': len(submission.grade_events)}

    @staticmethod
    def history(ctx: RequestContext, submission_id) -> dict:
        submission = ctx.session.get(Submission, _index(submission_id, 'submissionId'))
        if submission is None:
            raise QuizNotFoundError('Submission not found')
        return {
            'success': True,
            'submissionId': submission.id,
            'events': [e.to_dict() for e in submission.grade_events],
        }
