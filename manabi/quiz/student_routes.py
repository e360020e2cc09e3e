"""
Student routes for quiz functionality.

Students can:
- Fetch a published quiz, which starts or resumes a timed attempt
- Submit answers (MCQ answers are graded immediately)
- Report advisory integrity events during an attempt
- View their results and submission history
"""
from flask import jsonify, request, current_app
from flask_login import login_required

from manabi import db
from manabi.common.context import current_context
from manabi.common.decorators import student_required
from manabi.quiz import quiz_bp
from manabi.quiz.errors import QuizError
from manabi.quiz.service import QuizService, parse_slot


def _quiz_call(action, *args):
    """Run a service call and turn its errors into JSON responses."""
    try:
        return jsonify(action(current_context(), *args)), 200
    except QuizError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception(f"Quiz request failed: {request.method} {request.path}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


@quiz_bp.route('/fetch', methods=['GET'])
@login_required
@student_required
def fetch_quiz():
    """
    Get a quiz for the student and start the attempt timer.

    Query params: courseId, moduleIndex, itemIndex
    """
    return _quiz_call(lambda ctx: QuizService.fetch(ctx, parse_slot(request.args)))


@quiz_bp.route('/submit', methods=['POST'])
@login_required
@student_required
def submit_quiz():
    """
    Submit the current attempt.

    Body: courseId, moduleIndex, itemIndex, quizType, answers, autoSubmitted
    """
    payload = request.get_json(silent=True)
    return _quiz_call(QuizService.submit, payload)


@quiz_bp.route('/integrity', methods=['POST'])
@login_required
@student_required
def report_integrity_event():
    payload = request.get_json(silent=True)
    return _quiz_call(QuizService.record_integrity_event, payload)


@quiz_bp.route('/results', methods=['GET'])
@login_required
@student_required
def quiz_results():
    """
    Results of the student's submissions for one quiz, newest first.

    Query params: courseId, moduleIndex, itemIndex, optional submissionId
    """
    return _quiz_call(lambda ctx: QuizService.results(
        ctx,
        parse_slot(request.args),
        request.args.get('submissionId'),
    ))


@quiz_bp.route('/submissions', methods=['GET'])
@login_required
@student_required
def my_submissions():
    return _quiz_call(QuizService.all_submissions)
