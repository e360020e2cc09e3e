"""Admin routes for grading open-ended quiz submissions."""
from flask import jsonify, request, current_app
from flask_login import login_required

from manabi import db
from manabi.common.context import current_context
from manabi.common.decorators import admin_required
from manabi.quiz import quiz_bp
from manabi.quiz.errors import QuizError
from manabi.quiz.service import GradingService, parse_slot


@quiz_bp.route('/grade', methods=['GET'])
@login_required
@admin_required
def grading_queue():
    """
    Open-ended submissions of a quiz, split into ungraded and graded.

    Query params: courseId, moduleIndex, itemIndex
    """
    try:
        ctx = current_context()
        return jsonify(GradingService.queue(ctx, parse_slot(request.args))), 200
    except QuizError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Error loading grading queue")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


@quiz_bp.route('/grade', methods=['PUT'])
@login_required
@admin_required
def grade_submission():
    """
    Grade (or re-grade) an open-ended submission.

    Body: submissionId, score, feedback
    """
    try:
        ctx = current_context()
        return jsonify(GradingService.grade(ctx, request.get_json(silent=True))), 200
    except QuizError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error grading submission")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


@quiz_bp.route('/grade/history', methods=['GET'])
@login_required
@admin_required
def grade_history():
    try:
        ctx = current_context()
        return jsonify(GradingService.history(ctx, request.args.get('submissionId'))), 200
    except QuizError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Error loading grade history")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500
