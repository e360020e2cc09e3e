"""Admin routes for creating courses and authoring the quizzes in their curriculum."""
from flask import jsonify, request, current_app
from flask_login import login_required, current_user
from sqlalchemy.exc import IntegrityError

from manabi import db
from manabi.admin import admin_bp
from manabi.common.decorators import admin_required
from manabi.courses.models import Course
from manabi.quiz.authoring import apply_definition, definition_to_dict, parse_quiz_definition
from manabi.quiz.errors import QuizError
from manabi.quiz.models import Quiz
from manabi.quiz.service import parse_slot


@admin_bp.route('/courses', methods=['POST'])
@login_required
@admin_required
def create_course():
    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    if not title:
        return jsonify({'success': False, 'error': 'Course title is required'}), 400

    try:
        course = Course(
            title=title,
            description=(data.get('description') or '').strip() or None,
            created_by=current_user.id,
        )
        db.session.add(course)
        db.session.commit()
        current_app.logger.info(f"Admin {current_user.id} created course {course.id}")
        return jsonify({'success': True, 'course': course.to_dict()}), 201
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error creating course")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


@admin_bp.route('/courses/<int:course_id>/quizzes', methods=['GET'])
@login_required
@admin_required
def list_course_quizzes(course_id):
    """List the quiz items of a course in curriculum order."""
    course = db.session.get(Course, course_id)
    if course is None:
        return jsonify({'success': False, 'error': 'Course not found'}), 404

    quizzes = course.quizzes.order_by(Quiz.module_index, Quiz.item_index).all()
    quizzes_data = [{
        'id': quiz.id,
        **quiz.slot(),
        'title': quiz.title,
        'quizType': quiz.quiz_type,
        'isPublished': quiz.is_published,
        'questionCount': len(quiz.questions),
        'totalPoints': quiz.total_points,
        'submissionCount': quiz.submissions.count(),
        'updatedAt': quiz.updated_at.isoformat() if quiz.updated_at else None,
    } for quiz in quizzes]

    return jsonify({
        'success': True,
        'course': course.to_dict(),
        'quizzes': quizzes_data,
    }), 200


@admin_bp.route('/quiz', methods=['GET'])
@login_required
@admin_required
def get_quiz_definition():
    """Full quiz definition at a curriculum slot, answer key included."""
    try:
        course_id, module_index, item_index = parse_slot(request.args)
    except QuizError as e:
        return jsonify(e.to_dict()), e.status_code

    quiz = Quiz.query.filter_by(
        course_id=course_id,
        module_index=module_index,
        item_index=item_index,
    ).first()
    if quiz is None:
        return jsonify({'success': False, 'error': 'Quiz not found'}), 404
    return jsonify({'success': True, 'quiz': definition_to_dict(quiz)}), 200


@admin_bp.route('/quiz', methods=['PUT'])
@login_required
@admin_required
def save_quiz_definition():
    """
    Create or replace the quiz at a curriculum slot.

    Body: courseId, moduleIndex, itemIndex, title, description, isPublished, quizData.
    The whole definition is validated before anything is written.
    """
    payload = request.get_json(silent=True)
    try:
        course_id, module_index, item_index = parse_slot(payload or {})
        definition = parse_quiz_definition(payload)
    except QuizError as e:
        return jsonify(e.to_dict()), e.status_code

    course = db.session.get(Course, course_id)
    if course is None:
        return jsonify({'success': False, 'error': 'Course not found'}), 404

    try:
        quiz = Quiz.query.filter_by(
            course_id=course_id,
            module_index=module_index,
            item_index=item_index,
        ).first()
        created = quiz is None
        if created:
            quiz = Quiz(
                course_id=course_id,
                module_index=module_index,
                item_index=item_index,
                created_by=current_user.id,
            )
            db.session.add(quiz)

        if not created and quiz.quiz_type != definition.quiz_type and quiz.submissions.count():
            return jsonify({
                'success': False,
                'error': 'Cannot change the quiz type after students have submitted',
            }), 409

        apply_definition(quiz, definition)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'error': 'Quiz was modified concurrently, please retry'}), 409
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error saving quiz")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    current_app.logger.info(
        f"Admin {current_user.id} {'created' if created else 'updated'} quiz {quiz.id} "
        f"at course {course_id} slot {module_index}/{item_index}"
    )
    return jsonify({'success': True, 'quiz': definition_to_dict(quiz)}), 201 if created else 200
