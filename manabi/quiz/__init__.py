"""
Quiz module: authoring-time validation, student attempts and grading.

Students fetch and submit quizzes attached to course curriculum slots;
MCQ quizzes are graded on submission and open-ended quizzes are graded
by an admin.
"""
from flask import Blueprint
from manabi.config import config

quiz_bp = Blueprint('quiz', __name__, url_prefix=config.QUIZ_API_PREFIX)

from manabi.quiz import student_routes  # noqa: E402,F401
from manabi.quiz import admin_routes  # noqa: E402,F401
