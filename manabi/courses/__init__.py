"""Courses own the curriculum slots that quizzes are attached to."""
