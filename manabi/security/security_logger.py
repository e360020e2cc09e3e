"""
Security logging module.

This module provides specialized logging for security events
such as failed logins, quiz integrity flags and grade changes.
"""

from flask import request, current_app, has_request_context
from datetime import datetime
import json


def _remote_addr() -> str:
    return request.remote_addr if has_request_context() else "-"


class SecurityLogger:
    """
    Security event logger.

    Logs security-related events for monitoring and auditing.
    """

    @staticmethod
    def log_failed_login(email: str, reason: str = "Invalid credentials"):
        """
        Log a failed login attempt.

        Args:
            email: Email address used in login attempt
            reason: Reason for failure
        """
        current_app.logger.warning(
            f"SECURITY: Failed login attempt - Email: {email}, "
            f"IP: {_remote_addr()}, Reason: {reason}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_successful_login(user_id: int, email: str):
        current_app.logger.info(
            f"SECURITY: Successful login - User ID: {user_id}, "
            f"Email: {email}, IP: {_remote_addr()}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_unauthorized_access(resource: str, user_id: int = None):
        """
        Log unauthorized access attempt.

        Args:
            resource: Resource that was accessed
            user_id: User ID if authenticated
        """
        user_info = f"User ID: {user_id}" if user_id else "Unauthenticated"
        current_app.logger.warning(
            f"SECURITY: Unauthorized access - {user_info}, "
            f"Resource: {resource}, IP: {_remote_addr()}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_integrity_event(student_id: int, quiz_id: int, event: str, count: int):
        """
        Log an advisory quiz integrity flag (tab switch, copy/paste, context menu).

        Args:
            student_id: Student taking the quiz
            quiz_id: Quiz being taken
            event: Flag reported by the client
            count: How many times this flag has been raised during the attempt
        """
        current_app.logger.warning(
            f"SECURITY: Quiz integrity flag - Event: {event}, "
            f"Student ID: {student_id}, Quiz ID: {quiz_id}, Count: {count}, "
            f"IP: {_remote_addr()}, Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_late_submission(student_id: int, quiz_id: int, seconds_late: int):
        current_app.logger.warning(
            f"SECURITY: Late quiz submission rejected - Student ID: {student_id}, "
            f"Quiz ID: {quiz_id}, Seconds past deadline: {seconds_late}, "
            f"IP: {_remote_addr()}, Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_duplicate_submission(student_id: int, quiz_id: int, attempt_number: int):
        current_app.logger.warning(
            f"SECURITY: Duplicate quiz submission rejected - Student ID: {student_id}, "
            f"Quiz ID: {quiz_id}, Attempt: {attempt_number}, "
            f"IP: {_remote_addr()}, Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_grade_change(submission_id: int, grader_id: int, details: dict):
        """
        Log a manual grade being recorded for a submission.

        Args:
            submission_id: Graded submission
            grader_id: Admin who graded it
            details: Previous and new score
        """
        current_app.logger.info(
            f"SECURITY: Grade recorded - Submission ID: {submission_id}, "
            f"Grader ID: {grader_id}, Details: {json.dumps(details)}, "
            f"IP: {_remote_addr()}, Time: {datetime.utcnow().isoformat()}"
        )
