from functools import wraps
from flask import jsonify
from flask_login import current_user

from manabi.security import SecurityLogger


def _role_required(role: str, message: str):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': 'Unauthorized'}), 401
            if getattr(current_user, 'user_type', None) != role:
                SecurityLogger.log_unauthorized_access(f.__name__, current_user.id)
                return jsonify({'success': False, 'error': message}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def student_required(f):
    """Decorator to require student role for a route."""
    return _role_required('student', 'This endpoint is only accessible to students')(f)


def admin_required(f):
    """Decorator to require admin role for a route."""
    return _role_required('admin', 'This endpoint is only accessible to admins')(f)
