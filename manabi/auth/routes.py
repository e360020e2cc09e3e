import hmac

from flask import current_app, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import SQLAlchemyError

from manabi import db
from manabi.config import config
from manabi.auth import auth_bp
from manabi.auth.models import User
from manabi.auth.utils import (
    hash_password,
    is_valid_email,
    normalize_email,
    password_needs_rehash,
    validate_password,
    verify_password,
)
from manabi.security import SecurityLogger


@auth_bp.route("/", methods=["GET"])
def auth_root():
    """Simple health/info endpoint for auth API."""
    base_path = auth_bp.url_prefix or ""
    return jsonify(
        {
            "status": "ok",
            "message": "Auth API is running",
            "endpoints": [
                f"{base_path}/register",
                f"{base_path}/login",
                f"{base_path}/logout",
                f"{base_path}/me",
            ],
        }
    ), 200


@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Register a student account, or an admin account when the configured
    admin registration code is supplied.
    """
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""
    full_name = (data.get("full_name") or "").strip()
    user_type = (data.get("user_type") or config.DEFAULT_USER_TYPE).strip().lower()

    if not email or not password or not full_name:
        return jsonify({"message": "Email, password and full name are required"}), 400

    if not is_valid_email(email):
        return jsonify({"message": "Please provide a valid email address"}), 400

    if user_type not in config.VALID_USER_TYPES:
        return jsonify({
            "message": f"Invalid user type. Must be one of: {', '.join(config.VALID_USER_TYPES)}"
        }), 400

    if user_type == "admin":
        expected = current_app.config.get("ADMIN_REGISTRATION_CODE") or ""
        supplied = data.get("admin_code") or ""
        if not expected or not hmac.compare_digest(expected, supplied):
            SecurityLogger.log_unauthorized_access("admin registration")
            return jsonify({"message": "Admin registration is not allowed"}), 403

    is_valid, error = validate_password(password)
    if not is_valid:
        return jsonify({"message": error}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({"message": "User with this email already exists"}), 409

    try:
        user = User(
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            user_type=user_type,
        )
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"Failed to register user {email}")
        return jsonify({"message": "Registration failed"}), 500

    current_app.logger.info(f"Registered {user_type} account {user.id}")
    return jsonify({"message": config.MSG_REGISTER_SUCCESS, "user": user.to_dict()}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""
    remember = data.get("remember", False)

    if not email or not password:
        return jsonify({"message": "Email and password are required"}), 400

    if not is_valid_email(email):
        return jsonify({"message": "Please provide a valid email address"}), 400

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        SecurityLogger.log_failed_login(email)
        return jsonify({"message": "Invalid email or password"}), 401

    if password_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        db.session.commit()

    login_user(user, remember=remember)
    SecurityLogger.log_successful_login(user.id, user.email)

    return jsonify({
        "message": config.MSG_LOGIN_SUCCESS,
        "user": user.to_dict()
    }), 200


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout_route():
    """Logout route."""
    logout_user()
    return jsonify({"message": config.MSG_LOGOUT_SUCCESS}), 200


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": current_user.to_dict()}), 200
