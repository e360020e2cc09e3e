from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from dotenv import load_dotenv
from flask_migrate import Migrate
from flask_compress import Compress

# Load environment variables early so config is available for blueprint creation
load_dotenv()

from manabi.config import config

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
compress = Compress()

API_PREFIXES = ('/api/',)


def _is_api_request() -> bool:
    return request.path.startswith(API_PREFIXES)


def create_app(overrides: dict = None) -> Flask:
    """
    Application factory for the Flask app.
    Loads environment variables, configures the database,
    and registers blueprints.

    Args:
        overrides: Optional mapping applied on top of the environment-derived
            Flask config (tests pass an in-memory database URI here).
    """
    # Re-initialize config to ensure latest .env values are loaded
    from manabi.config import Config
    global config
    config = Config()
    config.validate()

    app = Flask(__name__)

    app.config["SECRET_KEY"] = config.SECRET_KEY
    app.config["SQLALCHEMY_DATABASE_URI"] = config.SQLALCHEMY_DATABASE_URI
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = config.SQLALCHEMY_TRACK_MODIFICATIONS
    app.config["SQLALCHEMY_ECHO"] = config.SQLALCHEMY_ECHO
    app.config["QUIZ_GRACE_SECONDS"] = config.QUIZ_GRACE_SECONDS
    app.config["MIN_PASSWORD_LENGTH"] = config.MIN_PASSWORD_LENGTH
    app.config["ADMIN_REGISTRATION_CODE"] = config.ADMIN_REGISTRATION_CODE

    # Response compression settings
    app.config["COMPRESS_MIMETYPES"] = ['application/json']
    app.config["COMPRESS_LEVEL"] = 6
    app.config["COMPRESS_MIN_SIZE"] = 500
    app.config["SESSION_COOKIE_SECURE"] = config.SESSION_COOKIE_SECURE
    app.config["SESSION_COOKIE_HTTPONLY"] = config.SESSION_COOKIE_HTTPONLY
    app.config["SESSION_COOKIE_SAMESITE"] = config.SESSION_COOKIE_SAMESITE

    if overrides:
        app.config.update(overrides)

    db_uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if db_uri.startswith("mysql"):
        if "?" not in db_uri:
            app.config["SQLALCHEMY_DATABASE_URI"] = db_uri + "?charset=utf8mb4"
        # Connection pooling only applies to the MySQL server deployment
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {
            "pool_size": 10,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "max_overflow": 20,
            "connect_args": {
                "connect_timeout": 5,
                "read_timeout": 10,
                "write_timeout": 10,
                "charset": "utf8mb4",
            }
        })

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    compress.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        from manabi.auth.models import User
        try:
            return db.session.get(User, int(user_id))
        except (ValueError, TypeError):
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        from manabi.security import SecurityLogger
        SecurityLogger.log_unauthorized_access(request.path)
        return jsonify({'success': False, 'error': 'Unauthorized'}), 401

    # Register blueprints
    from manabi.auth import auth_bp
    app.register_blueprint(auth_bp)

    from manabi.quiz import quiz_bp
    app.register_blueprint(quiz_bp)

    from manabi.admin import admin_bp
    app.register_blueprint(admin_bp)

    # Custom error handlers for API routes to return JSON instead of HTML
    @app.errorhandler(404)
    def handle_404(e):
        """Handle 404 errors - return JSON for API routes."""
        app.logger.warning(f"404 error: {request.method} {request.path}")
        if _is_api_request():
            return jsonify({
                'success': False,
                'error': f'Route not found: {request.method} {request.path}',
                'path': request.path,
                'method': request.method
            }), 404
        return f"Page not found: {request.path}", 404

    @app.errorhandler(405)
    def handle_405(e):
        """Handle 405 Method Not Allowed - return JSON for API routes."""
        app.logger.warning(f"405 error: {request.method} {request.path}")
        if _is_api_request():
            return jsonify({
                'success': False,
                'error': f'Method not allowed: {request.method} {request.path}',
                'path': request.path,
                'method': request.method
            }), 405
        return e

    @app.errorhandler(500)
    def handle_500(e):
        app.logger.error(f"500 error: {request.method} {request.path}")
        return jsonify({'success': False, 'error': 'Internal server error'}), 500

    from manabi.cli import register_commands
    register_commands(app)

    # Create tables if they do not exist
    with app.app_context():
        from manabi.auth import models as _auth_models  # noqa: F401
        from manabi.courses import models as _course_models  # noqa: F401
        from manabi.quiz import models as _quiz_models  # noqa: F401
        db.create_all()

    return app
