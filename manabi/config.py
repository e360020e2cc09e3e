"""
Configuration module for the application.
All configuration values are read from environment variables.
Values missing from the environment fall back to development defaults.
"""
import os
import secrets
import warnings


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        # Flask Configuration
        self.SECRET_KEY: str = os.getenv("SECRET_KEY", "")
        self.FLASK_ENV: str = os.getenv("FLASK_ENV", "")

        # Generate a development SECRET_KEY if not set and in development mode
        if not self.SECRET_KEY and self.FLASK_ENV != "production":
            self.SECRET_KEY = secrets.token_urlsafe(32)
            warnings.warn(
                "SECRET_KEY not set. Generated a temporary key for development. "
                "Set SECRET_KEY in your .env file for production!",
                UserWarning
            )

        # Database Configuration
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.DB_USER: str = os.getenv("DB_USER", "")
        self.DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
        self.DB_HOST: str = os.getenv("DB_HOST", "")
        self.DB_PORT: str = os.getenv("DB_PORT", "")
        self.DB_NAME: str = os.getenv("DB_NAME", "")

        # Blueprint URL Prefixes
        self.AUTH_API_PREFIX: str = os.getenv("AUTH_API_PREFIX", "/api/auth")
        self.QUIZ_API_PREFIX: str = os.getenv("QUIZ_API_PREFIX", "/api/quiz")
        self.ADMIN_API_PREFIX: str = os.getenv("ADMIN_API_PREFIX", "/api/admin")

        # Quiz timing: seconds accepted past the deadline (network latency, clock skew)
        grace = os.getenv("QUIZ_GRACE_SECONDS", "")
        self.QUIZ_GRACE_SECONDS: int = int(grace) if grace else 30

        # Password Validation
        min_pass_len = os.getenv("MIN_PASSWORD_LENGTH", "")
        self.MIN_PASSWORD_LENGTH: int = int(min_pass_len) if min_pass_len else 8

        # User Type Validation
        valid_user_types = os.getenv("VALID_USER_TYPES", "")
        self.VALID_USER_TYPES: list[str] = (
            [t.strip() for t in valid_user_types.split(",")] if valid_user_types else ["student", "admin"]
        )
        self.DEFAULT_USER_TYPE: str = os.getenv("DEFAULT_USER_TYPE", "student")
        # Self-service admin registration is only possible with this code
        self.ADMIN_REGISTRATION_CODE: str = os.getenv("ADMIN_REGISTRATION_CODE", "")

        # Success Messages
        self.MSG_REGISTER_SUCCESS: str = os.getenv("MSG_REGISTER_SUCCESS", "Registration successful")
        self.MSG_LOGIN_SUCCESS: str = os.getenv("MSG_LOGIN_SUCCESS", "Login successful")
        self.MSG_LOGOUT_SUCCESS: str = os.getenv("MSG_LOGOUT_SUCCESS", "Logged out")

        # Session Configuration
        session_secure = os.getenv("SESSION_COOKIE_SECURE", "")
        self.SESSION_COOKIE_SECURE: bool = session_secure.lower() == "true" if session_secure else False
        session_httponly = os.getenv("SESSION_COOKIE_HTTPONLY", "")
        self.SESSION_COOKIE_HTTPONLY: bool = session_httponly.lower() == "true" if session_httponly else True
        self.SESSION_COOKIE_SAMESITE: str = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")

        # SQLAlchemy Configuration
        self.SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
        sqlalchemy_echo = os.getenv("SQLALCHEMY_ECHO", "")
        self.SQLALCHEMY_ECHO: bool = sqlalchemy_echo.lower() == "true" if sqlalchemy_echo else False

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Database URI: DATABASE_URL if set, otherwise built from the DB_* variables."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if not self.DB_HOST:
            return "sqlite:///manabi.db"
        return f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    def validate(self) -> None:
        """
        Validate required configuration values.
        Only enforces SECRET_KEY in production environment.
        """
        if not self.SECRET_KEY:
            if self.FLASK_ENV == "production":
                raise ValueError(
                    "SECRET_KEY environment variable is required in production. "
                    "Set it in your .env file or environment variables."
                )
        if self.QUIZ_GRACE_SECONDS < 0:
            raise ValueError("QUIZ_GRACE_SECONDS must not be negative")


# Global config instance - will be re-initialized after load_dotenv()
config = Config()
