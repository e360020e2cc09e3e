"""Admin blueprint for course and quiz authoring."""
from flask import Blueprint
from manabi.config import config

admin_bp = Blueprint('admin', __name__, url_prefix=config.ADMIN_API_PREFIX)

from manabi.admin import routes  # noqa: E402,F401
