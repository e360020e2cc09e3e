"""Request-scoped context handed explicitly to the quiz services."""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from flask import request
from flask_login import current_user
from sqlalchemy.orm import Session

from manabi import db


@dataclass
class RequestContext:
    user_id: int
    display_name: str
    role: str
    session: Session
    ip_address: str = ""
    user_agent: str = ""
    now: Callable[[], datetime] = datetime.utcnow


def current_context() -> RequestContext:
    """Build the context for the current Flask request and logged-in user."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (request.remote_addr or "")
    return RequestContext(
        user_id=current_user.id,
        display_name=current_user.full_name or current_user.email,
        role=current_user.user_type,
        session=db.session,
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent", ""),
    )
