"""
Security module for the application.

Provides logging of security relevant events: authentication failures,
unauthorized access, quiz integrity flags, late or duplicate submissions
and grade changes.
"""

from .security_logger import SecurityLogger

__all__ = [
    'SecurityLogger',
]
