"""Errors raised by the quiz services and turned into JSON responses by the routes."""


class QuizError(Exception):
    """Base error. `extra` is merged into the JSON error body."""

    status_code = 400

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {'success': False, 'error': self.message, **self.extra}


class QuizValidationError(QuizError, ValueError):
    """Raised when quiz input (authoring, answers or grades) is invalid."""

    status_code = 400


class QuizAccessError(QuizError):
    """The quiz exists but this action is not allowed (unpublished, attempts used, time over)."""

    status_code = 403


class QuizNotFoundError(QuizError):
    status_code = 404


class AttemptConflictError(QuizError):
    """No attempt is open, or the attempt was already submitted."""

    status_code = 409
