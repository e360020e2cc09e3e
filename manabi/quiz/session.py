"""
Client-side attempt state machine.

    loading -> in_progress -> submitting -> submitted
    loading -> already_completed

One machine serves single- and multiple-attempt quizzes; the fetch response
decides whether the attempt may start. The machine performs no I/O: the
caller feeds it the fetch response, advances the countdown with tick(), and
supplies a `submitter` callable that sends the payload to the submit endpoint
and returns its JSON body (or raises on failure).
"""
from typing import Callable, Dict, Optional

LOADING = 'loading'
IN_PROGRESS = 'in_progress'
SUBMITTING = 'submitting'
SUBMITTED = 'submitted'
ALREADY_COMPLETED = 'already_completed'

INTEGRITY_EVENTS = ('tab_switch', 'copy_paste', 'context_menu')

INTEGRITY_WARNINGS = {
    'tab_switch': 'Tab switching detected! This may be recorded.',
    'copy_paste': 'Copy-paste is disabled during quiz',
    'context_menu': 'Right-click is disabled during quiz',
}


class SessionStateError(RuntimeError):
    """Raised when an action is not allowed in the session's current state."""


class IncompleteAnswersError(ValueError):
    """Raised by a manual submit that still needs the user's confirmation or an answer."""


class QuizAttemptSession:
    """
    Tracks one attempt from fetch to submission.

    Args:
        submitter: Called with the submit payload; returns the response body
            or raises. A failure puts the session back in progress.
        reporter: Optional callable receiving integrity events
            ('tab_switch', 'copy_paste', 'context_menu') for the server.
    """

    def __init__(self, submitter: Callable[[dict], dict], reporter: Optional[Callable[[str], None]] = None):
        self.submitter = submitter
        self.reporter = reporter
        self.state = LOADING
        self.quiz: Optional[dict] = None
        self.slot: Dict[str, int] = {}
        self.started_at: Optional[str] = None
        self.seconds_remaining: Optional[int] = None
        self.mcq_answers: Dict[int, int] = {}
        self.text_answer = ""
        self.file_url: Optional[str] = None
        self.integrity_counts = {event: 0 for event in INTEGRITY_EVENTS}
        self.result: Optional[dict] = None
        self.existing_submission: Optional[dict] = None
        self.last_error: Optional[Exception] = None
        self.auto_submitted = False
        self.forced_submit_sent = False

    # -- loading ---------------------------------------------------------

    def load(self, slot: Dict[str, int], fetch_response: dict) -> str:
        """
        Apply the body returned by the fetch endpoint.

        A response flagged `alreadySubmitted` ends the session in
        already_completed; otherwise the countdown starts and answering opens.
        """
        self._require(LOADING)
        self.slot = dict(slot)
        if fetch_response.get('alreadySubmitted'):
            self.existing_submission = fetch_response.get('submission')
            self.state = ALREADY_COMPLETED
            return self.state

        self.quiz = fetch_response['quiz']
        attempt = fetch_response.get('attempt') or {}
        self.started_at = attempt.get('startedAt')
        time_limit = self.quiz.get('timeLimit')
        if attempt.get('secondsRemaining') is not None:
            self.seconds_remaining = attempt['secondsRemaining']
        elif time_limit:
            self.seconds_remaining = time_limit * 60
        self.state = IN_PROGRESS
        return self.state

    # -- answering -------------------------------------------------------

    @property
    def is_mcq(self) -> bool:
        return bool(self.quiz) and self.quiz.get('quizType') == 'mcq'

    @property
    def total_questions(self) -> int:
        if not self.quiz:
            return 0
        return len(self.quiz.get('questions') or []) if self.is_mcq else 1

    @property
    def answered_count(self) -> int:
        if self.is_mcq:
            return len(self.mcq_answers)
        return 1 if (self.text_answer.strip() or self.file_url) else 0

    @property
    def unanswered_count(self) -> int:
        return self.total_questions - self.answered_count

    def select_option(self, question_index: int, option_index: int) -> None:
        self._require(IN_PROGRESS)
        if not self.is_mcq:
            raise SessionStateError("This quiz has no multiple choice questions")
        question = self._question(question_index)
        if option_index not in {o['optionIndex'] for o in question['options']}:
            raise ValueError(f"Question {question_index} has no option {option_index}")
        self.mcq_answers[question_index] = option_index

    def clear_answer(self, question_index: int) -> None:
        self._require(IN_PROGRESS)
        self.mcq_answers.pop(question_index, None)

    def set_text_answer(self, text: str) -> None:
        self._require(IN_PROGRESS)
        if self.is_mcq or not self.quiz.get('acceptTextAnswer', True):
            raise SessionStateError("This quiz does not accept text answers")
        self.text_answer = text or ""

    def set_file_url(self, file_url: Optional[str]) -> None:
        self._require(IN_PROGRESS)
        if self.is_mcq or not self.quiz.get('acceptFileUpload', True):
            raise SessionStateError("This quiz does not accept file uploads")
        self.file_url = file_url

    def flag(self, event: str) -> str:
        """Record an advisory integrity event and return the warning to show."""
        if event not in INTEGRITY_EVENTS:
            raise ValueError(f"Unknown integrity event: {event}")
        if self.state != IN_PROGRESS:
            return ""
        self.integrity_counts[event] += 1
        if self.reporter is not None:
            self.reporter(event)
        return INTEGRITY_WARNINGS[event]

    # -- submitting ------------------------------------------------------

    def confirmation_summary(self) -> dict:
        """Counts shown in the confirmation dialog before a manual submit."""
        return {
            'answered': self.answered_count,
            'total': self.total_questions,
            'unanswered': self.unanswered_count,
        }

    def validation_warning(self) -> Optional[str]:
        if self.is_mcq:
            if self.answered_count < self.total_questions:
                return (
                    f"You have answered {self.answered_count} out of {self.total_questions} "
                    f"questions. Some questions are unanswered."
                )
            return None
        if self.answered_count == 0:
            return "Please provide an answer (text or file upload)"
        return None

    def submit(self, confirm_incomplete: bool = False) -> Optional[dict]:
        """
        Submit on the user's request.

        Unanswered MCQ questions need confirm_incomplete=True; an empty
        open-ended answer is never submitted manually.

        Returns:
            The submit response body, or None when the request failed
            (the error is kept in last_error and answering resumes).
        """
        self._require(IN_PROGRESS)
        warning = self.validation_warning()
        if warning and (not self.is_mcq or not confirm_incomplete):
            raise IncompleteAnswersError(warning)
        return self._send(forced=False)

    def tick(self, seconds: int = 1) -> str:
        """
        Advance the countdown. Reaching zero forces submission with whatever
        has been answered so far. The forced submission is sent once; if it
        fails the attempt stays in progress for a manual submit.
        """
        if self.state != IN_PROGRESS or self.seconds_remaining is None:
            return self.state
        self.seconds_remaining = max(0, self.seconds_remaining - seconds)
        if self.seconds_remaining == 0 and not self.forced_submit_sent:
            self.forced_submit_sent = True
            self._send(forced=True)
        return self.state

    def build_payload(self, forced: bool = False) -> dict:
        payload = {
            'courseId': self.slot.get('courseId'),
            'moduleIndex': self.slot.get('moduleIndex'),
            'itemIndex': self.slot.get('itemIndex'),
            'quizType': self.quiz.get('quizType'),
            'startedAt': self.started_at,
            'autoSubmitted': forced,
        }
        if self.is_mcq:
            payload['answers'] = {'mcqAnswers': {str(k): v for k, v in self.mcq_answers.items()}}
        else:
            payload['answers'] = {'textAnswer': self.text_answer, 'fileUrl': self.file_url}
        return payload

    @property
    def results_path(self) -> Optional[str]:
        if self.state not in (SUBMITTED, ALREADY_COMPLETED):
            return None
        return (
            f"/dashboard/courses/{self.slot.get('courseId')}/quiz/"
            f"{self.slot.get('moduleIndex')}/{self.slot.get('itemIndex')}/results"
        )

    def _send(self, forced: bool) -> Optional[dict]:
        self.state = SUBMITTING
        self.auto_submitted = forced
        payload = self.build_payload(forced)
        try:
            result = self.submitter(payload)
        except Exception as e:
            self.last_error = e
            self.state = IN_PROGRESS
            return None
        self.last_error = None
        self.result = result
        self.state = SUBMITTED
        return result

    def _question(self, question_index: int) -> dict:
        for question in self.quiz.get('questions') or []:
            if question['questionIndex'] == question_index:
                return question
        raise ValueError(f"Unknown question {question_index}")

    def _require(self, state: str) -> None:
        if self.state != state:
            raise SessionStateError(f"Action not allowed while session is {self.state}")
