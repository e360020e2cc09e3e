"""
Test cases for the client-side attempt state machine.
"""
import pytest

from manabi.quiz.session import (
    ALREADY_COMPLETED,
    IN_PROGRESS,
    LOADING,
    SUBMITTED,
    IncompleteAnswersError,
    QuizAttemptSession,
    SessionStateError,
)

SLOT = {'courseId': 3, 'moduleIndex': 0, 'itemIndex': 2}


def mcq_fetch(time_limit=None, seconds_remaining=None, questions=4):
    return {
        'success': True,
        'quiz': {
            'title': 'Kana',
            'quizType': 'mcq',
            'timeLimit': time_limit,
            'questions': [
                {
                    'questionIndex': i,
                    'question': f'Q{i}',
                    'options': [{'optionIndex': 0, 'text': 'a'}, {'optionIndex': 1, 'text': 'b'}],
                }
                for i in range(questions)
            ],
        },
        'attempt': {'startedAt': '2026-01-01T10:00:00', 'secondsRemaining': seconds_remaining},
    }


def open_ended_fetch(**flags):
    quiz = {'title': 'Intro', 'quizType': 'open-ended', 'timeLimit': 1,
            'acceptTextAnswer': True, 'acceptFileUpload': True}
    quiz.update(flags)
    return {'success': True, 'quiz': quiz, 'attempt': {'startedAt': '2026-01-01T10:00:00'}}


class Recorder:
    """Submitter double that records payloads."""

    def __init__(self, fail=False):
        self.payloads = []
        self.fail = fail

    def __call__(self, payload):
        self.payloads.append(payload)
        if self.fail:
            raise ConnectionError('network down')
        return {'success': True, 'submission': {'id': 1}}


class TestLoading:
    """Fetch response handling."""

    def test_starts_in_loading(self):
        assert QuizAttemptSession(Recorder()).state == LOADING

    def test_load_starts_attempt(self):
        session = QuizAttemptSession(Recorder())
        assert session.load(SLOT, mcq_fetch(time_limit=5)) == IN_PROGRESS
        assert session.seconds_remaining == 300
        assert session.total_questions == 4

    def test_server_remaining_time_wins(self):
        session = QuizAttemptSession(Recorder())
        session.load(SLOT, mcq_fetch(time_limit=5, seconds_remaining=42))
        assert session.seconds_remaining == 42

    def test_already_submitted(self):
        session = QuizAttemptSession(Recorder())
        state = session.load(SLOT, {'success': False, 'alreadySubmitted': True, 'submission': {'id': 9}})
        assert state == ALREADY_COMPLETED
        assert session.existing_submission == {'id': 9}
        assert session.results_path == '/dashboard/courses/3/quiz/0/2/results'

    def test_cannot_answer_before_load(self):
        with pytest.raises(SessionStateError):
            QuizAttemptSession(Recorder()).select_option(0, 0)


class TestAnswering:
    """Selecting answers and integrity flags."""

    def setup_method(self):
        self.session = QuizAttemptSession(Recorder())
        self.session.load(SLOT, mcq_fetch())

    def test_select_and_change_answer(self):
        self.session.select_option(0, 1)
        self.session.select_option(0, 0)
        assert self.session.mcq_answers == {0: 0}
        assert self.session.answered_count == 1
        assert self.session.unanswered_count == 3

    def test_unknown_option_rejected(self):
        with pytest.raises(ValueError):
            self.session.select_option(0, 5)

    def test_unknown_question_rejected(self):
        with pytest.raises(ValueError):
            self.session.select_option(10, 0)

    def test_clear_answer(self):
        self.session.select_option(1, 1)
        self.session.clear_answer(1)
        assert self.session.answered_count == 0

    def test_text_answer_not_allowed_on_mcq(self):
        with pytest.raises(SessionStateError):
            self.session.set_text_answer('hello')

    def test_flag_counts_and_reports(self):
        reported = []
        session = QuizAttemptSession(Recorder(), reporter=reported.append)
        session.load(SLOT, mcq_fetch())
        warning = session.flag('tab_switch')
        session.flag('tab_switch')
        assert 'Tab switching detected' in warning
        assert session.integrity_counts['tab_switch'] == 2
        assert reported == ['tab_switch', 'tab_switch']

    def test_unknown_flag(self):
        with pytest.raises(ValueError):
            self.session.flag('screenshot')


class TestSubmitting:
    """Manual and forced submission."""

    def test_incomplete_mcq_needs_confirmation(self):
        recorder = Recorder()
        session = QuizAttemptSession(recorder)
        session.load(SLOT, mcq_fetch())
        session.select_option(0, 0)
        with pytest.raises(IncompleteAnswersError) as exc:
            session.submit()
        assert 'answered 1 out of 4' in str(exc.value)
        assert recorder.payloads == []
        assert session.confirmation_summary() == {'answered': 1, 'total': 4, 'unanswered': 3}

        session.submit(confirm_incomplete=True)
        assert session.state == SUBMITTED
        assert recorder.payloads[0]['answers'] == {'mcqAnswers': {'0': 0}}
        assert recorder.payloads[0]['autoSubmitted'] is False

    def test_complete_submit(self):
        recorder = Recorder()
        session = QuizAttemptSession(recorder)
        session.load(SLOT, mcq_fetch(questions=2))
        session.select_option(0, 0)
        session.select_option(1, 1)
        result = session.submit()
        assert result == {'success': True, 'submission': {'id': 1}}
        payload = recorder.payloads[0]
        assert payload['courseId'] == 3
        assert payload['quizType'] == 'mcq'
        assert payload['startedAt'] == '2026-01-01T10:00:00'

    def test_empty_open_ended_answer_never_submitted_manually(self):
        session = QuizAttemptSession(Recorder())
        session.load(SLOT, open_ended_fetch())
        with pytest.raises(IncompleteAnswersError):
            session.submit(confirm_incomplete=True)

    def test_open_ended_payload(self):
        recorder = Recorder()
        session = QuizAttemptSession(recorder)
        session.load(SLOT, open_ended_fetch())
        session.set_text_answer('Hajimemashite')
        session.submit()
        assert recorder.payloads[0]['answers'] == {'textAnswer': 'Hajimemashite', 'fileUrl': None}

    def test_timer_expiry_forces_submission(self):
        recorder = Recorder()
        session = QuizAttemptSession(recorder)
        session.load(SLOT, open_ended_fetch())
        assert session.seconds_remaining == 60
        session.tick(59)
        assert session.state == IN_PROGRESS
        session.tick()
        assert session.state == SUBMITTED
        assert session.auto_submitted is True
        assert recorder.payloads[0]['autoSubmitted'] is True
        assert recorder.payloads[0]['answers'] == {'textAnswer': '', 'fileUrl': None}

    def test_timer_expiry_with_no_mcq_answers(self):
        recorder = Recorder()
        session = QuizAttemptSession(recorder)
        session.load(SLOT, mcq_fetch(time_limit=1))
        for _ in range(60):
            session.tick()
        assert session.state == SUBMITTED
        assert recorder.payloads[0]['answers'] == {'mcqAnswers': {}}
        assert recorder.payloads[0]['autoSubmitted'] is True

    def test_untimed_quiz_ignores_ticks(self):
        session = QuizAttemptSession(Recorder())
        session.load(SLOT, mcq_fetch())
        assert session.tick(1000) == IN_PROGRESS

    def test_failed_submission_resumes_attempt(self):
        session = QuizAttemptSession(Recorder(fail=True))
        session.load(SLOT, mcq_fetch(questions=1))
        session.select_option(0, 1)
        assert session.submit() is None
        assert session.state == IN_PROGRESS
        assert isinstance(session.last_error, ConnectionError)
        assert session.mcq_answers == {0: 1}

    def test_failed_forced_submission_is_not_repeated(self):
        recorder = Recorder(fail=True)
        session = QuizAttemptSession(recorder)
        session.load(SLOT, mcq_fetch(time_limit=1, questions=1))
        session.select_option(0, 0)
        session.tick(60)
        for _ in range(5):
            assert session.tick() == IN_PROGRESS
        assert len(recorder.payloads) == 1
        assert recorder.payloads[0]['autoSubmitted'] is True
        assert isinstance(session.last_error, ConnectionError)

        recorder.fail = False
        session.submit()
        assert session.state == SUBMITTED
        assert len(recorder.payloads) == 2

    def test_no_actions_after_submission(self):
        session = QuizAttemptSession(Recorder())
        session.load(SLOT, mcq_fetch(questions=1))
        session.select_option(0, 0)
        session.submit()
        with pytest.raises(SessionStateError):
            session.select_option(0, 1)
        assert session.flag('copy_paste') == ''
