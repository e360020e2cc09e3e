"""
Test cases for grading open-ended submissions.
"""
import pytest

from manabi import db
from manabi.quiz.models import GradeEvent, Submission


@pytest.fixture
def submission_id(student_client, open_ended_slot):
    """An ungraded open-ended submission by the student."""
    student_client.get('/api/quiz/fetch', query_string=open_ended_slot)
    response = student_client.post('/api/quiz/submit', json=dict(
        open_ended_slot,
        quizType='open-ended',
        answers={'textAnswer': 'Watashi wa Hana desu.'},
    ))
    assert response.status_code == 200
    return response.get_json()['submission']['id']


def grade(client, submission_id, score, feedback=''):
    return client.put('/api/quiz/grade', json={
        'submissionId': submission_id,
        'score': score,
        'feedback': feedback,
    })


class TestGradingQueue:
    """GET /api/quiz/grade"""

    def test_ungraded_submission_listed(self, admin_client, open_ended_slot, submission_id):
        data = admin_client.get('/api/quiz/grade', query_string=open_ended_slot).get_json()
        assert data['total'] == 1
        assert data['graded'] == []
        entry = data['ungraded'][0]
        assert entry['id'] == submission_id
        assert entry['studentName'] == 'Hana Sato'
        assert entry['studentEmail'] == 'hana@example.com'
        assert entry['status'] == 'pending'

    def test_graded_submission_moves(self, admin_client, open_ended_slot, submission_id):
        grade(admin_client, submission_id, 8, 'Yoku dekimashita')
        data = admin_client.get('/api/quiz/grade', query_string=open_ended_slot).get_json()
        assert data['ungraded'] == []
        assert data['graded'][0]['gradedScore'] == 8
        assert data['graded'][0]['gradedBy'] == 'Kenji Mori'

    def test_students_cannot_see_queue(self, student_client, open_ended_slot):
        response = student_client.get('/api/quiz/grade', query_string=open_ended_slot)
        assert response.status_code == 403


class TestGradeSubmission:
    """PUT /api/quiz/grade"""

    def test_grade_updates_result(self, admin_client, student_client, open_ended_slot, submission_id):
        response = grade(admin_client, submission_id, 8, 'Good self introduction')
        assert response.status_code == 200
        graded = response.get_json()['submission']
        assert graded['percentage'] == 80
        assert graded['passed'] is True

        results = student_client.get('/api/quiz/results', query_string=open_ended_slot).get_json()
        latest = results['submissions'][0]
        assert latest['status'] == 'graded'
        assert latest['gradedScore'] == 8
        assert latest['feedback'] == 'Good self introduction'
        assert latest['percentage'] == 80

    def test_out_of_range_score_changes_nothing(self, app, admin_client, submission_id):
        response = grade(admin_client, submission_id, 11)
        assert response.status_code == 400
        assert 'between 0 and 10' in response.get_json()['error']
        with app.app_context():
            submission = db.session.get(Submission, submission_id)
            assert submission.score == 0
            assert submission.is_graded is False
            assert GradeEvent.query.count() == 0

    def test_negative_score_rejected(self, admin_client, submission_id):
        assert grade(admin_client, submission_id, -1).status_code == 400

    def test_regrade_keeps_history(self, admin_client, submission_id):
        grade(admin_client, submission_id, 8, 'first pass')
        response = grade(admin_client, submission_id, 5, 'after review')
        graded = response.get_json()['submission']
        assert graded['gradedScore'] == 5
        assert graded['percentage'] == 50
        assert graded['passed'] is False

        history = admin_client.get('/api/quiz/grade/history',
                                   query_string={'submissionId': submission_id}).get_json()
        assert [e['score'] for e in history['events']] == [8, 5]
        assert [e['feedback'] for e in history['events']] == ['first pass', 'after review']

    def test_missing_fields(self, admin_client, submission_id):
        response = admin_client.put('/api/quiz/grade', json={'submissionId': submission_id})
        assert response.status_code == 400

    def test_unknown_submission(self, admin_client):
        assert grade(admin_client, 12345, 5).status_code == 404

    def test_mcq_submission_cannot_be_graded(self, admin_client, student_client, mcq_slot):
        student_client.get('/api/quiz/fetch', query_string=mcq_slot)
        submitted = student_client.post('/api/quiz/submit', json=dict(
            mcq_slot, quizType='mcq', answers={'mcqAnswers': [0, 0, 0, 0]},
        )).get_json()
        response = grade(admin_client, submitted['submission']['id'], 50)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Can only grade open-ended quizzes'

    def test_students_cannot_grade(self, student_client, submission_id):
        assert grade(student_client, submission_id, 10).status_code == 403

    def test_history_of_unknown_submission(self, admin_client):
        response = admin_client.get('/api/quiz/grade/history', query_string={'submissionId': 999})
        assert response.status_code == 404
