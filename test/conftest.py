"""
Pytest configuration and fixtures for testing.

Every test gets a fresh application backed by an in-memory SQLite database.
Fixtures hand out ids rather than ORM objects; tests that need the database
open their own `app.app_context()`.
"""
import os

# Environment must be in place before manabi is imported: blueprint
# prefixes are read at import time.
os.environ['FLASK_ENV'] = 'testing'
os.environ['SECRET_KEY'] = 'test-secret-key-not-for-production'
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['AUTH_API_PREFIX'] = '/api/auth'
os.environ['QUIZ_API_PREFIX'] = '/api/quiz'
os.environ['ADMIN_API_PREFIX'] = '/api/admin'
os.environ['MIN_PASSWORD_LENGTH'] = '8'

import pytest

from manabi import create_app, db
from manabi.auth.models import User
from manabi.auth.utils import hash_password
from manabi.courses.models import Course
from manabi.quiz.authoring import apply_definition, parse_quiz_definition
from manabi.quiz.models import Quiz

PASSWORD = 'password123'
ADMIN_CODE = 'let-me-in'


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'ADMIN_REGISTRATION_CODE': ADMIN_CODE,
        'QUIZ_GRACE_SECONDS': 30,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def _create_user(app, email, full_name, user_type):
    with app.app_context():
        user = User(
            email=email,
            full_name=full_name,
            password_hash=hash_password(PASSWORD),
            user_type=user_type,
        )
        db.session.add(user)
        db.session.commit()
        return user.id


def _login(app, email):
    client = app.test_client()
    response = client.post('/api/auth/login', json={'email': email, 'password': PASSWORD})
    assert response.status_code == 200, response.get_json()
    return client


@pytest.fixture
def student_id(app):
    return _create_user(app, 'hana@example.com', 'Hana Sato', 'student')


@pytest.fixture
def admin_id(app):
    return _create_user(app, 'sensei@example.com', 'Kenji Mori', 'admin')


@pytest.fixture
def student_client(app, student_id):
    """Test client logged in as a student."""
    return _login(app, 'hana@example.com')


@pytest.fixture
def other_student_client(app):
    _create_user(app, 'taro@example.com', 'Taro Ito', 'student')
    return _login(app, 'taro@example.com')


@pytest.fixture
def admin_client(app, admin_id):
    """Test client logged in as an admin."""
    return _login(app, 'sensei@example.com')


@pytest.fixture
def course_id(app):
    with app.app_context():
        course = Course(title='Japanese Basics', description='Kana and greetings')
        db.session.add(course)
        db.session.commit()
        return course.id


def mcq_payload(**quiz_data):
    """Four 25-point questions; the correct option is always index 0."""
    data = {
        'quizType': 'mcq',
        'passingScore': 70,
        'mcqQuestions': [
            {
                'question': f'Question {n}',
                'points': 25,
                'options': [
                    {'text': f'right {n}', 'isCorrect': True},
                    {'text': f'wrong {n}'},
                    {'text': f'also wrong {n}'},
                ],
                'explanation': f'Because of rule {n}',
            }
            for n in range(1, 5)
        ],
    }
    data.update(quiz_data)
    return {'title': 'Kana quiz', 'isPublished': True, 'quizData': data}


def open_ended_payload(**quiz_data):
    data = {
        'quizType': 'open-ended',
        'totalPoints': 10,
        'passingScore': 60,
        'openEndedQuestion': 'Introduce yourself in Japanese.',
        'acceptTextAnswer': True,
        'acceptFileUpload': True,
    }
    data.update(quiz_data)
    return {'title': 'Self introduction', 'isPublished': True, 'quizData': data}


@pytest.fixture
def make_quiz(app, course_id):
    """
    Factory storing a quiz at a curriculum slot of the test course.

    Returns the slot as a dict usable as query params or request body.
    """
    def factory(payload, module_index=0, item_index=0, published=True):
        payload = dict(payload, isPublished=published)
        with app.app_context():
            quiz = Quiz(course_id=course_id, module_index=module_index, item_index=item_index)
            apply_definition(quiz, parse_quiz_definition(payload))
            db.session.add(quiz)
            db.session.commit()
        return {'courseId': course_id, 'moduleIndex': module_index, 'itemIndex': item_index}
    return factory


@pytest.fixture
def mcq_slot(make_quiz):
    return make_quiz(mcq_payload())


@pytest.fixture
def open_ended_slot(make_quiz):
    return make_quiz(open_ended_payload(), item_index=1)
