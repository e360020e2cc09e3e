"""
Test cases for the Flask CLI commands.
"""
from manabi.auth.models import User
from manabi.courses.models import Course
from manabi.quiz.models import Quiz


class TestCreateAdmin:

    def test_creates_admin(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            'create-admin', '--email', 'Root@Example.com', '--full-name', 'Root', '--password', 'password123',
        ])
        assert 'created successfully' in result.output
        with app.app_context():
            user = User.query.filter_by(email='root@example.com').one()
            assert user.user_type == 'admin'

    def test_existing_user(self, app, admin_id):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            'create-admin', '--email', 'sensei@example.com', '--full-name', 'Again', '--password', 'password123',
        ])
        assert 'already exists' in result.output

    def test_short_password(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            'create-admin', '--email', 'x@example.com', '--full-name', 'X', '--password', 'short',
        ])
        assert result.exit_code != 0


class TestSeedDemo:

    def test_seed_is_idempotent(self, app):
        runner = app.test_cli_runner()
        first = runner.invoke(args=['seed-demo'])
        assert 'created with 2 quizzes' in first.output
        second = runner.invoke(args=['seed-demo'])
        assert 'already exists' in second.output
        with app.app_context():
            assert Course.query.count() == 1
            assert Quiz.query.filter_by(is_published=True).count() == 2
