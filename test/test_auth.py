"""
Test cases for authentication functionality.
"""
from conftest import ADMIN_CODE, PASSWORD


class TestUserRegistration:
    """Test cases for user registration endpoints."""

    def test_register_student(self, client):
        response = client.post('/api/auth/register', json={
            'email': 'Yuki@Example.com',
            'password': 'password123',
            'full_name': 'Yuki Tanaka',
        })
        assert response.status_code == 201
        user = response.get_json()['user']
        assert user['email'] == 'yuki@example.com'
        assert user['user_type'] == 'student'

    def test_register_missing_fields(self, client):
        """Test registration with missing required fields."""
        response = client.post('/api/auth/register', json={'email': 'test@test.com'})
        assert response.status_code == 400

    def test_register_invalid_email(self, client):
        response = client.post('/api/auth/register', json={
            'email': 'invalid-email',
            'password': 'password123',
            'full_name': 'Test User',
        })
        assert response.status_code == 400

    def test_register_short_password(self, client):
        response = client.post('/api/auth/register', json={
            'email': 'test@test.com',
            'password': '123',
            'full_name': 'Test User',
        })
        assert response.status_code == 400

    def test_register_duplicate_email(self, client, student_id):
        response = client.post('/api/auth/register', json={
            'email': 'hana@example.com',
            'password': 'password123',
            'full_name': 'Hana Again',
        })
        assert response.status_code == 409

    def test_admin_requires_code(self, client):
        body = {
            'email': 'boss@example.com',
            'password': 'password123',
            'full_name': 'Boss',
            'user_type': 'admin',
        }
        assert client.post('/api/auth/register', json=body).status_code == 403
        body['admin_code'] = 'wrong'
        assert client.post('/api/auth/register', json=body).status_code == 403
        body['admin_code'] = ADMIN_CODE
        response = client.post('/api/auth/register', json=body)
        assert response.status_code == 201
        assert response.get_json()['user']['user_type'] == 'admin'

    def test_unknown_user_type(self, client):
        response = client.post('/api/auth/register', json={
            'email': 'tutor@example.com',
            'password': 'password123',
            'full_name': 'Tutor',
            'user_type': 'tutor',
        })
        assert response.status_code == 400


class TestUserLogin:
    """Test cases for user login endpoints."""

    def test_login_and_me(self, client, student_id):
        response = client.post('/api/auth/login', json={'email': 'hana@example.com', 'password': PASSWORD})
        assert response.status_code == 200
        me = client.get('/api/auth/me').get_json()
        assert me['user']['id'] == student_id

    def test_wrong_password(self, client, student_id):
        response = client.post('/api/auth/login', json={'email': 'hana@example.com', 'password': 'nope12345'})
        assert response.status_code == 401

    def test_login_missing_fields(self, client):
        response = client.post('/api/auth/login', json={'email': 'test@test.com'})
        assert response.status_code == 400

    def test_logout(self, student_client):
        assert student_client.post('/api/auth/logout').status_code == 200
        assert student_client.get('/api/auth/me').status_code == 401

    def test_me_requires_login(self, client):
        response = client.get('/api/auth/me')
        assert response.status_code == 401
        assert response.get_json()['success'] is False


class TestErrorHandlers:
    """JSON error responses for API paths."""

    def test_unknown_api_route(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_wrong_method(self, client):
        response = client.get('/api/auth/login')
        assert response.status_code == 405
        assert response.get_json()['method'] == 'GET'
