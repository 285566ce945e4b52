from market_overview.models import User
from tests.conftest import PASSWORD, login, register


def test_register_endpoint(client):
    response = register(client)

    assert response.status_code == 201
    body = response.get_json()
    assert body['success'] is True
    assert body['user_id'] == User.query.filter_by(email='alice@example.com').one().id
    assert 'verification_token' not in body


def test_register_requires_all_fields(client):
    response = client.post('/api/credentials', data={'action': 'register', 'email': 'alice@example.com'})

    assert response.status_code == 400
    assert response.get_json() == {
        'success': False,
        'message': 'All fields are required',
        'code': 'VALIDATION_ERROR'
    }


def test_register_duplicate_email(client):
    register(client)

    response = register(client, username='someone_else')

    assert response.status_code == 400
    assert response.get_json()['code'] == 'USER_EXISTS'


def test_register_overlong_password_is_a_validation_error(client):
    response = register(client, password='Aa1' + 'x' * 97)

    assert response.status_code == 400
    assert response.get_json() == {
        'success': False,
        'message': 'Password must be at most 72 bytes long',
        'code': 'VALIDATION_ERROR'
    }
    assert User.query.count() == 0


def test_login_endpoint(client, app):
    register(client)

    response = login(client)

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert body['user']['email'] == 'alice@example.com'
    assert len(body['session_token']) == 64
    assert client.get_cookie(app.config['AUTH_COOKIE_NAME']) is not None


def test_login_requires_email_and_password(client):
    response = client.post('/api/credentials', data={'action': 'login', 'email': 'alice@example.com'})

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Email and password are required'


def test_login_wrong_password(client, app):
    register(client)

    response = login(client, password='WrongPass1')

    assert response.status_code == 401
    assert response.get_json()['code'] == 'INVALID_CREDENTIALS'
    assert client.get_cookie(app.config['AUTH_COOKIE_NAME']) is None


def test_locked_account_reports_403(client):
    register(client)
    for _ in range(4):
        login(client, password='WrongPass1')

    response = login(client)

    assert response.status_code == 403
    assert response.get_json()['code'] == 'ACCOUNT_LOCKED'


def test_login_accepts_json_body(client):
    register(client)

    response = client.post('/api/credentials', json={
        'action': 'login',
        'email': 'alice@example.com',
        'password': PASSWORD
    })

    assert response.status_code == 200


def test_check_auth_and_get_user(client):
    response = client.post('/api/credentials', data={'action': 'check_auth'})
    assert response.get_json() == {'success': True, 'logged_in': False, 'user': None}

    response = client.post('/api/credentials', data={'action': 'get_user'})
    assert response.status_code == 401

    register(client)
    login(client)

    body = client.post('/api/credentials', data={'action': 'check_auth'}).get_json()
    assert body['logged_in'] is True
    assert body['user']['username'] == 'alice'

    body = client.post('/api/credentials', data={'action': 'get_user'}).get_json()
    assert body['success'] is True
    assert body['user']['email'] == 'alice@example.com'


def test_logout_clears_session(logged_in_client, app):
    response = logged_in_client.post('/api/credentials', data={'action': 'logout'})

    assert response.get_json()['success'] is True
    assert logged_in_client.get_cookie(app.config['AUTH_COOKIE_NAME']) is None
    body = logged_in_client.post('/api/credentials', data={'action': 'check_auth'}).get_json()
    assert body['logged_in'] is False


def test_invalid_action(client):
    response = client.post('/api/credentials', data={'action': 'reset_everything'})

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Invalid action'


def test_preflight_and_cors_headers(client, app):
    response = client.options('/api/credentials')

    assert response.status_code == 200
    assert response.headers['Access-Control-Allow-Origin'] == app.config['CORS_ALLOWED_ORIGIN']
    assert response.headers['Access-Control-Allow-Methods'] == 'POST, OPTIONS'
    assert response.headers['Access-Control-Allow-Credentials'] == 'true'
    assert response.headers['Access-Control-Max-Age'] == '86400'
    assert response.headers['X-Frame-Options'] == 'DENY'


def test_wrong_method_is_405_json(client):
    response = client.get('/api/credentials')

    assert response.status_code == 405
    assert response.get_json() == {
        'success': False,
        'message': 'Method not allowed',
        'code': 'METHOD_NOT_ALLOWED'
    }
    assert 'POST' in response.headers['Allow']
    assert response.headers['X-Content-Type-Options'] == 'nosniff'


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json()['database'] == 'sqlite'
