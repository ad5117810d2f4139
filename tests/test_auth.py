"""Test authentication endpoints."""
import json

from drive_engine.models.user import UserRole


def test_health_check(client):
    """Test auth health endpoint."""
    response = client.get('/api/auth/health')
    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['message'] == 'Auth service is running'


def test_login_success(client, admin):
    """Test successful login."""
    response = client.post('/api/auth/login',
        json={
            'email': 'admin@example.com',
            'password': 'password123'
        })

    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['error'] is False
    assert 'access_token' in data['data']
    assert 'refresh_token' in data['data']
    assert data['data']['user']['role'] == 'admin'
    assert 'password_hash' not in data['data']['user']


def test_login_invalid_credentials(client, admin):
    """Test login with wrong password."""
    response = client.post('/api/auth/login',
        json={
            'email': 'admin@example.com',
            'password': 'wrongpassword'
        })

    assert response.status_code == 401
    data = json.loads(response.data)
    assert data['error'] is True
    assert data['message'] == 'Invalid email or password'


def test_login_missing_fields(client):
    response = client.post('/api/auth/login', json={'email': 'admin@example.com'})
    assert response.status_code == 400


def test_login_deactivated_account(client, make_user):
    from drive_engine import db

    user = make_user(email='gone@example.com')
    user.is_active = False
    db.session.commit()

    response = client.post('/api/auth/login', json={'email': 'gone@example.com', 'password': 'password123'})
    assert response.status_code == 401
    assert response.get_json()['message'] == 'Account is deactivated'


def test_me_returns_profile(client, student, auth_headers):
    response = client.get('/api/auth/me', headers=auth_headers(student))

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['email'] == 'asha@example.com'
    assert data['role'] == UserRole.STUDENT.value


def test_me_requires_token(client):
    response = client.get('/api/auth/me')

    assert response.status_code == 401
    data = response.get_json()
    assert data['error'] is True
    assert data['message'] == 'Authorization token required'


def test_invalid_token_rejected(client):
    response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-jwt'})
    assert response.status_code == 401


def test_student_cannot_use_admin_endpoints(client, student, job, auth_headers):
    response = client.get(f'/api/admin/jobs/{job.id}/rounds', headers=auth_headers(student))

    assert response.status_code == 403
    assert response.get_json()['message'] == 'Admin access required'


def test_admin_cannot_poll_as_student(client, admin, job, auth_headers):
    response = client.get(f'/api/attendance/jobs/{job.id}/my-rounds', headers=auth_headers(admin))
    assert response.status_code == 403


def test_refresh_issues_new_access_token(client, student):
    login = client.post('/api/auth/login', json={'email': 'asha@example.com', 'password': 'password123'})
    refresh = login.get_json()['data']['refresh_token']

    response = client.post('/api/auth/refresh', headers={'Authorization': f'Bearer {refresh}'})

    assert response.status_code == 200
    data = response.get_json()
    assert data['message'] == 'Token refreshed successfully'
    access = data['data']['access_token']

    me = client.get('/api/auth/me', headers={'Authorization': f'Bearer {access}'})
    assert me.status_code == 200
    assert me.get_json()['data']['email'] == 'asha@example.com'


def test_refresh_rejects_access_token(client, student, auth_headers):
    response = client.post('/api/auth/refresh', headers=auth_headers(student))
    assert response.status_code != 200


def test_refresh_for_deactivated_user(client, student):
    from drive_engine import db

    login = client.post('/api/auth/login', json={'email': 'asha@example.com', 'password': 'password123'})
    refresh = login.get_json()['data']['refresh_token']
    student.is_active = False
    db.session.commit()

    response = client.post('/api/auth/refresh', headers={'Authorization': f'Bearer {refresh}'})
    assert response.status_code == 401
    assert response.get_json()['message'] == 'User not found or inactive'
