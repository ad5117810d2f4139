"""Shared fixtures for the drive engine tests."""
from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from drive_engine import create_app, db
from drive_engine.models.job import Job
from drive_engine.models.user import User, UserRole
from drive_engine.services import attendance_service, session_service, token_service
from drive_engine.services.round_service import RoundService


@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


class FrozenClock:
    """Callable stand-in for utcnow that only moves when told to."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock(monkeypatch):
    clock = FrozenClock(datetime(2026, 3, 2, 9, 30, 0))
    for module in (token_service, session_service, attendance_service):
        monkeypatch.setattr(module, 'utcnow', clock)
    return clock


@pytest.fixture
def make_user(app):
    counter = {'n': 0}

    def _make_user(role=UserRole.STUDENT, name=None, email=None, password='password123'):
        counter['n'] += 1
        n = counter['n']
        user = User(
            email=email or f'user{n}@example.com',
            name=name or f'User {n}',
            role=role,
            usn=f'1XX21CS{n:03d}' if role == UserRole.STUDENT else None
        )
        user.set_password(password)
        return user.save()

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user(role=UserRole.ADMIN, name='Placement Admin', email='admin@example.com')


@pytest.fixture
def student(make_user):
    return make_user(name='Asha Rao', email='asha@example.com')


@pytest.fixture
def other_student(make_user):
    return make_user(name='Vikram Shetty', email='vikram@example.com')


@pytest.fixture
def job(app):
    return Job(title='Graduate Engineer Trainee', company_name='Acme Systems').save()


@pytest.fixture
def rounds(job):
    """Aptitude=1, Technical=2, HR=3."""
    return [
        RoundService.create_round(job.id, name, order)
        for order, name in enumerate(['Aptitude', 'Technical', 'HR'], start=1)
    ]


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {'Authorization': f'Bearer {token}'}
    return _headers
