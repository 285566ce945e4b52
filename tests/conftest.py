from datetime import datetime, timedelta

import pytest

from market_overview import create_app, db, utils
from market_overview.config import TestingConfig
from market_overview.sessions import MemorySessionStore, RequestContext

PASSWORD = 'Secret123'


class FrozenClock:
    """Stand-in for utils.utcnow that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clock(monkeypatch):
    clock = FrozenClock(datetime(2024, 3, 4, 9, 30, 0))
    monkeypatch.setattr(utils, 'utcnow', clock)
    return clock


@pytest.fixture
def ctx(app):
    return RequestContext(MemorySessionStore(), ip_address='127.0.0.1', user_agent='pytest')


def register(client, email='alice@example.com', username='alice', password=PASSWORD):
    return client.post('/api/credentials', data={
        'action': 'register',
        'email': email,
        'username': username,
        'password': password
    })


def login(client, email='alice@example.com', password=PASSWORD):
    return client.post('/api/credentials', data={
        'action': 'login',
        'email': email,
        'password': password
    })


@pytest.fixture
def logged_in_client(client):
    assert register(client).status_code == 201
    assert login(client).status_code == 200
    return client
