"""Shared test fixtures."""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinicflow.database import Base
from clinicflow.journey.tracker import reset_tracker

# Every module that binds get_session at import time
SESSION_TARGETS = [
    'clinicflow.database.get_session',
    'clinicflow.journey.fetcher.get_session',
    'clinicflow.services.leads.get_session',
    'clinicflow.services.care_requests.get_session',
    'clinicflow.services.intake.get_session',
]

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


class FakePipeline:
    """Queues commands and applies them in order on execute(), like MULTI/EXEC."""

    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.commands.append((name, args, kwargs))
            return self
        return queue

    def execute(self):
        results = [getattr(self.redis, name)(*args, **kwargs) for name, args, kwargs in self.commands]
        self.commands = []
        return results


class FakeRedis:
    """In-memory stand-in for the Redis calls the alert store and publisher make."""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.zsets = {}
        self.published = []

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def get(self, key):
        return self.store.get(key)

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def zadd(self, name, mapping):
        self.zsets.setdefault(name, {}).update(mapping)
        return len(mapping)

    def zrevrange(self, name, start, end):
        members = sorted(self.zsets.get(name, {}).items(), key=lambda kv: kv[1], reverse=True)
        names = [m for m, _ in members]
        return names[start:] if end == -1 else names[start:end + 1]

    def zrem(self, name, *members):
        zset = self.zsets.get(name, {})
        return sum(1 for m in members if zset.pop(m, None) is not None)

    def pipeline(self):
        return FakePipeline(self)

    def publish(self, channel, message):
        self.published.append((channel, message))
        return 0

    def lapse(self, key):
        """Simulate TTL expiry of a key."""
        self.store.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created, shared across threads."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import clinicflow.models.lead
    import clinicflow.models.care_request
    import clinicflow.models.pending_episode
    import clinicflow.models.intake_form
    import clinicflow.models.intake
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    We disable close() so that services calling session.close()
    in their finally blocks don't invalidate the shared test session.
    The fetcher is pinned to one worker so the session is never used
    from two threads at once.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    patchers = [patch(target, return_value=db_session) for target in SESSION_TARGETS]
    patchers.append(patch('clinicflow.config.FETCH_MAX_WORKERS', 1))
    for p in patchers:
        p.start()
    yield db_session
    for p in reversed(patchers):
        p.stop()
    db_session.close = _real_close


@pytest.fixture(autouse=True)
def fake_redis():
    """Replace the shared Redis client with an in-memory fake."""
    fake = FakeRedis()
    with patch('clinicflow.extensions.redis_client', fake):
        yield fake


@pytest.fixture(autouse=True)
def fresh_tracker():
    """Each test starts with no process-wide tracker."""
    reset_tracker()
    yield
    reset_tracker()


@pytest.fixture
def app():
    """Flask test app, live updates off."""
    from clinicflow import create_app
    app = create_app({'TESTING': True, 'LIVE_UPDATES': False, 'STREAM_MAX_POLLS': 1, 'STREAM_POLL_SECONDS': 0})
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def now():
    return NOW


# ── Row snapshot factories (plain dicts, as the journey components see them) ──

def _ts(days_ago):
    return (NOW - timedelta(days=days_ago)).isoformat()


@pytest.fixture
def make_lead():
    def _make(name='Jane Doe', email='jane@example.com', days_ago=0, **overrides):
        row = dict(
            id=f'lead-{name.lower().replace(" ", "-")}',
            name=name,
            email=email,
            phone=None,
            origin_cta='website_contact',
            funnel_stage='new',
            primary_concern=None,
            symptom_summary=None,
            created_at=_ts(days_ago),
        )
        row.update(overrides)
        return row
    return _make


@pytest.fixture
def make_care_request():
    def _make(name='Jane Doe', email='jane@example.com', days_ago=0, payload=None, **overrides):
        intake_payload = {'name': name, 'email': email}
        intake_payload.update(payload or {})
        row = dict(
            id=f'cr-{name.lower().replace(" ", "-")}',
            status='SUBMITTED',
            source='WEBSITE',
            intake_payload=intake_payload,
            primary_complaint=None,
            approved_at=None,
            episode_id=None,
            created_at=_ts(days_ago),
        )
        row.update(overrides)
        return row
    return _make


@pytest.fixture
def make_pending_episode():
    def _make(patient_name='Jane Doe', scheduled_date=None, **overrides):
        row = dict(
            id=f'pe-{patient_name.lower().replace(" ", "-")}',
            care_request_id=None,
            patient_name=patient_name,
            visit_type='np_neuro',
            scheduled_date=scheduled_date,
            status='pending',
            created_at=_ts(0),
        )
        row.update(overrides)
        return row
    return _make


@pytest.fixture
def make_intake_form():
    def _make(patient_name='Jane Doe', email='jane@example.com', status='pending', **overrides):
        row = dict(
            id=f'if-{patient_name.lower().replace(" ", "-")}',
            patient_name=patient_name,
            email=email,
            status=status,
            submitted_at=None,
            converted_to_episode_id=None,
            created_at=_ts(0),
        )
        row.update(overrides)
        return row
    return _make


@pytest.fixture
def make_intake():
    def _make(patient_name='Jane Doe', email='jane@example.com', status='completed', **overrides):
        row = dict(
            id=f'in-{patient_name.lower().replace(" ", "-")}',
            lead_id=None,
            patient_name=patient_name,
            email=email,
            status=status,
            submitted_at=_ts(0),
            converted_to_episode_id=None,
            created_at=_ts(0),
        )
        row.update(overrides)
        return row
    return _make
