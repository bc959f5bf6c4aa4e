"""Shared test fixtures."""
import time

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fivmatch.config import Settings
from fivmatch.database import Base


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import fivmatch.models.clinic
    import fivmatch.models.lead
    import fivmatch.models.lead_event
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    We disable close() so that route handlers calling session.close()
    in their finally blocks don't invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with patch('fivmatch.database.get_session', return_value=db_session):
        yield db_session
    db_session.close = _real_close


@pytest.fixture(autouse=True)
def mock_queue():
    """RQ queue stand-in so intake never talks to Redis."""
    queue = MagicMock()
    with patch('fivmatch.extensions.get_queue', return_value=queue):
        yield queue


@pytest.fixture
def mock_redis():
    """Stand-in for the shared Redis client in fivmatch.extensions."""
    client = MagicMock()
    with patch('fivmatch.extensions.redis_client', client):
        yield client


@pytest.fixture(autouse=True)
def _reset_routing_cache():
    from fivmatch.pipeline.routing import reset_routing_cache
    reset_routing_cache()
    yield
    reset_routing_cache()


@pytest.fixture
def settings():
    """Explicit, valid settings; nothing read from the environment."""
    return Settings(
        default_routing_email='leads@fivmatch.ro',
        verify_token='admin-secret',
        internal_cron_token='cron-secret',
        resend_api_key='re_test_key',
        monitor_email='monitor@fivmatch.ro',
        rate_limit_window_seconds=900,
        rate_limit_max_requests=5,
        min_fill_time_seconds=3.0,
        nurture_batch_size=100,
        nurture_max_workers=2,
        site_url='https://fivmatch.ro',
    )


@pytest.fixture
def app(settings):
    """Flask test app."""
    from fivmatch import create_app
    app = create_app(settings)
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


class FakeRedis:
    """Just enough of redis-py for the fixed-window limiter: SET NX EX + INCR in a pipeline."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def pipeline(self, transaction=True):
        return FakePipeline(self)


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis
        self.ops = []

    def set(self, key, value, ex=None, nx=False):
        self.ops.append(('set', key, value, ex, nx))
        return self

    def incr(self, key):
        self.ops.append(('incr', key))
        return self

    def execute(self):
        results = []
        for op in self.ops:
            if op[0] == 'set':
                _, key, value, ex, nx = op
                if nx and key in self.redis.store:
                    results.append(None)
                    continue
                self.redis.store[key] = int(value)
                self.redis.ttls[key] = ex
                results.append(True)
            else:
                key = op[1]
                self.redis.store[key] = self.redis.store.get(key, 0) + 1
                results.append(self.redis.store[key])
        self.ops = []
        return results


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def make_clinic(db_session):
    """Factory fixture — inserts an active clinic."""
    from fivmatch.services import db

    def _make(**overrides):
        fields = dict(
            name='Clinica Nova',
            email='leads@clinica-nova.ro',
            phone='+40 21 000 0000',
            city_coverage=['București'],
            active=True,
        )
        fields.update(overrides)
        clinic = db.insert_clinic(db_session, **fields)
        db_session.commit()
        return clinic
    return _make


@pytest.fixture
def make_lead(db_session):
    """Factory fixture — inserts a lead as intake would have stored it."""
    from fivmatch.services import db

    def _make(**overrides):
        fields = dict(
            first_name='Ioana',
            last_name='Popescu',
            phone='+40 712 345 678',
            email='ioana.popescu@example.com',
            city='București',
            locale='ro',
            age_range='30-34',
            female_age_exact=32,
            tried_ivf='No',
            timeline='asap',
            urgency_level='ASAP_0_30',
            budget_range='10k-20k',
            best_contact_method='PHONE',
            gdpr_consent=True,
            consent_to_share=True,
            ip_hash='a' * 32,
            intent_level='high',
            lead_tier='D',
            status='NEW',
        )
        fields.update(overrides)
        lead = db.insert_lead(db_session, **fields)
        db_session.commit()
        return lead
    return _make


@pytest.fixture
def lead_payload():
    """Factory fixture — a form payload that passes every check."""
    def _make(**overrides):
        payload = {
            'first_name': 'Ioana',
            'last_name': 'Popescu',
            'phone': '+40 712 345 678',
            'email': 'Ioana.Popescu@Example.com',
            'city': 'București',
            'female_age_exact': 32,
            'tried_ivf': 'No',
            'budget_range': '10k-20k',
            'urgency_level': 'ASAP_0_30',
            'gdpr_consent': True,
            'consent_to_share': True,
            'locale': 'ro',
            '_rendered': int(time.time() * 1000) - 10_000,
        }
        payload.update(overrides)
        return payload
    return _make
