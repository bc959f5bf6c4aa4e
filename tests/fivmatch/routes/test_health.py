"""Tests for fivmatch.routes.health — liveness and readiness."""
from unittest.mock import patch, MagicMock


class TestHealthCheck:
    """GET /health returns a simple health status."""

    def test_returns_200_with_healthy_status(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.json == {"status": "healthy"}


class TestApiHealth:
    """GET /api/health reports database, abuse checks and rate limiter."""

    def test_healthy(self, client):
        data = client.get('/api/health').json
        assert data['status'] == 'healthy'
        assert data['database'] == 'ok'
        assert [c['name'] for c in data['abuse_checks']] == ['honeypot', 'fill_time', 'rate_limit', 'content']
        assert data['rate_limit'] == {'backend': 'memory', 'window_seconds': 900, 'max_requests': 5}
        assert data['routing_rules'] == 0

    def test_degraded_when_database_unreachable(self, client):
        broken = MagicMock()
        broken.execute.side_effect = RuntimeError('connection refused')
        with patch('fivmatch.database.get_session', return_value=broken):
            resp = client.get('/api/health')
        assert resp.status_code == 503
        assert resp.json['status'] == 'degraded'
        assert resp.json['database'] == 'unreachable'
