"""
Health routes — liveness and a readiness check with the abuse-gate layout.
"""
import logging

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from fivmatch import database
from fivmatch.pipeline.base import describe_checks

logger = logging.getLogger('routes.health')

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    """Readiness: database reachable, configured checks and rate limiter."""
    services = current_app.extensions['fivmatch']
    session = database.get_session()
    try:
        session.execute(text('SELECT 1'))
        db_ok = True
    except Exception:
        logger.error("Database health check failed", exc_info=True)
        db_ok = False
    finally:
        session.close()

    limiter = services.limiter
    body = {
        'status': 'healthy' if db_ok else 'degraded',
        'database': 'ok' if db_ok else 'unreachable',
        'abuse_checks': describe_checks(services.gate.checks),
        'rate_limit': {
            'backend': services.settings.rate_limit_backend,
            'window_seconds': limiter.window_seconds,
            'max_requests': limiter.max_requests,
        },
        'routing_rules': len(services.resolver.rules),
    }
    return jsonify(body), 200 if db_ok else 503
