"""
Flask application factory.

Validates configuration, wires the intake/lifecycle services and registers
all blueprints.
"""
from dataclasses import dataclass

from flask import Flask


@dataclass
class AppServices:
    """Components built once per app from the validated Settings."""
    settings: object
    limiter: object
    gate: object
    resolver: object
    email: object
    lifecycle: object


def build_services(settings, redis_client=None) -> AppServices:
    from fivmatch.pipeline.abuse import AbuseGate
    from fivmatch.pipeline.lifecycle import LifecycleEngine
    from fivmatch.pipeline.routing import RoutingResolver
    from fivmatch.services.email import EmailSender
    from fivmatch.services.rate_limit import build_rate_limiter

    limiter = build_rate_limiter(settings, redis_client)
    resolver = RoutingResolver.from_settings(settings)
    email = EmailSender.from_settings(settings)
    return AppServices(
        settings=settings,
        limiter=limiter,
        gate=AbuseGate.from_settings(settings, limiter),
        resolver=resolver,
        email=email,
        lifecycle=LifecycleEngine(settings, resolver, email),
    )


def create_app(settings=None):
    """Create and configure the Flask application. Raises ConfigError on bad config."""
    from fivmatch.config import Settings
    from fivmatch.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    settings = (settings or Settings.from_env()).validate()
    app.extensions['fivmatch'] = build_services(settings)
    app.json.ensure_ascii = False

    # Register blueprints
    from fivmatch.routes.leads import bp as leads_bp
    from fivmatch.routes.admin import bp as admin_bp
    from fivmatch.routes.internal import bp as internal_bp
    from fivmatch.routes.health import bp as health_bp

    app.register_blueprint(leads_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(internal_bp)
    app.register_blueprint(health_bp)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic; no create_all() here.
    import importlib
    importlib.import_module('fivmatch.models.clinic')
    importlib.import_module('fivmatch.models.lead')
    importlib.import_module('fivmatch.models.lead_event')

    return app
