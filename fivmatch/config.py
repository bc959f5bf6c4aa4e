"""
Centralized configuration — all env vars, constants, lifecycle vocabularies.

Module-level constants are read once from the environment. `Settings` bundles
them into a typed, validated object that create_app() builds at start-up and
hands to each component.
"""
import os
from dataclasses import dataclass
from typing import Optional

from fivmatch.errors import ConfigError


def _int_env(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _float_env(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Resend (transactional e-mail) ────────────────────────────────────────────
RESEND_API_KEY = os.getenv('RESEND_API_KEY')
RESEND_API_URL = os.getenv('RESEND_API_URL', 'https://api.resend.com/emails')
RESEND_FROM_EMAIL = os.getenv('RESEND_FROM_EMAIL', 'FIV Match <noreply@fivmatch.ro>')

# ── Clinic routing ───────────────────────────────────────────────────────────
CLINIC_LEADS_EMAIL = os.getenv('CLINIC_LEADS_EMAIL') or os.getenv('CLINIC_NOTIFICATION_EMAIL')
CLINIC_ROUTING_RULES = os.getenv('CLINIC_ROUTING_RULES', '')
CLINIC_ROUTING_RULES_FILE = os.getenv('CLINIC_ROUTING_RULES_FILE', '')
INTERNAL_LEADS_MONITOR_EMAIL = os.getenv('INTERNAL_LEADS_MONITOR_EMAIL')

# ── Abuse gate ───────────────────────────────────────────────────────────────
IP_HASH_SALT = os.getenv('IP_HASH_SALT', 'fiv-match-default-salt')
RATE_LIMIT_BACKEND = os.getenv('RATE_LIMIT_BACKEND', 'memory')
RATE_LIMIT_WINDOW_SECONDS = _int_env('RATE_LIMIT_WINDOW_SECONDS', 15 * 60)
RATE_LIMIT_MAX_REQUESTS = _int_env('RATE_LIMIT_MAX_REQUESTS', 5)
RATE_LIMIT_PRUNE_SECONDS = _int_env('RATE_LIMIT_PRUNE_SECONDS', 5 * 60)
MIN_FILL_TIME_SECONDS = _float_env('MIN_FILL_TIME_SECONDS', 3.0)

# ── Nurture scheduler ────────────────────────────────────────────────────────
NURTURE_BATCH_SIZE = _int_env('NURTURE_BATCH_SIZE', 100)
NURTURE_MAX_WORKERS = _int_env('NURTURE_MAX_WORKERS', 4)

# ── Auth tokens ──────────────────────────────────────────────────────────────
VERIFY_TOKEN = os.getenv('VERIFY_TOKEN')
INTERNAL_CRON_TOKEN = os.getenv('INTERNAL_CRON_TOKEN')

# ── Site / Slack ─────────────────────────────────────────────────────────────
SITE_URL = os.getenv('SITE_URL', 'https://fivmatch.ro')
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Locales ──────────────────────────────────────────────────────────────────
SUPPORTED_LOCALES = ['ro', 'en']
DEFAULT_LOCALE = 'ro'

# ── Lead status (single canonical lifecycle) ─────────────────────────────────
LEAD_STATUSES = [
    'NEW',
    'CALLED_NO_ANSWER',
    'VERIFIED_READY',
    'LOW_INTENT_NURTURE',
    'INVALID',
    'SENT_TO_CLINIC',
]
TERMINAL_STATUSES = ['INVALID', 'SENT_TO_CLINIC']

# ── Audit event types ────────────────────────────────────────────────────────
EVENT_TYPES = [
    'CREATED',
    'CONSENT_CAPTURED',
    'OPERATOR_CALLED',
    'STATUS_CHANGED',
    'ASSIGNED',
    'SENT_EMAIL',
    'NOTE_ADDED',
]

# ── Form vocabularies ────────────────────────────────────────────────────────
URGENCY_LEVELS = ['ASAP_0_30', 'SOON_1_3', 'MID_3_6', 'LATER_6_12', 'INFO_ONLY']
LEGACY_TIMELINES = ['asap', '1-3months', 'researching']
BUDGET_RANGES = ['under-10k', '10k-20k', 'over-20k', 'prefer-discuss']
AGE_RANGES = ['under-30', '30-34', '35-37', '38-40', '41+']
TRIED_IVF_VALUES = ['Yes', 'No', 'InProgress']
TEST_STATUSES = ['ready', 'pending', 'not-started', 'unknown']
PRIMARY_FACTORS = [
    'UNKNOWN', 'MALE_FACTOR', 'FEMALE_FACTOR', 'BOTH', 'UNEXPLAINED',
    'ENDOMETRIOSIS', 'LOW_OVARIAN_RESERVE', 'TUBAL', 'PCOS', 'OTHER',
]
VOUCHER_STATUSES = ['NONE', 'APPLIED', 'APPROVED_ASSMB', 'APPROVED_NATIONAL', 'APPROVED_OTHER']
CONTACT_METHODS = ['PHONE', 'WHATSAPP', 'EMAIL']


@dataclass(frozen=True)
class Settings:
    """Typed runtime configuration, validated once at start-up."""
    default_routing_email: Optional[str]
    verify_token: Optional[str]
    internal_cron_token: Optional[str]
    resend_api_key: Optional[str]
    resend_api_url: str = 'https://api.resend.com/emails'
    from_email: str = 'FIV Match <noreply@fivmatch.ro>'
    monitor_email: Optional[str] = None
    routing_rules_json: str = ''
    routing_rules_file: str = ''
    ip_hash_salt: str = 'fiv-match-default-salt'
    rate_limit_backend: str = 'memory'
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max_requests: int = 5
    rate_limit_prune_seconds: int = 5 * 60
    min_fill_time_seconds: float = 3.0
    nurture_batch_size: int = 100
    nurture_max_workers: int = 4
    site_url: str = 'https://fivmatch.ro'
    slack_webhook_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            default_routing_email=CLINIC_LEADS_EMAIL,
            verify_token=VERIFY_TOKEN,
            internal_cron_token=INTERNAL_CRON_TOKEN,
            resend_api_key=RESEND_API_KEY,
            resend_api_url=RESEND_API_URL,
            from_email=RESEND_FROM_EMAIL,
            monitor_email=INTERNAL_LEADS_MONITOR_EMAIL or None,
            routing_rules_json=CLINIC_ROUTING_RULES,
            routing_rules_file=CLINIC_ROUTING_RULES_FILE,
            ip_hash_salt=IP_HASH_SALT,
            rate_limit_backend=RATE_LIMIT_BACKEND,
            rate_limit_window_seconds=RATE_LIMIT_WINDOW_SECONDS,
            rate_limit_max_requests=RATE_LIMIT_MAX_REQUESTS,
            rate_limit_prune_seconds=RATE_LIMIT_PRUNE_SECONDS,
            min_fill_time_seconds=MIN_FILL_TIME_SECONDS,
            nurture_batch_size=NURTURE_BATCH_SIZE,
            nurture_max_workers=NURTURE_MAX_WORKERS,
            site_url=SITE_URL,
            slack_webhook_url=SLACK_WEBHOOK_URL,
        )

    def validate(self) -> 'Settings':
        """Raise ConfigError on the first missing or out-of-range value."""
        required = {
            'CLINIC_LEADS_EMAIL': self.default_routing_email,
            'VERIFY_TOKEN': self.verify_token,
            'INTERNAL_CRON_TOKEN': self.internal_cron_token,
            'RESEND_API_KEY': self.resend_api_key,
        }
        for name, value in required.items():
            if not value or not str(value).strip():
                raise ConfigError(f"Missing required configuration value: {name}")

        if '@' not in self.default_routing_email:
            raise ConfigError("CLINIC_LEADS_EMAIL must be an e-mail address")

        if self.rate_limit_backend not in ('memory', 'redis'):
            raise ConfigError(
                f"RATE_LIMIT_BACKEND must be 'memory' or 'redis', got {self.rate_limit_backend!r}"
            )

        positives = {
            'RATE_LIMIT_WINDOW_SECONDS': self.rate_limit_window_seconds,
            'RATE_LIMIT_MAX_REQUESTS': self.rate_limit_max_requests,
            'RATE_LIMIT_PRUNE_SECONDS': self.rate_limit_prune_seconds,
            'MIN_FILL_TIME_SECONDS': self.min_fill_time_seconds,
            'NURTURE_BATCH_SIZE': self.nurture_batch_size,
            'NURTURE_MAX_WORKERS': self.nurture_max_workers,
        }
        for name, value in positives.items():
            if value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")

        return self
