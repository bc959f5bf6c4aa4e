"""
Logging setup for the web app, the RQ worker and the cron entry points.

configure_logging() installs a single stderr handler on the root logger.
LOG_FORMAT picks text (default) or one-line JSON; LOG_LEVEL defaults to INFO.
Lead context passed through ``extra=`` (lead id, action, abuse reason) is
carried as top-level keys in JSON output and appended to text lines.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# Keys picked up from LogRecord attributes set via extra={...}
CONTEXT_FIELDS = ('lead_id', 'action', 'actor', 'check', 'reason')

# Third-party loggers that drown the lead log at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'requests',
    'rq.worker',
    'sqlalchemy.engine',
    'werkzeug',
]


def _context(record) -> dict:
    return {k: getattr(record, k) for k in CONTEXT_FIELDS if getattr(record, k, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per line; Romanian diacritics are kept as-is."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ContextTextFormatter(logging.Formatter):
    """Plain text with any lead context appended as key=value pairs."""

    def format(self, record):
        line = super().format(record)
        ctx = _context(record)
        if not ctx:
            return line
        return line + ' [' + ' '.join(f'{k}={v}' for k, v in ctx.items()) + ']'


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(app=None):
    """
    Reset the root logger from LOG_LEVEL / LOG_FORMAT.

    Safe to call more than once: existing root handlers are replaced. When a
    Flask app is given, its logger is routed through root so request errors
    share the same format.
    """
    level = _resolve_level(os.getenv('LOG_LEVEL', 'INFO'))
    log_format = os.getenv('LOG_FORMAT', 'text').lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ContextTextFormatter(
            '[%(asctime)s] %(levelname)s %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.handlers.clear()
        app.logger.propagate = True
