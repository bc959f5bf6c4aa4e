"""
Intake stage 2: ABUSE GATE — is this submission automated?

Four checks, run in order and short-circuiting on the first rejection:
  1. honeypot   hidden `_company` field filled in
  2. fill_time  `_rendered` (ms epoch) missing or < min fill time ago
  3. rate_limit too many submissions from the same IP hash in one window
  4. content    URLs, markup, character runs, digit/gibberish names, …

1-3 look at the raw payload and run before validation; 4 needs the sanitized
draft and runs after it. A rejection never surfaces to the client, see
fivmatch.pipeline.intake.silent_reject().
"""
import logging
import re
from typing import List, Optional

from fivmatch.pipeline.base import AbuseCheck, CheckResult, IntakeContext, get_check
from fivmatch.services.rate_limit import RateLimiter

logger = logging.getLogger('pipeline.abuse')

HONEYPOT_FIELD = '_company'
RENDERED_FIELD = '_rendered'

URL_RE = re.compile(r'https?://|www\.', re.IGNORECASE)
MARKUP_RE = re.compile(r'<[^>]+>|\[url|{.*}', re.IGNORECASE)
REPEATED_CHARS_RE = re.compile(r'(.)\1{7,}')
DIGITS_IN_NAME_RE = re.compile(r'\d{3,}')
NON_CONSONANT_RE = re.compile(r'[^bcdfghjklmnpqrstvwxyz]', re.IGNORECASE)

MAX_MESSAGE_LENGTH = 2000


def is_gibberish(text: str) -> bool:
    """More than 8 consonants making up more than 85% of the string."""
    if len(text) < 2:
        return False
    consonants = NON_CONSONANT_RE.sub('', text)
    return len(consonants) > 8 and len(consonants) / len(text) > 0.85


def detect_spam_content(first_name: str, last_name: str, city: str,
                        message: Optional[str] = None) -> Optional[str]:
    """Return the first matching reason code, or None for clean content."""
    names = [first_name, last_name]
    texts = [first_name, last_name, city, message or '']

    if any(URL_RE.search(t) for t in texts):
        return 'url_in_field'
    if any(MARKUP_RE.search(t) for t in texts):
        return 'markup_in_field'
    if any(REPEATED_CHARS_RE.search(t) for t in texts):
        return 'repeated_chars'
    if any(DIGITS_IN_NAME_RE.search(n) for n in names):
        return 'numbers_in_name'
    if any(is_gibberish(n) for n in names):
        return 'gibberish_name'
    if first_name.lower() == last_name.lower() and len(first_name) > 1:
        return 'identical_names'
    if message and len(message) > MAX_MESSAGE_LENGTH:
        return 'message_too_long'
    return None


# ── Checks ───────────────────────────────────────────────────────────────────

class HoneypotCheck(AbuseCheck):
    name = 'honeypot'
    description = 'Hidden form field a human never fills'

    def check(self, ctx: IntakeContext) -> CheckResult:
        value = ctx.payload.get(HONEYPOT_FIELD)
        if isinstance(value, str) and value:
            return CheckResult.reject(self.name, 'honeypot_filled')
        return CheckResult.ok(self.name)


class FillTimeCheck(AbuseCheck):
    name = 'fill_time'
    description = 'Form submitted too soon after it was rendered'

    def __init__(self, min_fill_time_seconds: float = 3.0):
        self.min_fill_time_ms = min_fill_time_seconds * 1000

    def check(self, ctx: IntakeContext) -> CheckResult:
        rendered = ctx.payload.get(RENDERED_FIELD)
        if isinstance(rendered, bool) or not isinstance(rendered, (int, float)):
            return CheckResult.reject(self.name, 'missing_render_timestamp')
        elapsed_ms = ctx.now.timestamp() * 1000 - rendered
        if elapsed_ms < self.min_fill_time_ms:
            return CheckResult.reject(self.name, 'submitted_too_fast', elapsed_ms=int(elapsed_ms))
        return CheckResult.ok(self.name)


class RateLimitCheck(AbuseCheck):
    name = 'rate_limit'
    description = 'Per-IP-hash submission window'

    def __init__(self, limiter: RateLimiter):
        self.limiter = limiter

    def check(self, ctx: IntakeContext) -> CheckResult:
        if self.limiter.check_and_increment(ctx.ip_hash, now=ctx.now.timestamp()):
            return CheckResult.ok(self.name)
        return CheckResult.reject(self.name, 'rate_limited')


class ContentCheck(AbuseCheck):
    name = 'content'
    phase = 'content'
    description = 'URLs, markup, character runs, suspicious names, oversized message'

    def check(self, ctx: IntakeContext) -> CheckResult:
        draft = ctx.draft
        # The draft caps free text, so measure the message as submitted.
        raw_message = ctx.payload.get('message')
        message = raw_message.strip() if isinstance(raw_message, str) else draft.message
        reason = detect_spam_content(draft.first_name, draft.last_name, draft.city, message)
        if reason:
            return CheckResult.reject(self.name, reason)
        return CheckResult.ok(self.name)


CHECKS = {
    'honeypot': HoneypotCheck,
    'fill_time': FillTimeCheck,
    'rate_limit': RateLimitCheck,
    'content': ContentCheck,
}


class AbuseGate:
    """Runs the configured checks in order; the first rejection wins."""

    def __init__(self, checks: List[AbuseCheck]):
        self.checks = checks

    @classmethod
    def from_settings(cls, settings, limiter: RateLimiter) -> 'AbuseGate':
        return cls([
            get_check(CHECKS, 'honeypot'),
            get_check(CHECKS, 'fill_time', min_fill_time_seconds=settings.min_fill_time_seconds),
            get_check(CHECKS, 'rate_limit', limiter=limiter),
            get_check(CHECKS, 'content'),
        ])

    def screen_request(self, ctx: IntakeContext) -> CheckResult:
        """Run the pre-validation checks (honeypot, fill time, rate limit)."""
        return self._run('request', ctx)

    def screen_content(self, ctx: IntakeContext) -> CheckResult:
        """Run the post-validation checks against ctx.draft."""
        return self._run('content', ctx)

    def _run(self, phase: str, ctx: IntakeContext) -> CheckResult:
        for check in self.checks:
            if check.phase != phase:
                continue
            result = check.check(ctx)
            if not result.passed:
                logger.info("Abuse check %s rejected submission from %s…: %s",
                            result.check, ctx.ip_hash[:8], result.reason,
                            extra={'check': result.check, 'reason': result.reason})
                return result
        return CheckResult.ok(phase)
