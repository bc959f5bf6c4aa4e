"""
E-mail delivery via the Resend HTTP API, plus the small HTML bodies the
backend sends itself (internal notification, user confirmation, clinic
dispatch, nurture sequence).

send() never raises on provider or network errors; callers inspect the
returned EmailResult.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Union
from urllib.parse import quote

import requests
from markupsafe import escape

from fivmatch.messages import (
    USER_BODY, NURTURE_BODIES, UNSUBSCRIBE,
    user_subject, internal_subject, clinic_subject, nurture_subject,
)

logger = logging.getLogger('services.email')

Recipients = Union[str, List[str]]


@dataclass
class EmailResult:
    ok: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


class EmailSender:
    def __init__(self, api_key: str, from_email: str,
                 api_url: str = 'https://api.resend.com/emails', timeout: int = 10):
        self.api_key = api_key
        self.from_email = from_email
        self.api_url = api_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> 'EmailSender':
        return cls(settings.resend_api_key, settings.from_email, settings.resend_api_url)

    def send(self, to: Recipients, subject: str, html: str,
             cc: Optional[Recipients] = None) -> EmailResult:
        payload = {
            'from': self.from_email,
            'to': [to] if isinstance(to, str) else list(to),
            'subject': subject,
            'html': html,
        }
        if cc:
            payload['cc'] = [cc] if isinstance(cc, str) else list(cc)

        try:
            resp = requests.post(
                self.api_url,
                json=payload,
                headers={'Authorization': f'Bearer {self.api_key}'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("E-mail to %s failed: %s", payload['to'], e)
            return EmailResult(ok=False, error=str(e))

        if resp.status_code >= 400:
            logger.error("E-mail provider rejected message to %s (%d): %s",
                         payload['to'], resp.status_code, resp.text[:300])
            return EmailResult(ok=False, error=resp.text[:300], status_code=resp.status_code)

        try:
            message_id = resp.json().get('id')
        except ValueError:
            message_id = None
        logger.info("E-mail sent to %s (id=%s)", payload['to'], message_id)
        return EmailResult(ok=True, message_id=message_id, status_code=resp.status_code)


# ── Bodies ───────────────────────────────────────────────────────────────────

def _rows(pairs) -> str:
    cells = ''.join(
        f'<tr><td style="padding:8px 12px;font-weight:600;color:#64748b;">{escape(label)}</td>'
        f'<td style="padding:8px 12px;">{escape(value if value is not None else "—")}</td></tr>'
        for label, value in pairs
    )
    return f'<table style="border-collapse:collapse;">{cells}</table>'


def _lead_rows(lead) -> List[tuple]:
    return [
        ('ID', lead.short_id),
        ('Name', f'{lead.first_name} {lead.last_name}'),
        ('Email', lead.email),
        ('Phone', lead.phone),
        ('City', lead.city),
        ('Female age', lead.female_age_exact),
        ('Male age', lead.male_age_exact),
        ('Tried IVF', lead.tried_ivf),
        ('Urgency', lead.urgency_level),
        ('Budget', lead.budget_range),
        ('Voucher', lead.voucher_status),
        ('Primary factor', lead.primary_factor),
        ('Recent tests', 'yes' if lead.has_recent_tests else None),
        ('Tests', lead.tests_list),
        ('Previous clinics', lead.previous_clinics),
        ('Availability', lead.availability_windows),
        ('Contact via', lead.best_contact_method),
        ('Message', lead.message),
    ]


def internal_notification(lead):
    """Subject + HTML for the operator inbox: a new lead needs verification."""
    rows = _lead_rows(lead) + [
        ('Intent', lead.intent_level),
        ('Tier', lead.lead_tier),
        ('Submitted', lead.created_at.isoformat() if lead.created_at else None),
    ]
    html = f'<h2>{escape(internal_subject(lead.locale))}</h2>{_rows(rows)}'
    return internal_subject(lead.locale), html


def user_confirmation(lead):
    body = USER_BODY.get(lead.locale, USER_BODY['ro']).format(
        first_name=escape(lead.first_name), short_id=escape(lead.short_id),
    )
    return user_subject(lead.locale), f'<p>{body}</p>'


def clinic_dispatch(lead, clinic, routing=None):
    """Subject + HTML for the verified-lead dispatch to a clinic."""
    meta = [
        ('Lead ID', lead.id),
        ('Clinic', clinic.name),
        ('Tier', f'{lead.lead_tier} ({lead.tier_reason or ""})'),
        ('Intent', lead.intent_level),
        ('Consent to share', 'yes' if lead.consent_to_share else 'no'),
        ('Consent captured', lead.consent_at.isoformat() if lead.consent_at else None),
        ('IP hash', lead.ip_hash),
        ('Routing', routing.matched_rule if routing else None),
    ]
    subject = clinic_subject(lead.intent_level, lead.locale)
    html = f'<h2>{escape(subject)}</h2>{_rows(_lead_rows(lead))}<hr>{_rows(meta)}'
    return subject, html


def nurture_message(stage: int, lead, site_url: str):
    """Subject + HTML for nurture e-mail #stage, with an unsubscribe link."""
    locale = lead.locale if lead.locale in ('ro', 'en') else 'ro'
    greeting = 'Bună' if locale == 'ro' else 'Hi'
    body = NURTURE_BODIES[stage][locale]
    unsubscribe_url = f"{site_url.rstrip('/')}/{locale}/unsubscribe?email={quote(lead.email)}"
    html = (
        f'<p>{greeting} {escape(lead.first_name)},</p>'
        f'<p>{escape(body)}</p>'
        f'<p style="font-size:12px;color:#64748b;">'
        f'<a href="{unsubscribe_url}">{escape(UNSUBSCRIBE[locale])}</a></p>'
    )
    return nurture_subject(stage, locale), html
