"""
Lead intake — raw submission in, persisted lead (or a rejection) out.

    payload ─► abuse gate (request) ─► validation ─► abuse gate (content)
            ─► intent + initial tier ─► persist ─► enqueue notification e-mails

Exactly one of three things happens per submission: the lead is persisted and
its e-mails enqueued, the submission is silently filtered (the client still
sees success), or a localized field-error map comes back.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from fivmatch import database
from fivmatch.config import Settings
from fivmatch.messages import resolve_locale
from fivmatch.pipeline.abuse import AbuseGate
from fivmatch.pipeline.base import CheckResult, IntakeContext
from fivmatch.pipeline.intent import derive_intent_level
from fivmatch.pipeline.tiering import TierInput, compute_tier
from fivmatch.pipeline.validation import validate_lead_payload
from fivmatch.services import db
from fivmatch.services.email import EmailSender, internal_notification, user_confirmation

logger = logging.getLogger('pipeline.intake')

PLACEHOLDER_LEAD_ID = '00000000-0000-0000-0000-000000000000'
MAX_USER_AGENT_LENGTH = 500


@dataclass
class IntakeOutcome:
    accepted: bool
    locale: str
    lead_id: Optional[str] = None
    intent_level: Optional[str] = None
    field_errors: Dict[str, str] = field(default_factory=dict)
    # Set only by silent_reject(); never exposed to the client.
    filtered: bool = False
    filter_reason: str = ''


def silent_reject(locale: str, result: CheckResult) -> IntakeOutcome:
    """
    The abuse-gate exit. Looks exactly like a successful submission from the
    outside (placeholder lead id) so automated clients can't tell they were
    filtered; nothing is persisted and no e-mail goes out.
    """
    return IntakeOutcome(
        accepted=True,
        locale=locale,
        lead_id=PLACEHOLDER_LEAD_ID,
        filtered=True,
        filter_reason=f"{result.check}:{result.reason}",
    )


def submit_lead(payload: Any, ip_hash: str, gate: AbuseGate,
                user_agent: Optional[str] = None, now: Optional[datetime] = None,
                enqueue_emails: bool = True) -> IntakeOutcome:
    now = now or db.utcnow()
    raw = payload if isinstance(payload, dict) else {}
    locale = resolve_locale(raw.get('locale'))
    ctx = IntakeContext(payload=raw, ip_hash=ip_hash, now=now)

    if isinstance(payload, dict):
        screened = gate.screen_request(ctx)
        if not screened.passed:
            return silent_reject(locale, screened)

    validation = validate_lead_payload(payload)
    if not validation.valid:
        return IntakeOutcome(accepted=False, locale=validation.locale, field_errors=validation.errors)

    draft = validation.draft
    ctx.draft = draft
    screened = gate.screen_content(ctx)
    if not screened.passed:
        return silent_reject(draft.locale, screened)

    intent_level = derive_intent_level(
        urgency_level=draft.urgency_level,
        budget_range=draft.budget_range,
        has_recent_tests=draft.has_recent_tests,
        voucher_status=draft.voucher_status,
        timeline=draft.timeline,
    )
    tier = compute_tier(TierInput.from_lead(draft, status='NEW'), draft.locale)
    low_intent = intent_level == 'low'

    session = database.get_session()
    try:
        # A re-submission takes over: older sequences for this address stop.
        db.stop_nurture_for_email(session, draft.email)
        lead = db.insert_lead(
            session,
            now=now,
            **draft.to_dict(),
            consent_at=now,
            ip_hash=ip_hash,
            user_agent=(user_agent or '')[:MAX_USER_AGENT_LENGTH] or None,
            intent_level=intent_level,
            lead_tier=tier.tier,
            tier_reason=tier.reason,
            status='NEW',
            nurture_stage=1 if low_intent else 0,
            nurture_next_at=now if low_intent else None,
            nurture_completed=False,
        )
        db.append_event(session, lead, 'CREATED', {
            'intent_level': intent_level,
            'lead_tier': tier.tier,
            'urgency_level': draft.urgency_level,
            'nurture_enrolled': low_intent,
        }, now=now)
        db.append_event(session, lead, 'CONSENT_CAPTURED', {
            'gdpr_consent': draft.gdpr_consent,
            'consent_to_share': draft.consent_to_share,
            'ip_hash': ip_hash,
        }, now=now)
        session.commit()
        lead_id = lead.id
        short_id = lead.short_id
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    logger.info("Lead %s created (intent=%s, tier=%s)", short_id, intent_level, tier.tier)

    if enqueue_emails:
        enqueue_intake_emails(lead_id)

    return IntakeOutcome(accepted=True, locale=draft.locale, lead_id=lead_id, intent_level=intent_level)


# ── Post-intake e-mails (RQ job) ─────────────────────────────────────────────

def enqueue_intake_emails(lead_id: str):
    """Fire-and-forget: a queue outage must not fail an already-persisted intake."""
    try:
        from fivmatch.extensions import get_queue
        get_queue().enqueue(send_intake_emails, lead_id, job_timeout=120)
    except Exception:
        logger.error("Could not enqueue intake e-mails for lead %s", lead_id, exc_info=True)


def send_intake_emails(lead_id: str, settings: Optional[Settings] = None,
                       sender: Optional[EmailSender] = None) -> Dict[str, bool]:
    """
    RQ job: internal monitor notification + user confirmation.

    Each recipient is attempted independently; one failing never prevents
    the other.
    """
    settings = settings or Settings.from_env()
    sender = sender or EmailSender.from_settings(settings)

    session = database.get_session()
    try:
        lead = db.get_lead(session, lead_id)
        if lead is None:
            logger.warning("Lead %s vanished before its intake e-mails went out", lead_id)
            return {}

        messages = {'user': (lead.email, *user_confirmation(lead))}
        internal_to = settings.monitor_email or settings.default_routing_email
        if internal_to:
            messages['internal'] = (internal_to, *internal_notification(lead))

        sent = {}
        for name, (to, subject, html) in messages.items():
            try:
                result = sender.send(to, subject, html)
                sent[name] = result.ok
            except Exception:
                logger.error("Intake e-mail '%s' for lead %s failed", name, lead.short_id, exc_info=True)
                sent[name] = False
            if sent[name]:
                db.append_event(session, lead, 'SENT_EMAIL', {'kind': name, 'to': to})
        session.commit()
        return sent
    finally:
        session.close()
