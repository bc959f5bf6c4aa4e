"""
Lead lifecycle state machine — every operator action goes through transition().

Statuses: NEW, CALLED_NO_ANSWER, VERIFIED_READY, LOW_INTENT_NURTURE and the
terminal INVALID / SENT_TO_CLINIC. "Assigned" is VERIFIED_READY with a
clinic set.

    action      allowed from                                   to
    call        NEW, CALLED_NO_ANSWER, VERIFIED_READY,         NEW → CALLED_NO_ANSWER,
                LOW_INTENT_NURTURE                             otherwise unchanged
    verify      NEW, CALLED_NO_ANSWER, LOW_INTENT_NURTURE,     VERIFIED_READY
                VERIFIED_READY
    nurture     NEW, CALLED_NO_ANSWER, LOW_INTENT_NURTURE      LOW_INTENT_NURTURE
    invalidate  any non-terminal                               INVALID
    assign      VERIFIED_READY                                 VERIFIED_READY + clinic
    send        VERIFIED_READY + clinic + consent_to_share     SENT_TO_CLINIC
    note        any                                            unchanged

A refused action raises GuardViolation before anything is mutated. The caller
owns the session and commits once transition() returns.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from fivmatch.config import TERMINAL_STATUSES
from fivmatch.errors import GuardViolation, DispatchError
from fivmatch.pipeline.tiering import TierInput, compute_tier
from fivmatch.services import db
from fivmatch.services.email import clinic_dispatch
from fivmatch.services.notifications import notify_dispatch_failed

logger = logging.getLogger('pipeline.lifecycle')


@dataclass(frozen=True)
class ActionRule:
    allowed_from: Tuple[str, ...]
    target: Optional[str] = None        # None = status unchanged
    recompute_tier: bool = False


PRE_TERMINAL = ('NEW', 'CALLED_NO_ANSWER', 'VERIFIED_READY', 'LOW_INTENT_NURTURE')

ACTIONS = {
    'call': ActionRule(PRE_TERMINAL),
    'verify': ActionRule(('NEW', 'CALLED_NO_ANSWER', 'LOW_INTENT_NURTURE', 'VERIFIED_READY'),
                         'VERIFIED_READY', recompute_tier=True),
    'nurture': ActionRule(('NEW', 'CALLED_NO_ANSWER', 'LOW_INTENT_NURTURE'),
                          'LOW_INTENT_NURTURE', recompute_tier=True),
    'invalidate': ActionRule(PRE_TERMINAL, 'INVALID', recompute_tier=True),
    'assign': ActionRule(('VERIFIED_READY',)),
    'send': ActionRule(('VERIFIED_READY',), 'SENT_TO_CLINIC'),
    'note': ActionRule(PRE_TERMINAL + tuple(TERMINAL_STATUSES)),
}

# Operator-facing status names accepted by the status endpoint.
STATUS_ACTIONS = {
    'VERIFIED_READY': 'verify',
    'LOW_INTENT_NURTURE': 'nurture',
    'INVALID': 'invalidate',
}


def append_note(existing: Optional[str], notes: Optional[str], now: datetime) -> Optional[str]:
    """Notes accumulate as a timestamped running log; nothing is overwritten."""
    notes = notes.strip() if isinstance(notes, str) else ''
    if not notes:
        return existing
    entry = f"{now.isoformat()}: {notes}"
    return f"{existing}\n\n{entry}" if existing else entry


def check_guard(lead, action: str):
    """Raise GuardViolation if `action` is not allowed from the lead's current state."""
    rule = ACTIONS.get(action)
    if rule is None:
        raise GuardViolation('unknown_action', f"Unknown action '{action}'", action)

    if lead.status in TERMINAL_STATUSES and action != 'note':
        raise GuardViolation(
            'terminal_state', f"Lead is {lead.status}; no further transitions allowed", action,
        )

    if action == 'send':
        if not lead.assigned_clinic_id:
            raise GuardViolation('no_clinic_assigned', "Cannot dispatch: no clinic assigned", action)
        if lead.status != 'VERIFIED_READY':
            raise GuardViolation('not_verified', "Cannot dispatch an unverified lead", action)
        if not lead.consent_to_share:
            raise GuardViolation(
                'missing_share_consent', "Cannot dispatch without sharing consent", action,
            )

    if lead.status not in rule.allowed_from:
        code = 'not_verified' if action == 'assign' else 'invalid_transition'
        raise GuardViolation(code, f"Cannot {action} a lead in status {lead.status}", action)


class LifecycleEngine:
    """
    Applies operator actions with their side effects: timestamps, audit events,
    tier recomputation, nurture enrollment/cancellation, clinic dispatch.
    """

    def __init__(self, settings, resolver, email_sender):
        self.settings = settings
        self.resolver = resolver
        self.email_sender = email_sender

    def transition(self, session, lead, action: str, actor: Optional[str] = None,
                   notes: Optional[str] = None, clinic_id: Optional[str] = None,
                   now: Optional[datetime] = None):
        now = now or db.utcnow()
        check_guard(lead, action)

        old_status = lead.status
        handler = getattr(self, f'_do_{action}')
        handler(session, lead, actor=actor, notes=notes, clinic_id=clinic_id, now=now)

        rule = ACTIONS[action]
        if rule.recompute_tier:
            result = compute_tier(TierInput.from_lead(lead), lead.locale)
            lead.lead_tier = result.tier
            lead.tier_reason = result.reason

        if action != 'note':
            lead.operator_notes = append_note(lead.operator_notes, notes, now)
        lead.updated_at = now
        session.flush()

        # A repeated status action still leaves an audit trail when the operator wrote a note.
        restated = rule.target is not None and isinstance(notes, str) and notes.strip() != ''
        if lead.status != old_status or restated:
            db.append_event(session, lead, 'STATUS_CHANGED', {
                'old_status': old_status,
                'new_status': lead.status,
                'notes': notes,
            }, actor=actor, now=now)
            logger.info("Lead %s: %s → %s (%s)", lead.short_id, old_status, lead.status, action,
                        extra={'lead_id': lead.id, 'action': action, 'actor': actor})
        return lead

    # ── Handlers ─────────────────────────────────────────────────────────────

    def _do_call(self, session, lead, actor, notes, now, **_):
        lead.call_attempts = (lead.call_attempts or 0) + 1
        if lead.status == 'NEW':
            lead.status = 'CALLED_NO_ANSWER'
        db.append_event(session, lead, 'OPERATOR_CALLED', {
            'call_attempts': lead.call_attempts,
            'notes': notes,
        }, actor=actor, now=now)

    def _do_verify(self, session, lead, now, **_):
        lead.status = 'VERIFIED_READY'
        if lead.verified_at is None:
            lead.verified_at = now
        self._stop_own_nurture(lead)
        db.stop_nurture_for_email(session, lead.email, exclude_id=lead.id)

    def _do_nurture(self, session, lead, now, **_):
        lead.status = 'LOW_INTENT_NURTURE'
        lead.nurture_stage = 1
        lead.nurture_next_at = now
        lead.nurture_completed = False
        db.stop_nurture_for_email(session, lead.email, exclude_id=lead.id)

    def _do_invalidate(self, session, lead, **_):
        lead.status = 'INVALID'
        self._stop_own_nurture(lead)

    def _do_assign(self, session, lead, actor, notes, clinic_id, now, **_):
        matched_rule = None
        if clinic_id:
            clinic = db.get_clinic(session, clinic_id)
            if not clinic.active:
                raise GuardViolation('clinic_inactive', f"Clinic {clinic.name} is not active", 'assign')
        else:
            routing = self.resolver.resolve(lead.city)
            clinic = db.find_active_clinic_by_email(session, routing.email)
            if clinic is None:
                raise GuardViolation(
                    'no_matching_clinic',
                    f"No active clinic receives leads for {routing.email}",
                    'assign',
                )
            matched_rule = routing.matched_rule

        lead.assigned_clinic_id = clinic.id
        lead.assigned_clinic = clinic
        lead.assigned_at = now
        db.append_event(session, lead, 'ASSIGNED', {
            'clinic_id': clinic.id,
            'clinic_name': clinic.name,
            'matched_rule': matched_rule,
            'notes': notes,
        }, actor=actor, now=now)

    def _do_send(self, session, lead, actor, now, **_):
        clinic = db.get_clinic(session, lead.assigned_clinic_id)
        if not clinic.active:
            raise GuardViolation('clinic_inactive', f"Clinic {clinic.name} is not active", 'send')

        routing = self.resolver.resolve(lead.city)
        subject, html = clinic_dispatch(lead, clinic, routing)
        cc = self.settings.monitor_email
        result = self.email_sender.send(clinic.email, subject, html, cc=cc)
        if not result.ok:
            logger.error("Dispatch of lead %s to %s failed: %s", lead.short_id, clinic.email, result.error)
            notify_dispatch_failed(lead, clinic.email, result.error, self.settings.slack_webhook_url)
            raise DispatchError(f"Could not deliver lead to {clinic.email}: {result.error}")

        lead.status = 'SENT_TO_CLINIC'
        lead.sent_at = now
        self._stop_own_nurture(lead)
        db.append_event(session, lead, 'SENT_EMAIL', {
            'to': clinic.email,
            'cc': cc,
            'clinic_id': clinic.id,
            'message_id': result.message_id,
            'matched_rule': routing.matched_rule,
        }, actor=actor, now=now)

    def _do_note(self, session, lead, actor, notes, now, **_):
        if not isinstance(notes, str) or not notes.strip():
            raise GuardViolation('empty_note', "Note text is required", 'note')
        lead.operator_notes = append_note(lead.operator_notes, notes, now)
        db.append_event(session, lead, 'NOTE_ADDED', {'notes': notes}, actor=actor, now=now)

    @staticmethod
    def _stop_own_nurture(lead):
        lead.nurture_completed = True
        lead.nurture_next_at = None


def available_actions(lead):
    """Actions the guards currently allow, with the status each would lead to."""
    allowed = []
    for action, rule in ACTIONS.items():
        try:
            check_guard(lead, action)
        except GuardViolation:
            continue
        allowed.append({'action': action, 'to': rule.target or lead.status})
    return allowed
