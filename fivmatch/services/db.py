"""
Persistence helpers for leads, clinics and the audit trail.

Every function takes the caller's session; the caller owns commit/rollback so
a lifecycle transition and its audit events land in one transaction.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update

from fivmatch.config import EVENT_TYPES
from fivmatch.errors import LeadNotFound, ClinicNotFound
from fivmatch.models.clinic import Clinic
from fivmatch.models.lead import Lead
from fivmatch.models.lead_event import LeadEvent

logger = logging.getLogger('services.db')

LEAD_FILTERS = ('status', 'lead_tier', 'intent_level', 'city', 'assigned_clinic_id')
CLINIC_EDITABLE = ('name', 'email', 'phone', 'city_coverage', 'active', 'notes')
MAX_PER_PAGE = 100


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Leads ────────────────────────────────────────────────────────────────────

def insert_lead(session, **fields) -> Lead:
    now = fields.pop('now', None) or utcnow()
    lead = Lead(created_at=now, updated_at=now, **fields)
    session.add(lead)
    session.flush()
    return lead


def get_lead(session, lead_id: str) -> Optional[Lead]:
    return session.get(Lead, lead_id)


def get_lead_by_short_id(session, short_id: str) -> Optional[Lead]:
    """Case-insensitive prefix match on the dash-less UUID."""
    prefix = short_id.replace('-', '').lower()
    stmt = (
        select(Lead)
        .where(func.lower(func.replace(Lead.id, '-', '')).like(f'{prefix}%'))
        .order_by(Lead.created_at.desc())
        .limit(1)
    )
    return session.execute(stmt).scalars().first()


def resolve_lead(session, identifier: str) -> Lead:
    """Accept a full UUID or a short-id prefix. Raises LeadNotFound."""
    identifier = (identifier or '').strip()
    lead = None
    if len(identifier) == 36 and identifier.count('-') == 4:
        lead = get_lead(session, identifier.lower())
    elif identifier:
        lead = get_lead_by_short_id(session, identifier)
    if lead is None:
        raise LeadNotFound(f"Lead {identifier!r} not found")
    return lead


def list_leads(session, filters: Optional[Dict[str, Any]] = None,
               page: int = 1, per_page: int = 50) -> Tuple[List[Lead], int]:
    """Filtered, newest-first page of leads. Returns (rows, total)."""
    filters = filters or {}
    page = max(1, page)
    per_page = max(1, min(per_page, MAX_PER_PAGE))

    stmt = select(Lead)
    for key in LEAD_FILTERS:
        value = filters.get(key)
        if value in (None, ''):
            continue
        if key == 'city':
            stmt = stmt.where(func.lower(Lead.city) == str(value).strip().lower())
        else:
            stmt = stmt.where(getattr(Lead, key) == value)

    total = session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = session.execute(
        stmt.order_by(Lead.created_at.desc()).offset((page - 1) * per_page).limit(per_page)
    ).scalars().all()
    return rows, total


def append_event(session, lead: Lead, event_type: str, payload: Optional[Dict] = None,
                 actor: Optional[str] = None, now: Optional[datetime] = None) -> LeadEvent:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown lead event type: {event_type}")
    event = LeadEvent(
        lead_id=lead.id,
        type=event_type,
        payload=payload or {},
        actor=actor,
        created_at=now or utcnow(),
    )
    session.add(event)
    session.flush()
    return event


# ── Nurture ──────────────────────────────────────────────────────────────────

def stop_nurture_for_email(session, email: str, exclude_id: Optional[str] = None) -> int:
    """Mark every still-active sequence for this address completed. Returns rows touched."""
    stmt = (
        update(Lead)
        .where(Lead.email == email, Lead.nurture_completed.is_(False))
        .values(nurture_completed=True, nurture_next_at=None)
        .execution_options(synchronize_session=False)
    )
    if exclude_id:
        stmt = stmt.where(Lead.id != exclude_id)
    count = session.execute(stmt).rowcount or 0
    if count:
        logger.info("Stopped %d active nurture sequence(s) for %s…", count, email[:3])
    return count


def due_nurture_leads(session, now: datetime, limit: int = 100) -> List[Lead]:
    """Low-intent (or nurture-status) leads whose next e-mail is due, oldest first."""
    stmt = (
        select(Lead)
        .where(
            (Lead.intent_level == 'low') | (Lead.status == 'LOW_INTENT_NURTURE'),
            Lead.nurture_completed.is_(False),
            Lead.nurture_next_at.is_not(None),
            Lead.nurture_next_at <= now,
            Lead.status.not_in(('INVALID', 'SENT_TO_CLINIC')),
        )
        .order_by(Lead.nurture_next_at)
        .limit(limit)
    )
    return session.execute(stmt).scalars().all()


def advance_nurture(session, lead_id: str, expected_stage: int, stage: int,
                    next_at: Optional[datetime], completed: bool,
                    now: Optional[datetime] = None) -> bool:
    """
    Conditional single-row update of the nurture cursor.

    Only applies if the lead is still at `expected_stage` and not completed,
    so a concurrent take-over or a second scheduler run can't double-advance.
    """
    stmt = (
        update(Lead)
        .where(
            Lead.id == lead_id,
            Lead.nurture_stage == expected_stage,
            Lead.nurture_completed.is_(False),
        )
        .values(
            nurture_stage=stage,
            nurture_next_at=next_at,
            nurture_completed=completed,
            updated_at=now or utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return (session.execute(stmt).rowcount or 0) == 1


# ── Clinics ──────────────────────────────────────────────────────────────────

def get_clinic(session, clinic_id: str) -> Clinic:
    clinic = session.get(Clinic, clinic_id)
    if clinic is None:
        raise ClinicNotFound(f"Clinic {clinic_id!r} not found")
    return clinic


def list_active_clinics(session) -> List[Clinic]:
    stmt = select(Clinic).where(Clinic.active.is_(True)).order_by(Clinic.name)
    return session.execute(stmt).scalars().all()


def find_active_clinic_by_email(session, email: str) -> Optional[Clinic]:
    stmt = (
        select(Clinic)
        .where(Clinic.active.is_(True), func.lower(Clinic.email) == email.strip().lower())
        .order_by(Clinic.name)
        .limit(1)
    )
    return session.execute(stmt).scalars().first()


def insert_clinic(session, **fields) -> Clinic:
    clinic = Clinic(**{k: v for k, v in fields.items() if k in CLINIC_EDITABLE})
    session.add(clinic)
    session.flush()
    return clinic


def update_clinic(session, clinic: Clinic, **fields) -> Clinic:
    """Partial update restricted to the editable columns; unknown keys are ignored."""
    for key, value in fields.items():
        if key in CLINIC_EDITABLE:
            setattr(clinic, key, value)
    clinic.updated_at = utcnow()
    session.flush()
    return clinic
