"""
Lead model — one row per admitted form submission.

Holds contact data, qualifiers, the immutable consent audit trail, computed
intent/tier, the canonical lifecycle status, clinic assignment and the nurture
sequence cursor.
"""
import uuid

from sqlalchemy import Column, Integer, Text, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from fivmatch.database import Base


def short_id_for(lead_id: str) -> str:
    """First 8 hex chars of the UUID, upper-cased: 'c33f4a67-…' → 'C33F4A67'."""
    if not lead_id:
        return ''
    return str(lead_id).replace('-', '')[:8].upper()


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))

    # Contact
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    email = Column(Text, nullable=False, index=True)
    city = Column(Text, nullable=False)
    locale = Column(Text, nullable=False, default='ro')

    # Qualifiers
    age_range = Column(Text, nullable=True)
    female_age_exact = Column(Integer, nullable=True)
    male_age_exact = Column(Integer, nullable=True)
    tried_ivf = Column(Text, nullable=True)
    timeline = Column(Text, nullable=True)           # legacy: asap / 1-3months / researching
    urgency_level = Column(Text, nullable=True)      # ASAP_0_30 … INFO_ONLY
    budget_range = Column(Text, nullable=True)
    voucher_status = Column(Text, nullable=True)
    primary_factor = Column(Text, nullable=True)
    test_status = Column(Text, nullable=True)
    has_recent_tests = Column(Boolean, nullable=True)
    tests_list = Column(Text, nullable=True)
    previous_clinics = Column(Text, nullable=True)
    availability_windows = Column(Text, nullable=True)
    best_contact_method = Column(Text, nullable=True)
    message = Column(Text, nullable=True)

    # Consent audit trail (never the raw IP)
    gdpr_consent = Column(Boolean, nullable=False, default=False)
    consent_to_share = Column(Boolean, nullable=False, default=False)
    consent_at = Column(DateTime(timezone=True), nullable=True)
    ip_hash = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)

    # Computed at intake / on operator status change
    intent_level = Column(Text, nullable=False)      # high / medium / low
    lead_tier = Column(Text, nullable=False, default='D')
    tier_reason = Column(Text, nullable=True)

    # Lifecycle
    status = Column(Text, nullable=False, default='NEW', index=True)
    operator_notes = Column(Text, nullable=True)
    call_attempts = Column(Integer, nullable=False, default=0)
    assigned_clinic_id = Column(Text, ForeignKey('clinics.id', ondelete='SET NULL'), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    # Nurture sequence cursor: stage 0 = not enrolled, 1..3 = next e-mail to send
    nurture_stage = Column(Integer, nullable=False, default=0)
    nurture_next_at = Column(DateTime(timezone=True), nullable=True)
    nurture_completed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    assigned_clinic = relationship('Clinic', lazy='joined')
    events = relationship(
        'LeadEvent',
        order_by='LeadEvent.id',
        cascade='all, delete-orphan',
        back_populates='lead',
    )

    __table_args__ = (
        Index('ix_leads_nurture_due', 'nurture_completed', 'nurture_next_at'),
    )

    @property
    def short_id(self) -> str:
        return short_id_for(self.id)

    def to_dict(self, include_events: bool = False) -> dict:
        data = {
            'id': self.id,
            'short_id': self.short_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'phone': self.phone,
            'email': self.email,
            'city': self.city,
            'locale': self.locale,
            'age_range': self.age_range,
            'female_age_exact': self.female_age_exact,
            'male_age_exact': self.male_age_exact,
            'tried_ivf': self.tried_ivf,
            'timeline': self.timeline,
            'urgency_level': self.urgency_level,
            'budget_range': self.budget_range,
            'voucher_status': self.voucher_status,
            'primary_factor': self.primary_factor,
            'test_status': self.test_status,
            'has_recent_tests': self.has_recent_tests,
            'tests_list': self.tests_list,
            'previous_clinics': self.previous_clinics,
            'availability_windows': self.availability_windows,
            'best_contact_method': self.best_contact_method,
            'message': self.message,
            'gdpr_consent': self.gdpr_consent,
            'consent_to_share': self.consent_to_share,
            'intent_level': self.intent_level,
            'lead_tier': self.lead_tier,
            'tier_reason': self.tier_reason,
            'status': self.status,
            'operator_notes': self.operator_notes,
            'call_attempts': self.call_attempts,
            'assigned_clinic_id': self.assigned_clinic_id,
            'verified_at': _iso(self.verified_at),
            'assigned_at': _iso(self.assigned_at),
            'sent_at': _iso(self.sent_at),
            'nurture_stage': self.nurture_stage,
            'nurture_next_at': _iso(self.nurture_next_at),
            'nurture_completed': self.nurture_completed,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if include_events:
            data['events'] = [event.to_dict() for event in self.events]
        return data


def _iso(value):
    return value.isoformat() if value else None
