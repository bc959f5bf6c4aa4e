#!/usr/bin/env python3
"""
Seed test data for trying the operator API locally.

Creates partner clinics plus leads covering the main lifecycle states:
  1. Fresh high-intent lead (NEW, tier D until verified)
  2. Called, no answer
  3. Verified and assigned (tier recomputed)
  4. Low-intent lead enrolled in nurture, due now
  5. Invalid lead

Usage:
    python scripts/seed_test_data.py          # seed all scenarios
    python scripts/seed_test_data.py --clear  # wipe seeded data first

Requires the usual env (CLINIC_LEADS_EMAIL, VERIFY_TOKEN, INTERNAL_CRON_TOKEN,
RESEND_API_KEY); DATABASE_URL defaults to sqlite:///local.db.
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fivmatch import create_app
from fivmatch.database import get_session, engine, Base
from fivmatch.models.clinic import Clinic
from fivmatch.models.lead import Lead
from fivmatch.pipeline.intent import derive_intent_level
from fivmatch.pipeline.tiering import TierInput, compute_tier
from fivmatch.pipeline.validation import validate_lead_payload
from fivmatch.services import db


CLINICS = [
    {'name': 'Clinica Nova București', 'email': 'leads@nova-bucuresti.example', 'city_coverage': ['București', 'Ilfov']},
    {'name': 'FertiCluj', 'email': 'contact@ferticluj.example', 'city_coverage': ['Cluj-Napoca', 'Sibiu', 'Brașov']},
    {'name': 'IVF Timiș', 'email': 'office@ivf-timis.example', 'city_coverage': ['Timișoara', 'Arad']},
]

SEED_DOMAIN = 'seed.fivmatch.example'


def _payload(first, last, city, urgency, budget, age, **extra):
    data = {
        'first_name': first,
        'last_name': last,
        'phone': '+40 712 345 678',
        'email': f'{first.lower()}.{last.lower()}@{SEED_DOMAIN}',
        'city': city,
        'female_age_exact': age,
        'tried_ivf': 'No',
        'budget_range': budget,
        'urgency_level': urgency,
        'gdpr_consent': True,
        'consent_to_share': True,
        'locale': 'ro',
    }
    data.update(extra)
    return data


LEADS = [
    ('new', _payload('Ioana', 'Popescu', 'București', 'ASAP_0_30', '10k-20k', 32, best_contact_method='PHONE')),
    ('called', _payload('Maria', 'Ionescu', 'Cluj-Napoca', 'SOON_1_3', 'prefer-discuss', 36)),
    ('assigned', _payload('Elena', 'Dumitru', 'Bucuresti', 'MID_3_6', 'over-20k', 29,
                          best_contact_method='WHATSAPP', has_recent_tests=True,
                          availability_windows='weekdays after 17:00')),
    ('nurture', _payload('Ana', 'Stan', 'Timișoara', 'INFO_ONLY', 'prefer-discuss', 41)),
    ('invalid', _payload('Andreea', 'Marin', 'Iași', 'LATER_6_12', 'under-10k', 38)),
]


def seed_clinics(session):
    for data in CLINICS:
        db.insert_clinic(session, **data)
        print(f"  clinic  {data['name']} <{data['email']}>")


def seed_leads(session, lifecycle):
    for scenario, payload in LEADS:
        draft = validate_lead_payload(payload).draft
        intent = derive_intent_level(draft.urgency_level, draft.budget_range,
                                     draft.has_recent_tests, draft.voucher_status, draft.timeline)
        tier = compute_tier(TierInput.from_lead(draft, status='NEW'), draft.locale)
        lead = db.insert_lead(
            session, **draft.to_dict(),
            intent_level=intent, lead_tier=tier.tier, tier_reason=tier.reason, status='NEW',
        )
        db.append_event(session, lead, 'CREATED', {'intent_level': intent, 'seeded': True})

        if scenario == 'called':
            lifecycle.transition(session, lead, 'call', actor='seed', notes='No answer, retry tomorrow')
        elif scenario == 'assigned':
            lifecycle.transition(session, lead, 'verify', actor='seed', notes='Confirmed by phone')
            lifecycle.transition(session, lead, 'assign', actor='seed')
        elif scenario == 'nurture':
            lifecycle.transition(session, lead, 'nurture', actor='seed')
        elif scenario == 'invalid':
            lifecycle.transition(session, lead, 'invalidate', actor='seed', notes='Wrong number')

        print(f"  lead    {lead.short_id}  {scenario:<9} status={lead.status} tier={lead.lead_tier}")


def clear_seeded_data(session):
    deleted_leads = session.query(Lead).filter(Lead.email.like(f'%@{SEED_DOMAIN}')).delete(synchronize_session=False)
    emails = [c['email'] for c in CLINICS]
    deleted_clinics = session.query(Clinic).filter(Clinic.email.in_(emails)).delete(synchronize_session=False)
    session.commit()
    print(f'Cleared {deleted_leads} leads, {deleted_clinics} clinics.')


def main():
    parser = argparse.ArgumentParser(description='Seed clinics and leads for local testing')
    parser.add_argument('--clear', action='store_true', help='Clear seeded data before (or instead of) seeding')
    parser.add_argument('--clear-only', action='store_true', help='Only clear, do not re-seed')
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        # Ensure tables exist (for SQLite local dev)
        Base.metadata.create_all(engine)
        lifecycle = app.extensions['fivmatch'].lifecycle

        session = get_session()
        try:
            if args.clear or args.clear_only:
                clear_seeded_data(session)
                if args.clear_only:
                    return

            print('Seeding test data...')
            seed_clinics(session)
            session.flush()
            seed_leads(session, lifecycle)
            session.commit()
            print('\nDone! Try GET /api/admin/leads?token=$VERIFY_TOKEN')

        except Exception as e:
            session.rollback()
            print(f'Error: {e}')
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
