#!/usr/bin/env python3
"""
Seed demo data for checking the Prospect Journey dashboard locally.

Creates one prospect per journey stage plus a few edge cases:
  1. Fresh lead (lead_submitted, not stalled)
  2. Lead waiting 4 days (stalled)
  3. Approved care request
  4. Scheduled NP visit (linked pending episode)
  5. Forms sent, not yet returned
  6. Forms received via structured intake
  7. Front-desk QR walk-in (forms received, never approved)

Usage:
    python scripts/seed_demo_data.py          # seed all scenarios
    python scripts/seed_demo_data.py --clear  # wipe seeded data first

Requires: DATABASE_URL set (or defaults to sqlite:///local.db).
"""
import argparse
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clinicflow import create_app
from clinicflow.database import Base, engine, get_session
from clinicflow.models.care_request import CareRequest
from clinicflow.models.intake import Intake
from clinicflow.models.intake_form import IntakeForm
from clinicflow.models.lead import Lead
from clinicflow.models.pending_episode import PendingEpisode

# Prefix for seeded IDs so we can clear them
SEED_PREFIX = 'seed-'

SEEDED_MODELS = [Intake, IntakeForm, PendingEpisode, CareRequest, Lead]


def make_id():
    return SEED_PREFIX + str(uuid.uuid4())


def days_ago(n):
    return datetime.now(timezone.utc) - timedelta(days=n)


def _care_request(session, name, email, status='SUBMITTED', source='WEBSITE', age=1, **extra):
    cr = CareRequest(
        id=make_id(),
        status=status,
        source=source,
        intake_payload={'name': name, 'email': email},
        created_at=days_ago(age),
        **extra,
    )
    session.add(cr)
    return cr


def seed(session):
    session.add(Lead(id=make_id(), name='Maya Patel', email='maya@example.com',
                     origin_cta='website_contact', created_at=days_ago(0)))
    print('  [1] Fresh lead:        Maya Patel')

    session.add(Lead(id=make_id(), name='Owen Brooks', email='owen@example.com',
                     origin_cta='physician_referral', created_at=days_ago(4)))
    print('  [2] Stalled lead:      Owen Brooks')

    _care_request(session, 'Lena Fischer', 'lena@example.com',
                  status='APPROVED_FOR_CARE', approved_at=days_ago(1), age=2)
    print('  [3] Approved:          Lena Fischer')

    cr = _care_request(session, 'Sam Ortiz', 'sam@example.com', status='SCHEDULED', age=3)
    session.add(PendingEpisode(id=make_id(), care_request_id=cr.id, patient_name='Sam Ortiz',
                               visit_type='np_msk', scheduled_date=days_ago(-2), status='scheduled'))
    print('  [4] Visit scheduled:   Sam Ortiz')

    cr = _care_request(session, 'Grace Liu', 'grace@example.com', status='SCHEDULED', age=6)
    session.add(PendingEpisode(id=make_id(), care_request_id=cr.id, patient_name='Grace Liu',
                               visit_type='np_neuro', scheduled_date=days_ago(-1), status='scheduled'))
    session.add(IntakeForm(id=make_id(), patient_name='Grace Liu', email='grace@example.com',
                           access_code='GR4CEL1U', status='pending'))
    print('  [5] Forms sent:        Grace Liu')

    lead_id = make_id()
    session.add(Lead(id=lead_id, name='Noah Kim', email='noah@example.com',
                     funnel_stage='qualified', created_at=days_ago(5)))
    cr = _care_request(session, 'Noah Kim', 'noah@example.com', status='SCHEDULED', age=5)
    cr.intake_payload = {**cr.intake_payload, 'lead_id': lead_id}
    session.add(PendingEpisode(id=make_id(), care_request_id=cr.id, patient_name='Noah Kim',
                               visit_type='np_neuro', scheduled_date=days_ago(-3), status='scheduled'))
    session.add(Intake(id=make_id(), lead_id=lead_id, patient_name='Noah Kim', email='noah@example.com',
                       status='completed', submitted_at=days_ago(1)))
    print('  [6] Forms received:    Noah Kim')

    _care_request(session, 'Ava Rossi', 'ava@example.com', source='FRONT_DESK_QR', age=0)
    session.add(IntakeForm(id=make_id(), patient_name='Ava Rossi', email='ava@example.com',
                           access_code='AVAR0SS1', status='submitted', submitted_at=days_ago(0)))
    print('  [7] Front-desk QR:     Ava Rossi')


def clear_seeded_data(session):
    total = 0
    for model in SEEDED_MODELS:
        total += session.query(model).filter(model.id.like(f'{SEED_PREFIX}%')).delete(synchronize_session=False)
    session.commit()
    print(f'Cleared {total} seeded rows.')


def main():
    parser = argparse.ArgumentParser(description='Seed demo data for the Prospect Journey dashboard')
    parser.add_argument('--clear', action='store_true', help='Clear seeded data before (or instead of) seeding')
    parser.add_argument('--clear-only', action='store_true', help='Only clear, do not re-seed')
    args = parser.parse_args()

    app = create_app({'LIVE_UPDATES': False})
    with app.app_context():
        # Ensure tables exist (for SQLite local dev)
        Base.metadata.create_all(engine)

        session = get_session()
        try:
            if args.clear or args.clear_only:
                clear_seeded_data(session)
                if args.clear_only:
                    return

            print('Seeding demo data...')
            seed(session)
            session.commit()
            print('\nDone! Visit http://localhost:8080/ to verify.')

        except Exception as e:
            session.rollback()
            print(f'Error: {e}')
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
