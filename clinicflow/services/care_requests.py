"""
Care request write actions: the staff side of the journey pipeline.

approve → schedule → send forms → (patient submits) → convert.
Each action validates the current status first and raises ConflictError
when the transition is not allowed.
"""
import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Dict

from clinicflow.config import CARE_REQUEST_STATUSES, VISIT_TYPES
from clinicflow.database import get_session
from clinicflow.errors import ConflictError, NotFoundError, ValidationError
from clinicflow.journey import identity
from clinicflow.journey.listener import publish_change
from clinicflow.journey.stages import parse_timestamp
from clinicflow.models.care_request import CareRequest
from clinicflow.models.intake import Intake
from clinicflow.models.intake_form import IntakeForm
from clinicflow.models.pending_episode import PendingEpisode
from clinicflow.services import functions
from clinicflow.services.intake import generate_access_code

logger = logging.getLogger('services.care_requests')

CLOSED_STATUSES = ('ARCHIVED', 'DECLINED', 'CONVERTED')
# Statuses at or past APPROVED already count as approved
APPROVED_RANK = CARE_REQUEST_STATUSES.index('APPROVED')


def _load(session, care_request_id) -> CareRequest:
    cr = session.get(CareRequest, care_request_id)
    if cr is None:
        raise NotFoundError(f'Care request {care_request_id} not found')
    return cr


def _rank(cr: CareRequest) -> int:
    status = (cr.status or '').upper()
    return CARE_REQUEST_STATUSES.index(status) if status in CARE_REQUEST_STATUSES else 0


def _require_open(cr: CareRequest, action: str):
    status = (cr.status or '').upper()
    if cr.episode_id or status in CLOSED_STATUSES:
        raise ConflictError(f'Cannot {action} a {status.lower() or "closed"} care request')


def new_episode_id() -> str:
    """EP-<epoch millis>-<random suffix>."""
    suffix = ''.join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    return f'EP-{int(time.time() * 1000)}-{suffix}'


def approve_care_request(care_request_id: str, clinician_id: str = None) -> Dict:
    session = get_session()
    try:
        cr = _load(session, care_request_id)
        _require_open(cr, 'approve')
        if _rank(cr) >= APPROVED_RANK:
            raise ConflictError(f'Care request is already approved ({cr.status.lower()})')

        cr.status = 'APPROVED_FOR_CARE'
        cr.approved_at = datetime.now(timezone.utc)
        if clinician_id:
            cr.assigned_clinician_id = clinician_id
        session.commit()
        logger.info("Care request %s approved (clinician=%s)", cr.id[:8], clinician_id or '-')
        return cr.to_dict()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def schedule_visit(care_request_id: str, scheduled_date, visit_type: str = 'np_neuro') -> Dict:
    """Book the new-patient visit: upsert the linked pending episode."""
    when = parse_timestamp(scheduled_date)
    errors = []
    if when is None:
        errors.append({'field': 'scheduled_date', 'message': 'a valid ISO date/time is required'})
    if visit_type not in VISIT_TYPES:
        errors.append({'field': 'visit_type', 'message': f"must be one of {', '.join(VISIT_TYPES)}"})
    if errors:
        raise ValidationError('Invalid visit', errors)

    session = get_session()
    try:
        cr = _load(session, care_request_id)
        _require_open(cr, 'schedule')
        payload = cr.intake_payload or {}

        episode = session.query(PendingEpisode).filter_by(care_request_id=cr.id).first()
        if episode is None:
            episode = PendingEpisode(
                care_request_id=cr.id,
                patient_name=payload.get('name') or payload.get('patient_name') or '',
            )
            session.add(episode)
        episode.scheduled_date = when
        episode.visit_type = visit_type
        episode.status = 'scheduled'
        cr.status = 'SCHEDULED'
        session.commit()
        logger.info("Care request %s scheduled for %s (%s)", cr.id[:8], when.isoformat(), visit_type)
        return {'care_request': cr.to_dict(), 'pending_episode': episode.to_dict()}
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def send_intake_forms(care_request_id: str, email: str = None, template_type: str = 'neuro') -> Dict:
    """
    Email the onboarding forms and open a pending intake form for the patient.

    Nothing is written if the email function fails.
    """
    session = get_session()
    try:
        cr = _load(session, care_request_id)
        _require_open(cr, 'send forms for')
        ident = identity.care_request_identity(cr.to_dict())
        email = email or ident['email']

        functions.send_onboarding_email(email, ident['name'], ident['lead_id'] or None, template_type)

        forms = [f.to_dict() for f in session.query(IntakeForm).filter(IntakeForm.converted_to_episode_id.is_(None))]
        existing = identity.find_intake_form(cr.to_dict(), forms)
        if existing is None:
            form = IntakeForm(
                access_code=generate_access_code(),
                patient_name=ident['name'],
                email=email,
                phone=ident['phone'] or None,
                status='pending',
            )
            session.add(form)
            session.commit()
            existing = form.to_dict()
            publish_change('intake_forms', 'INSERT', existing)
        logger.info("Intake forms (%s) sent for care request %s", template_type, cr.id[:8])
        return {'care_request_id': cr.id, 'email': email, 'template_type': template_type, 'intake_form': existing}
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def convert_to_episode(care_request_id: str) -> Dict:
    """Create the episode id and close out every record matched to this care request."""
    session = get_session()
    try:
        cr = _load(session, care_request_id)
        if cr.episode_id:
            raise ConflictError(f'Care request already converted to {cr.episode_id}')
        _require_open(cr, 'convert')

        cr_dict = cr.to_dict()
        episode_id = new_episode_id()

        forms = [f.to_dict() for f in session.query(IntakeForm).filter(IntakeForm.converted_to_episode_id.is_(None))]
        form = identity.find_intake_form(cr_dict, forms)
        if form:
            session.get(IntakeForm, form['id']).converted_to_episode_id = episode_id

        intakes = [i.to_dict() for i in session.query(Intake).filter(Intake.converted_to_episode_id.is_(None))]
        intake = identity.find_intake(cr_dict, intakes)
        if intake:
            session.get(Intake, intake['id']).converted_to_episode_id = episode_id

        pending = [p.to_dict() for p in session.query(PendingEpisode).filter(PendingEpisode.status != 'converted')]
        episode = identity.find_pending_episode(cr_dict, pending)
        if episode:
            session.get(PendingEpisode, episode['id']).status = 'converted'

        cr.episode_id = episode_id
        cr.status = 'CONVERTED'
        session.commit()
        logger.info("Care request %s converted to episode %s", cr.id[:8], episode_id)
        return cr.to_dict()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _close(care_request_id: str, status: str, action: str) -> Dict:
    session = get_session()
    try:
        cr = _load(session, care_request_id)
        _require_open(cr, action)
        cr.status = status
        session.commit()
        logger.info("Care request %s %s", cr.id[:8], status.lower())
        return cr.to_dict()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def archive_care_request(care_request_id: str) -> Dict:
    return _close(care_request_id, 'ARCHIVED', 'archive')


def decline_care_request(care_request_id: str) -> Dict:
    return _close(care_request_id, 'DECLINED', 'decline')
