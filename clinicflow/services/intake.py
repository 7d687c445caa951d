"""
Patient intake writes: the public legacy form and the structured intake.

A submitted legacy form is attached to an open care request for the same
person (name or email) or, when none exists, opens a FRONT_DESK_QR care
request of its own. Both tables publish their row changes so the dashboard
refreshes and staff get a print prompt.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Dict

from sqlalchemy import func

from clinicflow.config import (
    ACCESS_CODE_ALPHABET,
    ACCESS_CODE_LENGTH,
    CARE_REQUEST_EXCLUDED_STATUSES,
    FRONT_DESK_QR_SOURCE,
)
from clinicflow.database import get_session
from clinicflow.errors import ConflictError, NotFoundError, ValidationError
from clinicflow.journey.identity import care_request_identity, normalize_name
from clinicflow.journey.listener import publish_change
from clinicflow.models.care_request import CareRequest
from clinicflow.models.intake import Intake
from clinicflow.models.intake_form import IntakeForm
from clinicflow.services import functions
from clinicflow.services.validation import check_email, check_phone, clean, raise_if, require

logger = logging.getLogger('services.intake')

INTAKE_FORM_DETAIL_FIELDS = (
    'address', 'emergency_contact', 'insurance_provider', 'referral_source',
    'medical_history', 'medications', 'allergies', 'consent_signed',
)
RECORD_MODELS = {
    'intake_forms': IntakeForm,
    'intakes': Intake,
}


def generate_access_code() -> str:
    return ''.join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(ACCESS_CODE_LENGTH))


def _pain_level(value, errors):
    if value in (None, ''):
        return None
    try:
        return max(0, min(10, int(value)))
    except (TypeError, ValueError):
        errors.append({'field': 'pain_level', 'message': 'must be a number from 0 to 10'})
        return None


def _find_open_care_request(session, name, email):
    """Open (unconverted, not closed) care request for the same name or email."""
    rows = (
        session.query(CareRequest)
        .filter(func.lower(CareRequest.status).not_in(CARE_REQUEST_EXCLUDED_STATUSES))
        .filter(CareRequest.episode_id.is_(None))
        .order_by(CareRequest.created_at.desc())
        .all()
    )
    name, email = normalize_name(name), (email or '').strip().lower()
    for cr in rows:
        ident = care_request_identity(cr.to_dict())
        if name and normalize_name(ident['name']) == name:
            return cr
        if email and ident['email'].strip().lower() == email:
            return cr
    return None


def submit_intake_form(body: Dict) -> Dict:
    """
    Public intake submission.

    Returns the stored form, the care request it belongs to and the mode:
    'matched_existing' or 'auto_created'.
    """
    errors = []
    require(body, ('patient_name', 'date_of_birth', 'chief_complaint'), errors)
    email, phone = clean(body.get('email')), clean(body.get('phone'))
    check_email(email, errors)
    check_phone(phone, errors)
    pain_level = _pain_level(body.get('pain_level'), errors)
    raise_if(errors, 'Invalid intake form')

    patient_name = clean(body.get('patient_name'))
    session = get_session()
    try:
        form = IntakeForm(
            access_code=generate_access_code(),
            patient_name=patient_name,
            email=email.lower() if email else None,
            phone=phone,
            date_of_birth=clean(body.get('date_of_birth')),
            chief_complaint=clean(body.get('chief_complaint')),
            pain_level=pain_level,
            details={f: body[f] for f in INTAKE_FORM_DETAIL_FIELDS if body.get(f) not in (None, '')},
            status='submitted',
            submitted_at=datetime.now(timezone.utc),
        )
        session.add(form)

        care_request = _find_open_care_request(session, patient_name, email)
        if care_request is not None:
            mode = 'matched_existing'
        else:
            mode = 'auto_created'
            care_request = CareRequest(
                status='SUBMITTED',
                source=FRONT_DESK_QR_SOURCE,
                primary_complaint=form.chief_complaint,
                intake_payload={
                    'name': patient_name,
                    'patient_name': patient_name,
                    'email': form.email,
                    'phone': phone,
                    'date_of_birth': form.date_of_birth,
                    'chief_complaint': form.chief_complaint,
                },
            )
            session.add(care_request)

        session.commit()
        result = {
            'mode': mode,
            'access_code': form.access_code,
            'care_request_id': care_request.id,
            'intake_form': form.to_dict(),
        }
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    logger.info("Intake form %s submitted (%s, care request %s)",
                result['intake_form']['id'][:8], mode, result['care_request_id'][:8])
    publish_change('intake_forms', 'INSERT', result['intake_form'])
    functions.notify_intake_submitted(result['intake_form'])
    return result


def save_intake(body: Dict) -> Dict:
    """Start a structured intake (status draft)."""
    errors = []
    require(body, ('patient_name',), errors)
    email = clean(body.get('email'))
    check_email(email, errors)
    responses = body.get('responses') or {}
    if not isinstance(responses, dict):
        errors.append({'field': 'responses', 'message': 'must be an object'})
    raise_if(errors, 'Invalid intake')

    session = get_session()
    try:
        intake = Intake(
            lead_id=clean(body.get('lead_id')),
            patient_name=clean(body.get('patient_name')),
            email=email.lower() if email else None,
            responses=responses,
            status='draft',
        )
        session.add(intake)
        session.commit()
        result = intake.to_dict()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    publish_change('intakes', 'INSERT', result)
    return result


def _transition_intake(intake_id: str, allowed_from, new_status: str, responses: Dict = None) -> Dict:
    session = get_session()
    try:
        intake = session.get(Intake, intake_id)
        if intake is None:
            raise NotFoundError(f'Intake {intake_id} not found')
        old = intake.to_dict()
        if intake.status not in allowed_from:
            raise ConflictError(f'Cannot move a {intake.status} intake to {new_status}')

        if responses:
            intake.responses = {**(intake.responses or {}), **responses}
        intake.status = new_status
        if new_status == 'completed':
            intake.submitted_at = datetime.now(timezone.utc)
        session.commit()
        new = intake.to_dict()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    logger.info("Intake %s %s -> %s", intake_id[:8], old['status'], new_status)
    publish_change('intakes', 'UPDATE', new, old)
    return new


def complete_intake(intake_id: str, responses: Dict = None) -> Dict:
    return _transition_intake(intake_id, ('draft', 'submitted'), 'completed', responses)


def approve_intake(intake_id: str) -> Dict:
    return _transition_intake(intake_id, ('completed',), 'approved')


def get_intake_record(table: str, record_id: str) -> Dict:
    """Intake form or structured intake by id (print view)."""
    model = RECORD_MODELS.get(table)
    if model is None:
        raise ValidationError('Unknown intake table', [{'field': 'table', 'message': f'unsupported: {table}'}])
    session = get_session()
    try:
        row = session.get(model, record_id)
        if row is None:
            raise NotFoundError(f'{table} record {record_id} not found')
        return row.to_dict()
    finally:
        session.close()
