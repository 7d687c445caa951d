"""
Lead write actions: capture, qualify into a care request, nurture, close.
"""
import logging
from typing import Dict

from clinicflow.config import DEFAULT_LEAD_SOURCE, LEAD_EXCLUDED_STAGES, LEAD_SOURCE_KEYWORDS
from clinicflow.database import get_session
from clinicflow.errors import ConflictError, NotFoundError
from clinicflow.models.care_request import CareRequest
from clinicflow.models.lead import Lead
from clinicflow.services.validation import check_email, check_phone, clean, raise_if, require

logger = logging.getLogger('services.leads')

LEAD_FIELDS = (
    'origin_cta', 'origin_page', 'pillar_origin',
    'utm_source', 'utm_medium', 'utm_campaign', 'utm_content',
    'primary_concern', 'symptom_summary', 'notes',
)


def derive_source(origin_cta: str = None, utm_source: str = None) -> str:
    """Map CTA / UTM keywords onto a care request source."""
    haystack = f"{origin_cta or ''} {utm_source or ''}".upper()
    for keywords, source in LEAD_SOURCE_KEYWORDS:
        if any(k in haystack for k in keywords):
            return source
    return DEFAULT_LEAD_SOURCE


def _load(session, lead_id) -> Lead:
    lead = session.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError(f'Lead {lead_id} not found')
    return lead


def create_lead(data: Dict) -> Dict:
    """Capture a lead. full_name is required, plus an email or a phone."""
    errors = []
    require(data, ('full_name',), errors)
    email, phone = clean(data.get('email')), clean(data.get('phone'))
    if not email and not phone:
        errors.append({'field': 'email', 'message': 'email or phone is required'})
    check_email(email, errors)
    check_phone(phone, errors)
    raise_if(errors, 'Invalid lead')

    session = get_session()
    try:
        lead = Lead(
            name=clean(data.get('full_name')),
            email=email.lower() if email else None,
            phone=phone,
            funnel_stage='new',
            **{f: clean(data.get(f)) for f in LEAD_FIELDS},
        )
        session.add(lead)
        session.commit()
        logger.info("Lead %s created from %s", lead.id[:8], lead.origin_cta or 'unknown CTA')
        return lead.to_dict()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def qualify_lead(lead_id: str) -> Dict:
    """
    Move a lead into the care pipeline.

    Inserts a SUBMITTED care request carrying the lead's contact snapshot
    (lead_id included) and marks the lead qualified.
    """
    session = get_session()
    try:
        lead = _load(session, lead_id)
        if lead.funnel_stage == 'qualified':
            raise ConflictError('Lead is already qualified')
        if lead.funnel_stage in LEAD_EXCLUDED_STAGES:
            raise ConflictError(f'Cannot qualify a {lead.funnel_stage} lead')

        care_request = CareRequest(
            status='SUBMITTED',
            source=derive_source(lead.origin_cta, lead.utm_source),
            primary_complaint=lead.primary_concern or lead.symptom_summary,
            intake_payload={
                'name': lead.name,
                'email': lead.email,
                'phone': lead.phone,
                'lead_id': lead.id,
                'origin_cta': lead.origin_cta,
                'utm_source': lead.utm_source,
                'primary_concern': lead.primary_concern,
            },
        )
        session.add(care_request)
        lead.funnel_stage = 'qualified'
        session.commit()
        logger.info("Lead %s qualified into care request %s (%s)",
                    lead.id[:8], care_request.id[:8], care_request.source)
        return {'lead': lead.to_dict(), 'care_request': care_request.to_dict()}
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _set_funnel_stage(lead_id: str, stage: str) -> Dict:
    session = get_session()
    try:
        lead = _load(session, lead_id)
        if lead.funnel_stage in LEAD_EXCLUDED_STAGES:
            raise ConflictError(f'Lead is already {lead.funnel_stage}')
        lead.funnel_stage = stage
        session.commit()
        logger.info("Lead %s moved to %s", lead.id[:8], stage)
        return lead.to_dict()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def nurture_lead(lead_id: str) -> Dict:
    return _set_funnel_stage(lead_id, 'nurture')


def close_lead(lead_id: str) -> Dict:
    return _set_funnel_stage(lead_id, 'closed_lost')


def delete_lead(lead_id: str):
    session = get_session()
    try:
        lead = _load(session, lead_id)
        session.delete(lead)
        session.commit()
        logger.info("Lead %s deleted", lead_id[:8])
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
