"""
Identity matching across tables that lack a shared foreign key.

Records describing the same person are associated by an explicit link when
one was threaded through at write time (pending_episodes.care_request_id,
intakes.lead_id) and by normalized name / email comparison otherwise.
"""
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

WILDCARD_KEY = '::'


def _clean(value) -> str:
    return (value or '').strip().lower()


def normalize_name(name) -> str:
    """Trim, lowercase, collapse runs of whitespace into one space."""
    return re.sub(r'\s+', ' ', _clean(name))


def identity_key(name, email) -> str:
    """lower(trim(name)) + '::' + lower(trim(email))."""
    return f"{_clean(name)}::{_clean(email)}"


def care_request_identity(care_request: Dict) -> Dict[str, str]:
    """Name / email / lead_id as stored in the care request's intake payload."""
    payload = care_request.get('intake_payload') or {}
    return {
        'name': payload.get('name') or payload.get('patient_name') or '',
        'email': payload.get('email') or '',
        'phone': payload.get('phone') or '',
        'lead_id': payload.get('lead_id') or '',
    }


def care_request_keys(care_requests: Iterable[Dict]) -> Set[str]:
    """Identity keys of all care requests, wildcard excluded."""
    keys = set()
    for cr in care_requests:
        ident = care_request_identity(cr)
        key = identity_key(ident['name'], ident['email'])
        if key != WILDCARD_KEY:
            keys.add(key)
    return keys


def unclaimed_leads(leads: Iterable[Dict], cr_keys: Set[str]) -> List[Dict]:
    """
    Leads not yet represented in the care-request pipeline.

    A lead is dropped when its identity key belongs to a care request or when
    it has already been qualified (the qualify action creates the care request).
    """
    result = []
    for lead in leads:
        if lead.get('funnel_stage') == 'qualified':
            continue
        key = identity_key(lead.get('name'), lead.get('email'))
        if key != WILDCARD_KEY and key in cr_keys:
            continue
        result.append(lead)
    return result


def _same_name(a, b) -> bool:
    a, b = normalize_name(a), normalize_name(b)
    return bool(a) and a == b


def _same_email(a, b) -> bool:
    a, b = _clean(a), _clean(b)
    return bool(a) and a == b


def find_pending_episode(care_request: Dict, pending_episodes: List[Dict]) -> Optional[Dict]:
    """Explicit care_request_id link first, then case-insensitive exact name."""
    for pe in pending_episodes:
        if pe.get('care_request_id') and pe.get('care_request_id') == care_request.get('id'):
            return pe

    name = _clean(care_request_identity(care_request)['name'])
    if not name:
        return None
    for pe in pending_episodes:
        if _clean(pe.get('patient_name')) == name:
            return pe
    return None


def find_intake_form(care_request: Dict, intake_forms: List[Dict]) -> Optional[Dict]:
    """First unconverted legacy form matching by normalized name OR email."""
    ident = care_request_identity(care_request)
    for form in intake_forms:
        if form.get('converted_to_episode_id'):
            continue
        if _same_name(form.get('patient_name'), ident['name']) or \
                _same_email(form.get('email'), ident['email']):
            return form
    return None


def find_intake(care_request: Dict, intakes: List[Dict]) -> Optional[Dict]:
    """Structured intake by lead_id, else normalized name, else email."""
    ident = care_request_identity(care_request)
    candidates = [i for i in intakes if not i.get('converted_to_episode_id')]

    if ident['lead_id']:
        for intake in candidates:
            if intake.get('lead_id') == ident['lead_id']:
                return intake
    for intake in candidates:
        if _same_name(intake.get('patient_name'), ident['name']):
            return intake
    for intake in candidates:
        if _same_email(intake.get('email'), ident['email']):
            return intake
    return None


@dataclass
class Matches:
    """Auxiliary records associated with one care request (any may be None)."""
    pending_episode: Optional[Dict] = None
    intake_form: Optional[Dict] = None
    intake: Optional[Dict] = None


def match_care_request(care_request: Dict, records) -> Matches:
    """Resolve a care request against the fetched auxiliary tables."""
    return Matches(
        pending_episode=find_pending_episode(care_request, records.pending_episodes),
        intake_form=find_intake_form(care_request, records.intake_forms),
        intake=find_intake(care_request, records.intakes),
    )
