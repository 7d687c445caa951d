"""
Outbound notification functions (hosted HTTP functions).

invoke_function raises on failure; callers that must not block on delivery
(staff alerts after an intake submission) use the notify_* wrappers.
"""
import logging
from typing import Dict

import requests

from clinicflow import config
from clinicflow.errors import FunctionInvocationError, ValidationError

logger = logging.getLogger('services.functions')

ONBOARDING_EMAIL_FUNCTION = 'send-onboarding-email'
INTAKE_NOTIFICATION_FUNCTION = 'send-intake-notification'


def invoke_function(name: str, body: Dict) -> Dict:
    """POST a JSON body to a named function and return its JSON response."""
    if not config.FUNCTIONS_URL:
        raise FunctionInvocationError(name, 'FUNCTIONS_URL is not configured')

    url = f"{config.FUNCTIONS_URL.rstrip('/')}/{name}"
    headers = {'Content-Type': 'application/json'}
    if config.FUNCTIONS_API_KEY:
        headers['Authorization'] = f'Bearer {config.FUNCTIONS_API_KEY}'

    try:
        resp = requests.post(url, json=body, headers=headers, timeout=config.FUNCTION_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        raise FunctionInvocationError(name, str(e)) from e

    try:
        data = resp.json()
    except ValueError:
        data = {}

    if resp.status_code >= 400:
        message = data.get('error') if isinstance(data, dict) else None
        raise FunctionInvocationError(name, message or f'HTTP {resp.status_code}')
    if isinstance(data, dict) and data.get('error'):
        raise FunctionInvocationError(name, data['error'])

    logger.info("Function %s succeeded", name)
    return data if isinstance(data, dict) else {'result': data}


def send_onboarding_email(email: str, patient_name: str, lead_id: str = None, template_type: str = 'neuro') -> Dict:
    """Send the intake-forms onboarding email. template_type is 'neuro' or 'msk'."""
    if template_type not in config.EMAIL_TEMPLATE_TYPES:
        raise ValidationError(
            'Invalid template type',
            [{'field': 'template_type', 'message': f"must be one of {', '.join(config.EMAIL_TEMPLATE_TYPES)}"}],
        )
    if not email:
        raise ValidationError('Email is required', [{'field': 'email', 'message': 'required'}])

    return invoke_function(ONBOARDING_EMAIL_FUNCTION, {
        'email': email,
        'patientName': patient_name,
        'leadId': lead_id,
        'templateType': template_type,
    })


def notify_intake_submitted(intake_form: Dict):
    """Alert staff that a public intake form arrived. Failure never blocks the submission."""
    if not config.FUNCTIONS_URL:
        return

    try:
        invoke_function(INTAKE_NOTIFICATION_FUNCTION, {
            'intakeFormId': intake_form.get('id'),
            'patientName': intake_form.get('patient_name'),
            'patientEmail': intake_form.get('email'),
            'patientPhone': intake_form.get('phone'),
            'accessCode': intake_form.get('access_code'),
        })
        logger.info("Intake notification sent for form %s", (intake_form.get('id') or '')[:8])
    except Exception:
        logger.error("Failed to send intake notification for form %s", intake_form.get('id'), exc_info=True)
