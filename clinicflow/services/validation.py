"""
Field validation shared by the write services.
"""
import re

from clinicflow.errors import ValidationError

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def check_email(email, errors):
    if email and not EMAIL_RE.match(email):
        errors.append({'field': 'email', 'message': 'invalid email address'})


def check_phone(phone, errors):
    if phone and len(re.sub(r'\D', '', phone)) < 10:
        errors.append({'field': 'phone', 'message': 'phone number must have at least 10 digits'})


def require(data, fields, errors):
    for name in fields:
        if not clean(data.get(name)):
            errors.append({'field': name, 'message': 'required'})


def raise_if(errors, message='Invalid request'):
    if errors:
        raise ValidationError(message, errors)


def json_object(data):
    """Return a request body as a dict; missing bodies become {}."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object',
                              [{'field': 'body', 'message': 'expected a JSON object'}])
    return data
