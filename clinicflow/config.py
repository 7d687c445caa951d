"""
Centralized configuration: env vars, pipeline vocabularies, stall policy.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis (change notifications + intake alerts) ─────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── Database ─────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Auth ─────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')
DASHBOARD_PASSWORD = os.getenv('DASHBOARD_PASSWORD')

# ── Serverless notification functions ────────────────────────────────────────
FUNCTIONS_URL = os.getenv('FUNCTIONS_URL', '')
FUNCTIONS_API_KEY = os.getenv('FUNCTIONS_API_KEY', '')
FUNCTION_TIMEOUT_SECONDS = int(os.getenv('FUNCTION_TIMEOUT_SECONDS', '10'))

# ── Prospect Journey refresh ─────────────────────────────────────────────────
FETCH_MAX_WORKERS = int(os.getenv('FETCH_MAX_WORKERS', '5'))
LIVE_UPDATES_ENABLED = os.getenv('LIVE_UPDATES_ENABLED', 'true').lower() == 'true'
PRINT_PROMPT_TTL_SECONDS = int(os.getenv('PRINT_PROMPT_TTL_SECONDS', '30'))
STREAM_POLL_SECONDS = 2
STREAM_MAX_POLLS = int(os.getenv('STREAM_MAX_POLLS', '150'))

# ── Journey stages (order = pipeline order) ──────────────────────────────────
JOURNEY_STAGES = [
    'lead_submitted',
    'approved_for_care',
    'visit_scheduled',
    'forms_sent',
    'forms_received',
    'episode_active',
]

STAGE_LABELS = {
    'lead_submitted':    'Lead Submitted',
    'approved_for_care': 'Approved for Care',
    'visit_scheduled':   'NP Visit Scheduled',
    'forms_sent':        'Legal Forms Sent',
    'forms_received':    'Forms Received',
    'episode_active':    'Episode Active',
}

# Front-desk action required to move an item out of its stage
STAGE_ACTIONS = {
    'lead_submitted':    'approve',
    'approved_for_care': 'schedule',
    'visit_scheduled':   'send_forms',
    'forms_sent':        'waiting',
    'forms_received':    'convert',
    'episode_active':    'done',
}

PASSIVE_ACTIONS = ('waiting', 'done')

# Days an item may sit in a stage before it counts as stalled.
# episode_active is terminal and never stalls.
STALL_THRESHOLD_DAYS = {
    'lead_submitted':    2,
    'approved_for_care': 3,
    'visit_scheduled':   1,
    'forms_sent':        5,
    'forms_received':    1,
}

# ── Status vocabularies ──────────────────────────────────────────────────────
LEAD_FUNNEL_STAGES = ['new', 'nurture', 'qualified', 'converted', 'closed_lost']
LEAD_EXCLUDED_STAGES = ['converted', 'closed_lost']

CARE_REQUEST_STATUSES = [
    'SUBMITTED',
    'IN_REVIEW',
    'ASSIGNED',
    'APPROVED',
    'APPROVED_FOR_CARE',
    'SCHEDULED',
    'CONVERTED',
    'ARCHIVED',
    'DECLINED',
]
# Compared case-insensitively against care_requests.status
CARE_REQUEST_EXCLUDED_STATUSES = ['archived', 'declined', 'converted']
APPROVED_STATUSES = ['APPROVED', 'APPROVED_FOR_CARE', 'SCHEDULED', 'IN_REVIEW', 'ASSIGNED']

CARE_REQUEST_SOURCES = [
    'WEBSITE',
    'PHYSICIAN_REFERRAL',
    'SCHOOL',
    'ATHLETE_PROGRAM',
    'INTERNAL',
    'FRONT_DESK_QR',
]
FRONT_DESK_QR_SOURCE = 'FRONT_DESK_QR'

PENDING_EPISODE_ACTIVE_STATUSES = ['pending', 'scheduled', 'ready_for_conversion']

INTAKE_FORM_RECEIVED_STATUSES = ['submitted', 'completed']
INTAKE_RECEIVED_STATUSES = ['completed', 'approved']

EMAIL_TEMPLATE_TYPES = ['neuro', 'msk']

# ── Live updates ─────────────────────────────────────────────────────────────
CHANGE_CHANNEL_PREFIX = 'table_changes'
WATCHED_TABLES = ['intake_forms', 'intakes']

# ── Write actions ────────────────────────────────────────────────────────────
VISIT_TYPES = ['np_neuro', 'np_msk', 'np_pediatric']

# Public intake access codes: no 0/O or 1/I/L lookalikes
ACCESS_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
ACCESS_CODE_LENGTH = 8

# Keyword → care request source, checked in order against origin_cta + utm_source
LEAD_SOURCE_KEYWORDS = [
    (('PHYSICIAN', 'REFERRAL', 'DOCTOR'), 'PHYSICIAN_REFERRAL'),
    (('SCHOOL', 'COMMUNITY'),             'SCHOOL'),
    (('ATHLETE', 'SPORT'),                'ATHLETE_PROGRAM'),
    (('INTERNAL', 'STAFF', 'PHONE'),      'INTERNAL'),
]
DEFAULT_LEAD_SOURCE = 'WEBSITE'
