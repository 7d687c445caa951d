"""
Stage derivation for a care request.

The stage cascade is a decision table: an ordered list of (stage, predicate)
pairs evaluated top to bottom, first match wins. New stages are added by
inserting a row, not by editing control flow.
"""
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from clinicflow.config import (
    APPROVED_STATUSES,
    FRONT_DESK_QR_SOURCE,
    INTAKE_FORM_RECEIVED_STATUSES,
    INTAKE_RECEIVED_STATUSES,
    PASSIVE_ACTIONS,
    STAGE_ACTIONS,
    STAGE_LABELS,
    STALL_THRESHOLD_DAYS,
)

DEFAULT_STAGE = 'lead_submitted'
COMPLETED_STAGES = ('forms_received', 'episode_active')


@dataclass(frozen=True)
class StageFlags:
    is_approved: bool = False
    is_scheduled: bool = False
    forms_sent: bool = False
    is_front_desk_qr: bool = False
    forms_received: bool = False
    episode_active: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


# Order matters: highest-priority stage first.
STAGE_RULES: List[Tuple[str, Callable[[StageFlags], bool]]] = [
    ('episode_active',    lambda f: f.episode_active),
    ('forms_received',    lambda f: f.forms_received),
    ('forms_sent',        lambda f: f.forms_sent),
    ('visit_scheduled',   lambda f: f.is_scheduled),
    ('approved_for_care', lambda f: f.is_approved),
]


@dataclass(frozen=True)
class StageDecision:
    stage: str
    action: str
    flags: StageFlags
    patient_completed: bool


def _upper(value) -> str:
    return (value or '').upper()


def _lower(value) -> str:
    return (value or '').lower()


def compute_flags(
    care_request: Dict,
    pending_episode: Optional[Dict] = None,
    intake_form: Optional[Dict] = None,
    intake: Optional[Dict] = None,
) -> StageFlags:
    """Evaluate the stage predicates for a care request and its matched records."""
    status = _upper(care_request.get('status'))

    is_approved = status in APPROVED_STATUSES or bool(care_request.get('approved_at'))
    is_scheduled = bool(pending_episode and pending_episode.get('scheduled_date')) or status == 'SCHEDULED'
    forms_sent = (intake_form is not None or intake is not None) and is_scheduled
    is_front_desk_qr = care_request.get('source') == FRONT_DESK_QR_SOURCE

    form_status = _lower(intake_form.get('status')) if intake_form else ''
    form_received = bool(intake_form) and (
        form_status in INTAKE_FORM_RECEIVED_STATUSES
        or (form_status == 'pending' and bool(intake_form.get('submitted_at')))
    )
    intake_received = bool(intake) and _lower(intake.get('status')) in INTAKE_RECEIVED_STATUSES

    # FRONT_DESK_QR forces forms_received even without approval or scheduling
    forms_received = form_received or intake_received or is_front_desk_qr

    return StageFlags(
        is_approved=is_approved,
        is_scheduled=is_scheduled,
        forms_sent=forms_sent,
        is_front_desk_qr=is_front_desk_qr,
        forms_received=forms_received,
        episode_active=bool(care_request.get('episode_id')),
    )


def stage_for_flags(flags: StageFlags) -> str:
    for stage, predicate in STAGE_RULES:
        if predicate(flags):
            return stage
    return DEFAULT_STAGE


def decision_for_stage(stage: str, flags: StageFlags = None) -> StageDecision:
    return StageDecision(
        stage=stage,
        action=STAGE_ACTIONS[stage],
        flags=flags or StageFlags(),
        patient_completed=stage in COMPLETED_STAGES,
    )


def derive_stage(
    care_request: Dict,
    pending_episode: Optional[Dict] = None,
    intake_form: Optional[Dict] = None,
    intake: Optional[Dict] = None,
) -> StageDecision:
    """Map a care request plus its matched records to (stage, action)."""
    flags = compute_flags(care_request, pending_episode, intake_form, intake)
    return decision_for_stage(stage_for_flags(flags), flags)


def lead_decision() -> StageDecision:
    """Leads without a care request always await approval."""
    return decision_for_stage(DEFAULT_STAGE)


# ── Time in pipeline / stall policy ──────────────────────────────────────────

def parse_timestamp(value) -> Optional[datetime]:
    """ISO string or datetime → aware UTC datetime (naive values are taken as UTC)."""
    if not value:
        return None
    try:
        if isinstance(value, str):
            dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
        else:
            dt = value
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except (TypeError, ValueError):
        return None


def days_in_pipeline(created_at, now: datetime = None) -> int:
    created = parse_timestamp(created_at)
    if created is None:
        return 0
    now = now or datetime.now(timezone.utc)
    elapsed = (now - created).total_seconds() / 86400
    return max(0, math.floor(elapsed))


def is_stalled(stage: str, days: int) -> bool:
    threshold = STALL_THRESHOLD_DAYS.get(stage)
    if threshold is None:
        return False
    return days >= threshold


def is_actionable(action: str) -> bool:
    return action not in PASSIVE_ACTIONS


def stall_reason(stage: str, days: int) -> Optional[str]:
    """Human-readable explanation shown next to a stalled item."""
    if not is_stalled(stage, days):
        return None
    if stage == 'lead_submitted':
        return f"Awaiting review for {days} days"
    if stage == 'approved_for_care':
        return "Approved but not scheduled"
    if stage == 'visit_scheduled':
        return "Visit scheduled, intake forms not sent"
    if stage == 'forms_sent':
        return "Forms sent, awaiting completion"
    if stage == 'forms_received':
        return "Forms received, ready to convert"
    return f"{STAGE_LABELS.get(stage, stage)} for {days} days"
