"""
Prospect Journey tracker: derives the dashboard list from raw rows and holds
the current view state.

Every refresh re-derives the whole list from a fresh fetch; nothing is
patched incrementally. A monotonic generation counter guards against
overlapping refreshes: only the newest refresh may publish its result.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from clinicflow.config import JOURNEY_STAGES
from clinicflow.errors import FetchError
from clinicflow.journey import identity
from clinicflow.journey.fetcher import RecordSet, fetch_records
from clinicflow.journey.prioritizer import prioritize
from clinicflow.journey.stages import (
    StageDecision,
    days_in_pipeline,
    derive_stage,
    is_stalled,
    lead_decision,
    stall_reason,
)

logger = logging.getLogger('journey.tracker')

FETCH_ERROR_MESSAGE = 'Failed to load prospect data'


@dataclass
class ProspectJourney:
    """View-model row: one per lead or care request, never both."""
    id: str
    kind: str                      # 'lead' | 'care_request'
    name: str
    email: str
    phone: Optional[str]
    primary_concern: Optional[str]
    created_at: Optional[str]
    current_stage: str
    staff_action: str
    days_in_pipeline: int
    is_stalled: bool
    stall_reason: Optional[str]
    patient_completed: bool
    flags: Dict[str, bool] = field(default_factory=dict)
    milestones: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'kind': self.kind,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'primary_concern': self.primary_concern,
            'created_at': self.created_at,
            'current_stage': self.current_stage,
            'staff_action': self.staff_action,
            'days_in_pipeline': self.days_in_pipeline,
            'is_stalled': self.is_stalled,
            'stall_reason': self.stall_reason,
            'patient_completed': self.patient_completed,
            'flags': self.flags,
            'milestones': self.milestones,
        }


def _milestone(complete, date=None, **extra):
    entry = {'complete': bool(complete), 'date': date}
    entry.update(extra)
    return entry


def _care_request_milestones(cr, matches, decision: StageDecision):
    flags = decision.flags
    pe = matches.pending_episode or {}
    form = matches.intake_form or matches.intake or {}
    return {
        'lead_submitted': _milestone(True, cr.get('created_at')),
        'approved_for_care': _milestone(flags.is_approved, cr.get('approved_at')),
        'visit_scheduled': _milestone(
            flags.is_scheduled, pe.get('created_at'),
            appointment_date=pe.get('scheduled_date'),
        ),
        'forms_sent': _milestone(flags.forms_sent, form.get('created_at')),
        'forms_received': _milestone(flags.forms_received, form.get('submitted_at')),
        'episode_active': _milestone(
            flags.episode_active, None, episode_id=cr.get('episode_id'),
        ),
    }


def _lead_milestones(lead):
    milestones = {stage: _milestone(False) for stage in JOURNEY_STAGES}
    milestones['lead_submitted'] = _milestone(True, lead.get('created_at'))
    return milestones


def _journey(row_id, kind, name, email, phone, concern, created_at, decision, milestones, now):
    days = days_in_pipeline(created_at, now)
    return ProspectJourney(
        id=row_id,
        kind=kind,
        name=name or 'Unknown',
        email=email or '',
        phone=phone or None,
        primary_concern=concern or None,
        created_at=created_at,
        current_stage=decision.stage,
        staff_action=decision.action,
        days_in_pipeline=days,
        is_stalled=is_stalled(decision.stage, days),
        stall_reason=stall_reason(decision.stage, days),
        patient_completed=decision.patient_completed,
        flags=decision.flags.to_dict(),
        milestones=milestones,
    )


def journey_for_care_request(cr: Dict, records: RecordSet, now: datetime = None) -> ProspectJourney:
    ident = identity.care_request_identity(cr)
    payload = cr.get('intake_payload') or {}
    matches = identity.match_care_request(cr, records)
    decision = derive_stage(cr, matches.pending_episode, matches.intake_form, matches.intake)
    return _journey(
        cr['id'], 'care_request',
        ident['name'], ident['email'], ident['phone'],
        cr.get('primary_complaint') or payload.get('chief_complaint') or payload.get('primary_concern'),
        cr.get('created_at'),
        decision,
        _care_request_milestones(cr, matches, decision),
        now,
    )


def journey_for_lead(lead: Dict, now: datetime = None) -> ProspectJourney:
    return _journey(
        lead['id'], 'lead',
        lead.get('name'), lead.get('email'), lead.get('phone'),
        lead.get('primary_concern') or lead.get('symptom_summary'),
        lead.get('created_at'),
        lead_decision(),
        _lead_milestones(lead),
        now,
    )


def build_journeys(records: RecordSet, now: datetime = None) -> List[ProspectJourney]:
    """Pure re-derivation: row snapshots → prioritized journey list."""
    now = now or datetime.now(timezone.utc)
    cr_keys = identity.care_request_keys(records.care_requests)

    journeys = [journey_for_lead(lead, now) for lead in identity.unclaimed_leads(records.leads, cr_keys)]
    journeys.extend(journey_for_care_request(cr, records, now) for cr in records.care_requests)
    return prioritize(journeys)


def summarize(journeys: List[ProspectJourney]) -> Dict[str, Any]:
    active = [j for j in journeys if j.current_stage != 'episode_active']
    by_stage = {stage: 0 for stage in JOURNEY_STAGES}
    for j in journeys:
        by_stage[j.current_stage] = by_stage.get(j.current_stage, 0) + 1
    return {
        'active': len(active),
        'stalled': sum(1 for j in active if j.is_stalled),
        'forms_complete': by_stage['forms_received'],
        'by_stage': by_stage,
    }


class ProspectJourneyTracker:
    """
    Owns the derived prospect list for the staff dashboard.

    refresh() may be called concurrently (manual refresh, live updates);
    a result is applied only if no newer refresh started after it.
    """

    def __init__(self, fetch: Callable[[], RecordSet] = None, clock: Callable[[], datetime] = None):
        self._fetch = fetch or fetch_records
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._generation = 0
        self.journeys: List[ProspectJourney] = []
        self.error: Optional[str] = None
        self.loading = False
        self.refreshed_at: Optional[str] = None

    @property
    def generation(self) -> int:
        return self._generation

    def refresh(self) -> bool:
        """Re-fetch and re-derive. Returns False if the result was superseded."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            self.loading = True

        try:
            records = self._fetch()
            journeys = build_journeys(records, now=self._clock())
        except FetchError:
            return self._apply(generation, [], FETCH_ERROR_MESSAGE)
        except Exception:
            logger.error("Journey derivation failed", exc_info=True)
            return self._apply(generation, [], FETCH_ERROR_MESSAGE)

        return self._apply(generation, journeys, None)

    def _apply(self, generation, journeys, error) -> bool:
        with self._lock:
            if generation != self._generation:
                logger.info("Discarding superseded refresh %d (latest is %d)", generation, self._generation)
                return False
            self.journeys = journeys
            self.error = error
            self.loading = False
            self.refreshed_at = self._clock().isoformat()
        if error:
            logger.warning("Journey refresh %d failed: %s", generation, error)
        else:
            logger.info("Journey refresh %d applied: %d prospects", generation, len(journeys))
        return True

    def ensure_loaded(self):
        """Refresh once if nothing has been loaded yet."""
        if self.refreshed_at is None and not self.loading:
            self.refresh()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            journeys = list(self.journeys)
            state = {
                'error': self.error,
                'loading': self.loading,
                'generation': self._generation,
                'refreshed_at': self.refreshed_at,
            }
        state['journeys'] = [j.to_dict() for j in journeys]
        state['summary'] = summarize(journeys)
        return state


_tracker = None
_tracker_lock = threading.Lock()


def get_tracker() -> ProspectJourneyTracker:
    """Process-wide tracker shared by the routes and the live-update listener."""
    global _tracker
    with _tracker_lock:
        if _tracker is None:
            _tracker = ProspectJourneyTracker()
        return _tracker


def reset_tracker(tracker: ProspectJourneyTracker = None):
    """Replace the process-wide tracker (tests, app factory)."""
    global _tracker
    with _tracker_lock:
        _tracker = tracker
