"""
Record fetcher: the five read queries behind one journey refresh.

The queries run concurrently, each on its own session, and are joined
all-or-nothing: if any one fails the refresh raises FetchError and no partial
record set is returned.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List

from sqlalchemy import func, or_

from clinicflow import config
from clinicflow.database import get_session
from clinicflow.errors import FetchError
from clinicflow.models.care_request import CareRequest
from clinicflow.models.intake import Intake
from clinicflow.models.intake_form import IntakeForm
from clinicflow.models.lead import Lead
from clinicflow.models.pending_episode import PendingEpisode

logger = logging.getLogger('journey.fetcher')


@dataclass
class RecordSet:
    """Row snapshots for one refresh cycle, newest first."""
    leads: List[Dict] = field(default_factory=list)
    care_requests: List[Dict] = field(default_factory=list)
    pending_episodes: List[Dict] = field(default_factory=list)
    intake_forms: List[Dict] = field(default_factory=list)
    intakes: List[Dict] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            'leads': len(self.leads),
            'care_requests': len(self.care_requests),
            'pending_episodes': len(self.pending_episodes),
            'intake_forms': len(self.intake_forms),
            'intakes': len(self.intakes),
        }


# ── Queries ──────────────────────────────────────────────────────────────────

def query_leads(session):
    return session.query(Lead).filter(
        or_(Lead.funnel_stage.is_(None), Lead.funnel_stage.not_in(config.LEAD_EXCLUDED_STAGES)),
    ).order_by(Lead.created_at.desc()).all()


def query_care_requests(session):
    return session.query(CareRequest).filter(
        func.lower(CareRequest.status).not_in(config.CARE_REQUEST_EXCLUDED_STATUSES),
        CareRequest.episode_id.is_(None),
    ).order_by(CareRequest.created_at.desc()).all()


def query_pending_episodes(session):
    return session.query(PendingEpisode).filter(
        PendingEpisode.status.in_(config.PENDING_EPISODE_ACTIVE_STATUSES),
    ).order_by(PendingEpisode.created_at.desc()).all()


def query_intake_forms(session):
    return session.query(IntakeForm).order_by(IntakeForm.created_at.desc()).all()


def query_intakes(session):
    return session.query(Intake).filter(
        Intake.status.in_(config.INTAKE_RECEIVED_STATUSES),
    ).order_by(Intake.created_at.desc()).all()


QUERIES = {
    'leads': query_leads,
    'care_requests': query_care_requests,
    'pending_episodes': query_pending_episodes,
    'intake_forms': query_intake_forms,
    'intakes': query_intakes,
}


def _run_query(query):
    session = get_session()
    try:
        return [row.to_dict() for row in query(session)]
    finally:
        session.close()


def fetch_records(max_workers: int = None) -> RecordSet:
    """
    Load every source table for one refresh.

    Raises:
        FetchError: any query failed. The first failure (in table order) is chained.
    """
    workers = max_workers or config.FETCH_MAX_WORKERS

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {name: pool.submit(_run_query, query) for name, query in QUERIES.items()}

    results = {}
    for name, future in futures.items():
        try:
            results[name] = future.result()
        except Exception as e:
            logger.error("Journey fetch failed on %s: %s", name, e, exc_info=True)
            raise FetchError(f"Failed to load {name}") from e

    records = RecordSet(**results)
    logger.debug("Journey fetch complete: %s", records.counts())
    return records
