"""
Dashboard routes: Prospect Journey page, JSON API, SSE stream, intake alerts.
"""
import json
import logging
import time

from flask import Blueprint, Response, current_app, jsonify, render_template, stream_with_context

from clinicflow import extensions
from clinicflow.config import JOURNEY_STAGES, STAGE_LABELS
from clinicflow.journey.alerts import AlertStore
from clinicflow.journey.tracker import get_tracker
from clinicflow.services.intake import get_intake_record

logger = logging.getLogger('routes.dashboard')

bp = Blueprint('dashboard', __name__)


def _alert_store():
    return AlertStore(extensions.redis_client)


def _live_alerts():
    """Alerts for display. Redis trouble only hides the prompts."""
    try:
        return _alert_store().list_alerts()
    except Exception:
        logger.error("Failed to list intake alerts", exc_info=True)
        return []


@bp.route('/')
def index():
    """Prospect Journey dashboard."""
    tracker = get_tracker()
    tracker.ensure_loaded()
    return render_template(
        'prospects.html',
        state=tracker.snapshot(),
        alerts=_live_alerts(),
        stages=JOURNEY_STAGES,
        stage_labels=STAGE_LABELS,
    )


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/prospects')
def get_prospects():
    """Current journey list + summary. Loads once on first call."""
    tracker = get_tracker()
    tracker.ensure_loaded()
    return jsonify(tracker.snapshot())


@bp.route('/api/prospects/refresh', methods=['POST'])
def refresh_prospects():
    """Manual refresh: full re-fetch and re-derive."""
    tracker = get_tracker()
    tracker.refresh()
    snapshot = tracker.snapshot()
    return jsonify(snapshot), (503 if snapshot['error'] else 200)


@bp.route('/stream/prospects')
def stream_prospects():
    """SSE stream: pushes the snapshot + alerts whenever either changes."""
    max_polls = current_app.config['STREAM_MAX_POLLS']
    interval = current_app.config['STREAM_POLL_SECONDS']
    tracker = get_tracker()
    tracker.ensure_loaded()

    def generate():
        last_key = None
        for poll in range(max_polls):
            snapshot = tracker.snapshot()
            alerts = _live_alerts()

            state_key = (
                snapshot['generation'],
                snapshot['refreshed_at'],
                snapshot['loading'],
                tuple(a['id'] for a in alerts),
            )
            if state_key != last_key:
                last_key = state_key
                payload = json.dumps({'prospects': snapshot, 'alerts': alerts})
                yield f"data: {payload}\n\n"

            if poll < max_polls - 1:
                time.sleep(interval)

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )


# ── Intake alerts ────────────────────────────────────────────────────────────

@bp.route('/api/alerts')
def list_alerts():
    return jsonify({'alerts': _live_alerts()})


@bp.route('/api/alerts/<alert_id>/dismiss', methods=['POST'])
def dismiss_alert(alert_id):
    if not _alert_store().dismiss(alert_id):
        return jsonify({'error': 'Alert not found or already expired'}), 404
    return jsonify({'dismissed': alert_id})


@bp.route('/api/alerts/<alert_id>/print', methods=['POST'])
def print_alert(alert_id):
    """Consume the print prompt and render the intake record for printing."""
    alert = _alert_store().take_print(alert_id)
    if alert is None:
        return jsonify({'error': 'Print prompt expired'}), 410

    record = get_intake_record(alert['table'], alert['record_id'])
    return render_template('intake_print.html', alert=alert, record=record, table=alert['table'])
