"""
Care request routes: approve, schedule, send forms, convert, archive, decline.
"""
import logging

from flask import Blueprint, jsonify, request

from clinicflow.journey.tracker import get_tracker
from clinicflow.services import care_requests
from clinicflow.services.validation import json_object

logger = logging.getLogger('routes.care_requests')

bp = Blueprint('care_requests', __name__, url_prefix='/api/care-requests')


def _body():
    return json_object(request.get_json(silent=True))


@bp.route('/<care_request_id>/approve', methods=['POST'])
def approve(care_request_id):
    result = care_requests.approve_care_request(care_request_id, _body().get('clinician_id'))
    get_tracker().refresh()
    return jsonify({'care_request': result})


@bp.route('/<care_request_id>/schedule', methods=['POST'])
def schedule(care_request_id):
    data = _body()
    result = care_requests.schedule_visit(
        care_request_id,
        data.get('scheduled_date'),
        data.get('visit_type') or 'np_neuro',
    )
    get_tracker().refresh()
    return jsonify(result)


@bp.route('/<care_request_id>/send-forms', methods=['POST'])
def send_forms(care_request_id):
    data = _body()
    result = care_requests.send_intake_forms(
        care_request_id,
        email=data.get('email'),
        template_type=data.get('template_type') or 'neuro',
    )
    get_tracker().refresh()
    return jsonify(result)


@bp.route('/<care_request_id>/convert', methods=['POST'])
def convert(care_request_id):
    result = care_requests.convert_to_episode(care_request_id)
    get_tracker().refresh()
    return jsonify({'care_request': result, 'episode_id': result['episode_id']})


@bp.route('/<care_request_id>/archive', methods=['POST'])
def archive(care_request_id):
    result = care_requests.archive_care_request(care_request_id)
    get_tracker().refresh()
    return jsonify({'care_request': result})


@bp.route('/<care_request_id>/decline', methods=['POST'])
def decline(care_request_id):
    result = care_requests.decline_care_request(care_request_id)
    get_tracker().refresh()
    return jsonify({'care_request': result})
