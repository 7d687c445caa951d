"""
Intake routes: public legacy form submission and structured intakes.

POST /api/intake-forms is open (no dashboard login): patients submit it
from the public form or the front-desk QR code. Patient-side writes reach
the dashboard through the live-update listener.
"""
import logging

from flask import Blueprint, jsonify, request

from clinicflow.journey.tracker import get_tracker
from clinicflow.services import intake
from clinicflow.services.validation import json_object

logger = logging.getLogger('routes.intake')

bp = Blueprint('intake', __name__, url_prefix='/api')


@bp.route('/intake-forms', methods=['POST'])
def submit_intake_form():
    result = intake.submit_intake_form(json_object(request.get_json(silent=True)))
    return jsonify(result), 201


@bp.route('/intakes', methods=['POST'])
def save_intake():
    result = intake.save_intake(json_object(request.get_json(silent=True)))
    return jsonify({'intake': result}), 201


@bp.route('/intakes/<intake_id>/complete', methods=['POST'])
def complete_intake(intake_id):
    data = json_object(request.get_json(silent=True))
    result = intake.complete_intake(intake_id, data.get('responses'))
    return jsonify({'intake': result})


@bp.route('/intakes/<intake_id>/approve', methods=['POST'])
def approve_intake(intake_id):
    result = intake.approve_intake(intake_id)
    get_tracker().refresh()
    return jsonify({'intake': result})
