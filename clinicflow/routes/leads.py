"""
Lead routes: capture and funnel actions.

Every successful action re-fetches the journey list; nothing is patched
into the dashboard optimistically.
"""
import logging

from flask import Blueprint, jsonify, request

from clinicflow.journey.tracker import get_tracker
from clinicflow.services import leads
from clinicflow.services.validation import json_object

logger = logging.getLogger('routes.leads')

bp = Blueprint('leads', __name__, url_prefix='/api/leads')


@bp.route('', methods=['POST'])
def create_lead():
    lead = leads.create_lead(json_object(request.get_json(silent=True)))
    get_tracker().refresh()
    return jsonify({'lead': lead}), 201


@bp.route('/<lead_id>/qualify', methods=['POST'])
def qualify_lead(lead_id):
    result = leads.qualify_lead(lead_id)
    get_tracker().refresh()
    return jsonify(result)


@bp.route('/<lead_id>/nurture', methods=['POST'])
def nurture_lead(lead_id):
    lead = leads.nurture_lead(lead_id)
    get_tracker().refresh()
    return jsonify({'lead': lead})


@bp.route('/<lead_id>/close', methods=['POST'])
def close_lead(lead_id):
    lead = leads.close_lead(lead_id)
    get_tracker().refresh()
    return jsonify({'lead': lead})


@bp.route('/<lead_id>', methods=['DELETE'])
def delete_lead(lead_id):
    leads.delete_lead(lead_id)
    get_tracker().refresh()
    return jsonify({'deleted': lead_id})
