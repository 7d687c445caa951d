"""Tests for dashboard, prospect API, SSE stream and alert routes."""
import json
from unittest.mock import patch

import pytest

from clinicflow.errors import FetchError
from clinicflow.journey.alerts import AlertStore
from clinicflow.journey.tracker import FETCH_ERROR_MESSAGE
from clinicflow.models.care_request import CareRequest
from clinicflow.models.intake_form import IntakeForm
from clinicflow.models.lead import Lead


@pytest.fixture
def pipeline(db_session):
    db_session.add_all([
        Lead(id='lead-1', name='Maya Patel', email='maya@example.com'),
        Lead(id='lead-dup', name='Jane Doe', email='jane@example.com'),
        CareRequest(id='cr-1', status='SUBMITTED', intake_payload={'name': 'Jane Doe', 'email': 'jane@example.com'}),
    ])
    db_session.commit()


class TestHealthAndIndex:

    def test_health(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.get_json() == {'status': 'healthy'}

    def test_index_renders(self, client, pipeline):
        resp = client.get('/')
        assert resp.status_code == 200
        body = resp.get_data(as_text=True)
        assert 'Prospect Journey' in body
        assert 'Maya Patel' in body


class TestProspectsApi:

    def test_lists_deduplicated_journeys(self, client, pipeline):
        data = client.get('/api/prospects').get_json()
        assert {(j['kind'], j['id']) for j in data['journeys']} == {('lead', 'lead-1'), ('care_request', 'cr-1')}
        assert data['summary']['active'] == 2
        assert data['error'] is None

    def test_refresh_picks_up_new_rows(self, client, pipeline, db_session):
        client.get('/api/prospects')
        db_session.add(Lead(id='lead-2', name='Owen Brooks', email='owen@example.com'))
        db_session.commit()

        resp = client.post('/api/prospects/refresh')
        assert resp.status_code == 200
        assert 'lead-2' in {j['id'] for j in resp.get_json()['journeys']}

    def test_refresh_failure_reports_error(self, client):
        with patch('clinicflow.journey.tracker.fetch_records', side_effect=FetchError('Failed to load leads')):
            resp = client.post('/api/prospects/refresh')
        assert resp.status_code == 503
        data = resp.get_json()
        assert data['error'] == FETCH_ERROR_MESSAGE
        assert data['journeys'] == []


class TestStream:

    def test_stream_pushes_snapshot(self, client, pipeline):
        resp = client.get('/stream/prospects')
        assert resp.mimetype == 'text/event-stream'
        assert resp.headers['Cache-Control'] == 'no-cache'

        body = resp.get_data(as_text=True)
        assert body.startswith('data: ')
        payload = json.loads(body[len('data: '):].strip())
        assert len(payload['prospects']['journeys']) == 2
        assert payload['alerts'] == []


class TestAlertRoutes:

    @pytest.fixture
    def form(self, db_session):
        row = IntakeForm(id='if-1', patient_name='Ava Rossi', chief_complaint='Back pain', status='submitted')
        db_session.add(row)
        db_session.commit()
        return row

    @pytest.fixture
    def alert(self, fake_redis, form):
        return AlertStore(fake_redis).raise_alert('intake_forms', {'id': 'if-1', 'patient_name': 'Ava Rossi'})

    def test_list(self, client, alert):
        data = client.get('/api/alerts').get_json()
        assert [a['id'] for a in data['alerts']] == [alert['id']]

    def test_dismiss(self, client, alert):
        assert client.post(f"/api/alerts/{alert['id']}/dismiss").status_code == 200
        assert client.get('/api/alerts').get_json()['alerts'] == []
        assert client.post(f"/api/alerts/{alert['id']}/dismiss").status_code == 404

    def test_print_renders_record_once(self, client, alert):
        resp = client.post(f"/api/alerts/{alert['id']}/print")
        assert resp.status_code == 200
        body = resp.get_data(as_text=True)
        assert 'Ava Rossi' in body
        assert 'Back pain' in body
        assert client.post(f"/api/alerts/{alert['id']}/print").status_code == 410

    def test_print_after_lapse(self, client, alert, fake_redis):
        fake_redis.lapse(f"intake_alert:{alert['id']}")
        assert client.post(f"/api/alerts/{alert['id']}/print").status_code == 410
