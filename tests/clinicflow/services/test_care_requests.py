"""Tests for care request write actions."""
from unittest.mock import patch

import pytest

from clinicflow.errors import ConflictError, FunctionInvocationError, NotFoundError, ValidationError
from clinicflow.models.care_request import CareRequest
from clinicflow.models.intake import Intake
from clinicflow.models.intake_form import IntakeForm
from clinicflow.models.pending_episode import PendingEpisode
from clinicflow.services import care_requests


@pytest.fixture
def care_request(db_session):
    row = CareRequest(id='cr-1', status='SUBMITTED', source='WEBSITE',
                      intake_payload={'name': 'Jane Doe', 'email': 'jane@example.com', 'lead_id': 'lead-1'})
    db_session.add(row)
    db_session.commit()
    return row


class TestApprove:

    def test_sets_status_and_timestamp(self, care_request):
        result = care_requests.approve_care_request('cr-1', clinician_id='clin-7')
        assert result['status'] == 'APPROVED_FOR_CARE'
        assert result['approved_at'] is not None
        assert result['assigned_clinician_id'] == 'clin-7'

    def test_already_approved(self, care_request):
        care_requests.approve_care_request('cr-1')
        with pytest.raises(ConflictError, match='already approved'):
            care_requests.approve_care_request('cr-1')

    def test_scheduled_request_is_not_moved_back(self, care_request, db_session):
        care_requests.schedule_visit('cr-1', '2026-03-12T10:00:00+00:00')
        with pytest.raises(ConflictError, match='already approved'):
            care_requests.approve_care_request('cr-1')
        db_session.expire_all()
        assert db_session.get(CareRequest, 'cr-1').status == 'SCHEDULED'

    @pytest.mark.parametrize('status', ['APPROVED', 'approved_for_care', 'SCHEDULED'])
    def test_approved_or_later_cannot_be_approved_again(self, care_request, db_session, status):
        care_request.status = status
        db_session.commit()
        with pytest.raises(ConflictError):
            care_requests.approve_care_request('cr-1')

    @pytest.mark.parametrize('status', ['IN_REVIEW', 'ASSIGNED'])
    def test_review_statuses_can_be_approved(self, care_request, db_session, status):
        care_request.status = status
        db_session.commit()
        assert care_requests.approve_care_request('cr-1')['status'] == 'APPROVED_FOR_CARE'

    @pytest.mark.parametrize('status', ['ARCHIVED', 'declined', 'CONVERTED'])
    def test_closed_requests_cannot_be_approved(self, care_request, db_session, status):
        care_request.status = status
        db_session.commit()
        with pytest.raises(ConflictError):
            care_requests.approve_care_request('cr-1')

    def test_missing(self):
        with pytest.raises(NotFoundError):
            care_requests.approve_care_request('nope')


class TestScheduleVisit:

    def test_creates_linked_pending_episode(self, care_request, db_session):
        result = care_requests.schedule_visit('cr-1', '2026-03-12T09:00:00+00:00', 'np_msk')
        episode = db_session.get(PendingEpisode, result['pending_episode']['id'])
        assert episode.care_request_id == 'cr-1'
        assert episode.patient_name == 'Jane Doe'
        assert episode.status == 'scheduled'
        assert episode.visit_type == 'np_msk'
        assert result['care_request']['status'] == 'SCHEDULED'

    def test_reschedule_updates_same_episode(self, care_request, db_session):
        first = care_requests.schedule_visit('cr-1', '2026-03-12T09:00:00+00:00')
        second = care_requests.schedule_visit('cr-1', '2026-03-14T15:30:00+00:00')
        assert first['pending_episode']['id'] == second['pending_episode']['id']
        assert db_session.query(PendingEpisode).count() == 1

    def test_validates_date_and_visit_type(self, care_request):
        with pytest.raises(ValidationError) as exc:
            care_requests.schedule_visit('cr-1', 'someday', 'np_dental')
        assert {d['field'] for d in exc.value.details} == {'scheduled_date', 'visit_type'}


class TestSendIntakeForms:

    def test_sends_email_and_opens_form(self, care_request, db_session, fake_redis):
        with patch('clinicflow.services.functions.invoke_function', return_value={'success': True}) as invoke:
            result = care_requests.send_intake_forms('cr-1', template_type='msk')

        invoke.assert_called_once_with('send-onboarding-email', {
            'email': 'jane@example.com', 'patientName': 'Jane Doe', 'leadId': 'lead-1', 'templateType': 'msk',
        })
        form = db_session.get(IntakeForm, result['intake_form']['id'])
        assert form.status == 'pending'
        assert len(form.access_code) == 8
        assert fake_redis.published[0][0] == 'table_changes:intake_forms'

    def test_reuses_existing_form(self, care_request, db_session):
        db_session.add(IntakeForm(id='if-existing', patient_name='Jane Doe', status='pending'))
        db_session.commit()
        with patch('clinicflow.services.functions.invoke_function', return_value={}):
            result = care_requests.send_intake_forms('cr-1')
        assert result['intake_form']['id'] == 'if-existing'
        assert db_session.query(IntakeForm).count() == 1

    def test_rejects_unknown_template(self, care_request):
        with pytest.raises(ValidationError):
            care_requests.send_intake_forms('cr-1', template_type='dental')

    def test_email_failure_writes_nothing(self, care_request, db_session):
        with patch('clinicflow.services.functions.invoke_function',
                   side_effect=FunctionInvocationError('send-onboarding-email', 'HTTP 500')):
            with pytest.raises(FunctionInvocationError):
                care_requests.send_intake_forms('cr-1')
        assert db_session.query(IntakeForm).count() == 0


class TestConvertToEpisode:

    def test_converts_and_closes_matched_records(self, care_request, db_session):
        db_session.add_all([
            PendingEpisode(id='pe-1', care_request_id='cr-1', patient_name='Jane Doe', status='scheduled'),
            IntakeForm(id='if-1', patient_name='Jane Doe', status='submitted'),
            Intake(id='in-1', lead_id='lead-1', patient_name='J', status='completed'),
        ])
        db_session.commit()

        result = care_requests.convert_to_episode('cr-1')

        episode_id = result['episode_id']
        assert episode_id.startswith('EP-')
        assert result['status'] == 'CONVERTED'
        assert db_session.get(IntakeForm, 'if-1').converted_to_episode_id == episode_id
        assert db_session.get(Intake, 'in-1').converted_to_episode_id == episode_id
        assert db_session.get(PendingEpisode, 'pe-1').status == 'converted'

    def test_without_matched_records(self, care_request):
        assert care_requests.convert_to_episode('cr-1')['episode_id']

    def test_refuses_second_conversion(self, care_request):
        care_requests.convert_to_episode('cr-1')
        with pytest.raises(ConflictError, match='already converted'):
            care_requests.convert_to_episode('cr-1')

    def test_episode_id_format(self):
        parts = care_requests.new_episode_id().split('-')
        assert parts[0] == 'EP'
        assert parts[1].isdigit()
        assert len(parts[2]) == 9


class TestArchiveDecline:

    def test_archive(self, care_request):
        assert care_requests.archive_care_request('cr-1')['status'] == 'ARCHIVED'

    def test_decline(self, care_request):
        assert care_requests.decline_care_request('cr-1')['status'] == 'DECLINED'

    def test_archived_cannot_be_declined(self, care_request):
        care_requests.archive_care_request('cr-1')
        with pytest.raises(ConflictError):
            care_requests.decline_care_request('cr-1')
