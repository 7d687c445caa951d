"""Tests for change publication and the live-update listener."""
import json
from unittest.mock import MagicMock

import pytest

from clinicflow.journey.alerts import AlertStore
from clinicflow.journey.listener import (
    LiveUpdateListener,
    channel_for,
    is_print_worthy,
    publish_change,
)


@pytest.fixture
def tracker():
    return MagicMock()


@pytest.fixture
def listener(tracker, fake_redis):
    return LiveUpdateListener(tracker=tracker, redis_client=fake_redis, alerts=AlertStore(fake_redis, ttl=30))


def _envelope(event_type, table, **new):
    return {'eventType': event_type, 'table': table, 'new': new, 'old': {}}


class TestPublishChange:

    def test_publishes_envelope_on_table_channel(self, fake_redis):
        publish_change('intakes', 'UPDATE', {'id': 'in-1', 'status': 'completed'}, {'status': 'draft'})
        channel, message = fake_redis.published[0]
        assert channel == 'table_changes:intakes'
        assert json.loads(message) == {
            'eventType': 'UPDATE', 'table': 'intakes',
            'new': {'id': 'in-1', 'status': 'completed'}, 'old': {'status': 'draft'},
        }

    def test_publish_failure_does_not_raise(self):
        broken = MagicMock()
        broken.publish.side_effect = ConnectionError('redis down')
        publish_change('intake_forms', 'INSERT', {'id': 'if-1'}, redis_client=broken)
        broken.publish.assert_called_once()


class TestIsPrintWorthy:

    @pytest.mark.parametrize('table,event_type,status,expected', [
        ('intake_forms', 'INSERT', 'submitted', True),
        ('intake_forms', 'INSERT', 'pending', False),
        ('intake_forms', 'UPDATE', 'submitted', False),
        ('intakes', 'UPDATE', 'completed', True),
        ('intakes', 'UPDATE', 'approved', False),
        ('intakes', 'INSERT', 'completed', False),
        ('care_requests', 'INSERT', 'submitted', False),
    ])
    def test_rules(self, table, event_type, status, expected):
        assert is_print_worthy(table, _envelope(event_type, table, status=status)) is expected

    def test_delete_without_new_row(self):
        assert not is_print_worthy('intakes', {'eventType': 'DELETE', 'new': None, 'old': {'id': 'x'}})


class TestLiveUpdateListener:

    def test_any_event_refreshes(self, listener, tracker):
        assert listener.handle_event('intake_forms', _envelope('DELETE', 'intake_forms')) is None
        tracker.refresh.assert_called_once()

    def test_print_worthy_event_raises_alert(self, listener, tracker):
        alert = listener.handle_event(
            'intake_forms', _envelope('INSERT', 'intake_forms', id='if-1', status='submitted', patient_name='Jane Doe'),
        )
        tracker.refresh.assert_called_once()
        assert alert['record_id'] == 'if-1'
        assert listener.alerts.list_alerts()[0]['id'] == alert['id']

    def test_unwatched_table_is_ignored(self, listener, tracker):
        listener.handle_event('care_requests', _envelope('INSERT', 'care_requests'))
        tracker.refresh.assert_not_called()

    def test_unknown_event_type_is_ignored(self, listener, tracker):
        listener.handle_event('intakes', _envelope('TRUNCATE', 'intakes'))
        tracker.refresh.assert_not_called()

    def test_alert_failure_does_not_break_refresh(self, tracker, fake_redis):
        alerts = MagicMock()
        alerts.raise_alert.side_effect = ConnectionError('redis down')
        listener = LiveUpdateListener(tracker=tracker, redis_client=fake_redis, alerts=alerts)
        result = listener.handle_event('intakes', _envelope('UPDATE', 'intakes', id='in-1', status='completed'))
        assert result is None
        tracker.refresh.assert_called_once()

    def test_on_message_decodes_pubsub_payload(self, listener, tracker):
        listener._on_message({
            'type': 'message',
            'channel': channel_for('intakes'),
            'data': json.dumps(_envelope('UPDATE', 'intakes', id='in-1', status='completed', patient_name='Sam')),
        })
        tracker.refresh.assert_called_once()
        assert listener.alerts.list_alerts()[0]['message'] == 'Intake completed: Sam'

    def test_on_message_ignores_malformed_payload(self, listener, tracker):
        listener._on_message({'type': 'message', 'channel': channel_for('intakes'), 'data': 'not json'})
        listener._on_message({'type': 'message', 'channel': channel_for('intakes'), 'data': '[1, 2]'})
        tracker.refresh.assert_not_called()

    def test_start_subscribes_to_watched_tables(self, tracker):
        redis_client = MagicMock()
        listener = LiveUpdateListener(tracker=tracker, redis_client=redis_client)
        listener.start()

        pubsub = redis_client.pubsub.return_value
        subscribed = pubsub.subscribe.call_args.kwargs
        assert set(subscribed) == {'table_changes:intake_forms', 'table_changes:intakes'}
        pubsub.run_in_thread.assert_called_once_with(sleep_time=1.0, daemon=True)

        listener.stop()
        pubsub.run_in_thread.return_value.stop.assert_called_once()
        pubsub.close.assert_called_once()
