"""
Live-update listener for the Prospect Journey.

Writers of the intake tables publish row-change envelopes on a per-table
Redis channel:

    table_changes:<table>  →  {"eventType": INSERT|UPDATE|DELETE, "table": ..., "new": {...}, "old": {...}}

Filtering is by table only. The listener decides relevance itself: every
event triggers a full tracker refresh, and print-worthy events (a submitted
legacy form, a completed structured intake) also raise an intake alert.
"""
import json
import logging
from typing import Dict, Iterable, Optional

from clinicflow.config import CHANGE_CHANNEL_PREFIX, WATCHED_TABLES
from clinicflow.journey.alerts import AlertStore

logger = logging.getLogger('journey.listener')

EVENT_TYPES = ('INSERT', 'UPDATE', 'DELETE')


def channel_for(table: str) -> str:
    return f'{CHANGE_CHANNEL_PREFIX}:{table}'


def publish_change(table: str, event_type: str, new: Dict = None, old: Dict = None, redis_client=None):
    """
    Publish a row-change envelope. Never raises: a failed publish only costs
    the dashboard its live refresh.
    """
    envelope = {'eventType': event_type, 'table': table, 'new': new or {}, 'old': old or {}}
    try:
        if redis_client is None:
            from clinicflow.extensions import redis_client
        redis_client.publish(channel_for(table), json.dumps(envelope, default=str))
    except Exception:
        logger.error("Failed to publish %s change on %s", event_type, table, exc_info=True)


def is_print_worthy(table: str, envelope: Dict) -> bool:
    event_type = envelope.get('eventType')
    status = (envelope.get('new') or {}).get('status')
    if table == 'intake_forms':
        return event_type == 'INSERT' and status == 'submitted'
    if table == 'intakes':
        return event_type == 'UPDATE' and status == 'completed'
    return False


class LiveUpdateListener:
    """Subscribes to intake table changes and keeps the tracker fresh."""

    def __init__(self, tracker=None, redis_client=None, alerts: AlertStore = None,
                 tables: Iterable[str] = None):
        if tracker is None:
            from clinicflow.journey.tracker import get_tracker
            tracker = get_tracker()
        if redis_client is None:
            from clinicflow.extensions import redis_client as rc
            redis_client = rc
        self.tracker = tracker
        self.redis = redis_client
        self.alerts = alerts or AlertStore(redis_client)
        self.tables = list(tables or WATCHED_TABLES)
        self._pubsub = None
        self._thread = None

    def handle_event(self, table: str, envelope: Dict) -> Optional[Dict]:
        """Process one change envelope. Returns the raised alert, if any."""
        if table not in self.tables:
            return None
        event_type = envelope.get('eventType')
        if event_type not in EVENT_TYPES:
            logger.warning("Ignoring %s event with unknown type %r", table, event_type)
            return None

        logger.info("%s on %s - refreshing journeys", event_type, table)
        self.tracker.refresh()

        if not is_print_worthy(table, envelope):
            return None
        try:
            return self.alerts.raise_alert(table, envelope.get('new') or {})
        except Exception:
            logger.error("Failed to raise intake alert for %s", table, exc_info=True)
            return None

    def _on_message(self, message):
        channel = message.get('channel') or ''
        table = channel.split(':', 1)[-1]
        try:
            envelope = json.loads(message.get('data') or '')
        except (TypeError, ValueError):
            logger.warning("Malformed change envelope on %s", channel)
            return
        if not isinstance(envelope, dict):
            logger.warning("Malformed change envelope on %s", channel)
            return
        self.handle_event(table, envelope)

    def start(self):
        """Subscribe and process messages on a background thread."""
        if self._thread is not None:
            return self._thread
        self._pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(**{channel_for(t): self._on_message for t in self.tables})
        self._thread = self._pubsub.run_in_thread(sleep_time=1.0, daemon=True)
        logger.info("Live-update listener subscribed to %s", ', '.join(self.tables))
        return self._thread

    def stop(self):
        if self._thread is not None:
            self._thread.stop()
            self._thread = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None
