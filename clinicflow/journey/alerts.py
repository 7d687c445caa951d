"""
Intake alerts: dismissible staff notifications with a print affordance.

Each alert is a Redis key with a TTL; the armed print action self-cancels
when the key expires. An index sorted set keeps alerts in arrival order.

Keys:
    intake_alert:{id}  → JSON blob (expires after PRINT_PROMPT_TTL_SECONDS)
    intake_alerts      → sorted set of alert ids by creation time
"""
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from clinicflow.config import PRINT_PROMPT_TTL_SECONDS

logger = logging.getLogger('journey.alerts')

KEY_PREFIX = 'intake_alert'
INDEX_KEY = 'intake_alerts'

ALERT_MESSAGES = {
    'intake_forms': 'New intake form: {name}',
    'intakes': 'Intake completed: {name}',
}


def _alert_key(alert_id):
    return f'{KEY_PREFIX}:{alert_id}'


class AlertStore:
    """Redis-backed store for print-prompt alerts."""

    def __init__(self, redis_client=None, ttl: int = None):
        if redis_client is None:
            from clinicflow.extensions import redis_client as rc
            redis_client = rc
        self.redis = redis_client
        self.ttl = ttl or PRINT_PROMPT_TTL_SECONDS

    def raise_alert(self, table: str, record: Dict) -> Dict:
        """Store an alert for a newly submitted/completed intake record."""
        name = record.get('patient_name') or 'Unknown patient'
        alert_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        alert = {
            'id': alert_id,
            'table': table,
            'record_id': record.get('id'),
            'patient_name': name,
            'message': ALERT_MESSAGES.get(table, 'Intake update: {name}').format(name=name),
            'print_url': f'/api/alerts/{alert_id}/print',
            'created_at': now.isoformat(),
            'expires_in': self.ttl,
        }
        self.redis.setex(_alert_key(alert_id), self.ttl, json.dumps(alert))
        self.redis.zadd(INDEX_KEY, {alert_id: time.time()})
        logger.info("Alert %s raised for %s %s", alert_id[:8], table, record.get('id'))
        return alert

    def get(self, alert_id: str) -> Optional[Dict]:
        raw = self.redis.get(_alert_key(alert_id))
        if raw is None:
            self.redis.zrem(INDEX_KEY, alert_id)
            return None
        return json.loads(raw)

    def list_alerts(self) -> List[Dict]:
        """Live alerts, newest first. Lapsed ids are pruned from the index."""
        alerts = []
        for alert_id in self.redis.zrevrange(INDEX_KEY, 0, -1) or []:
            alert = self.get(alert_id)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def dismiss(self, alert_id: str) -> bool:
        removed = self.redis.delete(_alert_key(alert_id))
        self.redis.zrem(INDEX_KEY, alert_id)
        return bool(removed)

    def take_print(self, alert_id: str) -> Optional[Dict]:
        """Consume the print prompt. None when it already lapsed or was used.

        The read and the delete run in one MULTI transaction, so of two
        concurrent print clicks only the one whose delete removed the key wins.
        """
        key = _alert_key(alert_id)
        pipe = self.redis.pipeline()
        pipe.get(key)
        pipe.delete(key)
        pipe.zrem(INDEX_KEY, alert_id)
        raw, removed, _ = pipe.execute()
        if raw is None or not removed:
            return None
        return json.loads(raw)
