"""
Shared client instances.

redis.from_url() connects lazily, so importing this module is safe even when
Redis is not running (tests, one-off scripts).
"""
import logging
import redis

from clinicflow.config import REDIS_URL

logger = logging.getLogger('clinicflow.extensions')

redis_client = redis.from_url(REDIS_URL, decode_responses=True)
