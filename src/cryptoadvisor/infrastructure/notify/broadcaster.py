# src/cryptoadvisor/infrastructure/notify/broadcaster.py
"""
Pushes freshly created notifications to connected clients over Redis pub/sub.

Delivery is best-effort: the notification row is already committed when this
runs, so a failed publish is logged and reported as False, never raised.
"""

import json
import logging
from typing import Any, Dict, Optional

import redis

log = logging.getLogger(__name__)


class RedisBroadcaster:
    def __init__(self, redis_url: Optional[str], channel: str, client: Optional[redis.Redis] = None):
        self.channel = channel
        self._redis_url = redis_url
        self._client = client

    def _get_client(self) -> Optional[redis.Redis]:
        if self._client is None and self._redis_url:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def publish(self, payload: Dict[str, Any]) -> bool:
        client = self._get_client()
        if client is None:
            log.debug("Redis not configured; skipping broadcast for notification %s.", payload.get("notification_id"))
            return False
        try:
            receivers = client.publish(self.channel, json.dumps(payload, default=str))
            log.debug("Broadcast notification %s to %s subscriber(s).", payload.get("notification_id"), receivers)
            return True
        except redis.RedisError as e:
            log.warning("Broadcast of notification %s failed: %s", payload.get("notification_id"), e)
            return False
