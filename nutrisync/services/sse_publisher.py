"""
Mirrors pipeline state events onto Redis pub/sub.

Lets processes other than the one running the analysis follow progress.
"""
import json
import logging

import redis

from nutrisync.config import settings
from nutrisync.models.pipeline_state import PipelineState

logger = logging.getLogger(__name__)

STATE_CHANNEL = "nutrisync:pipeline_state"


class SSEPublisher:
    """Publishes state events via Redis pub/sub."""

    def __init__(self, redis_client=None, channel: str = STATE_CHANNEL):
        self.redis = redis_client or redis.from_url(settings.redis_url)
        self.channel = channel

    def _publish(self, event_type: str, data: dict):
        """
        Publish an SSE event to Redis.

        Args:
            event_type: Event type (state)
            data: Event data as dict
        """
        message = json.dumps({
            "event": event_type,
            "data": data
        })
        self.redis.publish(self.channel, message)

    def publish_state(self, state: PipelineState):
        """Publish a state change. Redis failures are logged, not raised."""
        try:
            self._publish("state", state.model_dump(mode="json"))
        except redis.RedisError as e:
            logger.warning("Could not mirror pipeline state to Redis: %s", e)

    def close(self):
        """Close Redis connection."""
        self.redis.close()
