import os
import redis
from .events import Event


class PubSubClient:
    """Publish side of the Redis event channels."""

    GLOBAL_CHANNEL = "global:announcements"
    EVENT_LOG_LENGTH = 1000

    def __init__(self, redis_url: str = None, redis_client: redis.Redis = None):
        self.redis_url = redis_url or os.getenv('REDIS_URL', 'redis://localhost:6379')
        self.redis = redis_client or redis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )

    def publish(self, channel: str, event: Event) -> int:
        return self.redis.publish(channel, event.to_json())

    def publish_tournament_event(self, tournament_id: str, event: Event):
        channel = f"tournament:{tournament_id}:events"
        self.publish(channel, event)

        self.redis.publish(self.GLOBAL_CHANNEL, event.to_json())

    def publish_user_notification(self, user_id: str, event: Event):
        channel = f"user:{user_id}:notifications"
        self.publish(channel, event)

    def log_event(self, tournament_id: str, event: Event):
        key = f"tournament:{tournament_id}:event_log"
        self.redis.lpush(key, event.to_json())
        self.redis.ltrim(key, 0, self.EVENT_LOG_LENGTH - 1)

    def ping(self) -> bool:
        return bool(self.redis.ping())
