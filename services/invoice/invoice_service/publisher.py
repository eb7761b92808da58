"""
Invoice Service — イベント発行 (Redis Pub/Sub)

Inventory Service と同じ構造。発行に失敗してもリクエストは失敗させない
(請求書の状態はメモリ上で既に変わっている)。
"""

import json
import logging

import redis.asyncio as aioredis
from pydantic import BaseModel
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

CHANNEL = "invoice_events"


class EventPublisher:
    def __init__(self, redis: aioredis.Redis | None = None) -> None:
        self.redis = redis

    async def publish(self, event: BaseModel) -> None:
        event_type = type(event).__name__
        message = json.dumps(
            {"event_type": event_type, "data": event.model_dump(mode="json")},
            default=str,
        )
        if self.redis is None:
            logger.debug("Event %s (no redis): %s", event_type, message)
            return
        try:
            await self.redis.publish(CHANNEL, message)
        except RedisError:
            logger.exception("Failed to publish %s", event_type)
