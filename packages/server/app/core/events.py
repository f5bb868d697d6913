"""
Domain event publishing over Redis Pub/Sub.

Events are fire-and-forget notifications for other services (welcome mails,
analytics, audit). Each event is also kept in a short Redis buffer so a
late subscriber can catch up.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import structlog
from fastapi import Request

from app.core.redis import get_redis

log = structlog.get_logger()

REDIS_PUBSUB_CHANNEL = "dh:events:pubsub"
REDIS_BUFFER_KEY = "dh:events:buffer"
BUFFER_SIZE = 500

SIGNUP_COMPLETED = "user.signup_completed"


class EventPublisher:
    """Publishes events to the Redis channel."""

    async def publish(
        self,
        event_type: str,
        payload: dict[str, Any],
        org_id: UUID | None = None,
    ) -> dict[str, Any]:
        event_data = {
            "id": str(uuid4()),
            "type": event_type,
            "org_id": str(org_id) if org_id else None,
            "payload": payload,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event_json = json.dumps(event_data)

        redis = await get_redis()
        async with redis.pipeline() as pipe:
            pipe.lpush(REDIS_BUFFER_KEY, event_json)
            pipe.ltrim(REDIS_BUFFER_KEY, 0, BUFFER_SIZE - 1)
            pipe.expire(REDIS_BUFFER_KEY, 86400)  # 24h retention
            await pipe.execute()

        await redis.publish(REDIS_PUBSUB_CHANNEL, event_json)
        log.info("event.published", type=event_type, event_id=event_data["id"])
        return event_data


def get_event_publisher(request: Request) -> EventPublisher:
    """FastAPI dependency: the app's event publisher."""
    return request.app.state.events
