import json
import logging
from abc import ABC, abstractmethod
from typing import Set

import redis.asyncio as aioredis
from fastapi import WebSocket
from redis.exceptions import RedisError

from config import Settings

logger = logging.getLogger(__name__)

POSTS_EVENT = "posts"


class NotificationSink(ABC):
    """Accepts named events and delivers them to whoever is listening, best-effort."""

    @abstractmethod
    async def publish(self, event: str, payload: dict) -> None:
        ...


class WebSocketBroadcaster(NotificationSink):
    """Fans events out to the WebSocket subscribers connected to this process"""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.add(websocket)
        logger.info("Subscriber connected (%d active)", len(self.active_connections))

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.discard(websocket)
            logger.info("Subscriber disconnected (%d active)", len(self.active_connections))

    async def broadcast(self, message: dict):
        for websocket in list(self.active_connections):
            try:
                await websocket.send_json(message)
            except Exception as exc:
                logger.warning("Dropping subscriber after failed send: %s", exc)
                self.disconnect(websocket)

    async def publish(self, event: str, payload: dict) -> None:
        await self.broadcast({"event": event, "data": payload})


class RedisNotificationSink(NotificationSink):
    """
    Publishes events to a Redis channel so every worker process can relay them
    to its own subscribers through `listen`.
    """

    def __init__(self, redis_client, channel: str, broadcaster: WebSocketBroadcaster):
        self.redis = redis_client
        self.channel = channel
        self.broadcaster = broadcaster

    async def publish(self, event: str, payload: dict) -> None:
        message = json.dumps({"event": event, "data": payload})
        try:
            await self.redis.publish(self.channel, message)
        except RedisError as exc:
            logger.warning("Could not publish %s event to %s: %s", event, self.channel, exc)

    async def relay(self, raw_message: dict):
        if raw_message.get("type") != "message":
            return
        try:
            message = json.loads(raw_message["data"])
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed message on %s: %s", self.channel, exc)
            return
        await self.broadcaster.broadcast(message)

    async def listen(self):
        pubsub = self.redis.pubsub()
        try:
            await pubsub.subscribe(self.channel)
            logger.info("Relaying notifications from redis channel %s", self.channel)
            async for raw_message in pubsub.listen():
                await self.relay(raw_message)
        finally:
            await pubsub.aclose()

    async def close(self):
        await self.redis.aclose()


def build_notification_sink(settings: Settings, broadcaster: WebSocketBroadcaster) -> NotificationSink:
    if settings.notification_backend == "redis":
        redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
        return RedisNotificationSink(redis_client, settings.notification_channel, broadcaster)
    return broadcaster
