"""
Order change feed over Redis Pub/Sub
Services publish after each committed write to the order_events channel;
every worker's websocket sessions read that channel through their own
subscription, so a change made on one worker reaches feeds held by another.

Pub/Sub is fire-and-forget: a subscriber that is not connected when an
event is published never sees it.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, FrozenSet, List

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from foodhub.config import EVENT_QUEUE_SIZE, REDIS_URL, ORDER_EVENTS_CHANNEL

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"


@dataclass
class OrderEvent:
    """Row change on the orders table with the new row state"""
    event_type: str
    order: dict
    old_status: Optional[str] = None
    table: str = "orders"
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def session_id(self) -> Optional[str]:
        return self.order.get("session_id")

    @property
    def status(self) -> Optional[str]:
        return self.order.get("status")

    def to_message(self) -> dict:
        return {
            "event_type": self.event_type,
            "table": self.table,
            "old_status": self.old_status,
            "new": self.order,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_message(cls, message: dict) -> "OrderEvent":
        return cls(
            event_type=message["event_type"],
            order=message["new"],
            old_status=message.get("old_status"),
            table=message.get("table", "orders"),
            timestamp=datetime.fromisoformat(message["timestamp"]),
        )


@dataclass(eq=False)
class Subscription:
    """One feed reader: its filter, its pubsub connection and a bounded buffer of pending events"""
    queue: asyncio.Queue
    session_id: Optional[str] = None
    statuses: Optional[FrozenSet[str]] = None
    pubsub: Optional[PubSub] = None
    reader: Optional[asyncio.Task] = None
    dropped: int = 0

    def matches(self, event: OrderEvent) -> bool:
        if self.session_id is not None and event.session_id != self.session_id:
            return False
        if self.statuses is not None and event.status not in self.statuses:
            return False
        return True

    def deliver(self, event: OrderEvent) -> None:
        if self.queue.full():
            # slow consumer: oldest event goes
            self.queue.get_nowait()
            self.dropped += 1
            logger.warning(
                f"Feed subscriber (session={self.session_id}) is full; "
                f"dropped oldest event ({self.dropped} dropped so far)"
            )
        self.queue.put_nowait(event)

    def handle_message(self, data: str) -> bool:
        """Decode one channel message and buffer it if it passes the filter"""
        try:
            event = OrderEvent.from_message(json.loads(data))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring malformed order event: {e}")
            return False
        if not self.matches(event):
            return False
        self.deliver(event)
        return True

    async def read(self) -> None:
        """Pump the pubsub connection into the buffer until cancelled"""
        while True:
            try:
                message = await self.pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except RedisError as e:
                logger.error(f"Feed subscriber (session={self.session_id}) lost its Redis connection: {e}")
                return
            if message and message["type"] == "message":
                self.handle_message(message["data"])
            else:
                await asyncio.sleep(0.05)

    async def get(self) -> OrderEvent:
        return await self.queue.get()

    def get_nowait(self) -> OrderEvent:
        return self.queue.get_nowait()


class OrderEventBus:
    """Publishes order events to Redis and hands out filtered subscriptions"""

    def __init__(
        self,
        redis_url: str = REDIS_URL,
        channel: str = ORDER_EVENTS_CHANNEL,
        queue_size: int = EVENT_QUEUE_SIZE,
        redis: Optional[aioredis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.channel = channel
        self.queue_size = queue_size
        self.redis = redis
        self._subscriptions: List[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        """Feed readers open on this worker"""
        return len(self._subscriptions)

    def connect(self) -> aioredis.Redis:
        if self.redis is None:
            self.redis = aioredis.from_url(self.redis_url, decode_responses=True)
            logger.info(f"Order feed connected to {self.redis_url} (channel {self.channel})")
        return self.redis

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            await self.unsubscribe(subscription)
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    async def publish(self, event: OrderEvent) -> int:
        """
        Publish a committed change; returns how many readers Redis routed it to.

        The write it describes is already durable, so a Redis failure is
        logged and reported as zero receivers rather than raised.
        """
        if self.redis is None:
            logger.debug(f"Order feed not connected; {event.event_type} not published")
            return 0
        try:
            return await self.redis.publish(self.channel, json.dumps(event.to_message(), default=str))
        except RedisError as e:
            logger.error(f"Failed to publish {event.event_type} for order {event.order.get('tracking_code')}: {e}")
            return 0

    async def subscribe(self, session_id: Optional[str] = None, statuses=None) -> Subscription:
        redis = self.connect()
        pubsub = redis.pubsub()
        await pubsub.subscribe(self.channel)

        subscription = Subscription(
            queue=asyncio.Queue(maxsize=self.queue_size),
            session_id=session_id,
            statuses=frozenset(statuses) if statuses is not None else None,
            pubsub=pubsub,
        )
        subscription.reader = asyncio.create_task(subscription.read())
        self._subscriptions.append(subscription)
        logger.info(f"Feed subscriber added (session={session_id}, statuses={statuses}); total {self.subscriber_count}")
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        if subscription not in self._subscriptions:
            return
        self._subscriptions.remove(subscription)

        if subscription.reader is not None:
            subscription.reader.cancel()
            try:
                await subscription.reader
            except asyncio.CancelledError:
                pass
        try:
            await subscription.pubsub.unsubscribe(self.channel)
            await subscription.pubsub.aclose()
        except RedisError as e:
            logger.warning(f"Error closing feed subscription: {e}")
        logger.info(f"Feed subscriber removed; total {self.subscriber_count}")


event_bus = OrderEventBus()
