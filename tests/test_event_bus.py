"""
Tests for the order change feed
"""

import asyncio
import json

import fakeredis
import pytest
from starlette.websockets import WebSocketDisconnect

from foodhub.services.event_bus import OrderEventBus, OrderEvent, Subscription, INSERT, UPDATE


def make_event(session_id="s-1", status="pending", event_type=UPDATE, old_status=None):
    return OrderEvent(
        event_type=event_type,
        order={"id": 1, "session_id": session_id, "status": status, "tracking_code": "FPI-EVT001"},
        old_status=old_status,
    )


def worker_bus(redis_server, **kwargs):
    """A bus as one API worker would hold it, sharing the Redis server with the others"""
    return OrderEventBus(redis=fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True), **kwargs)


class TestOrderEventBus:
    """Test cases for Redis fan-out"""

    def test_event_reaches_subscriber_on_another_worker(self, redis_server):
        async def scenario():
            worker_a = worker_bus(redis_server)
            worker_b = worker_bus(redis_server)
            feed = await worker_b.subscribe(session_id="s-1")

            assert await worker_a.publish(make_event(session_id="s-2")) == 1
            assert await worker_a.publish(make_event(session_id="s-1", status="confirmed")) == 1

            event = await asyncio.wait_for(feed.get(), timeout=5)
            assert event.session_id == "s-1"
            assert event.status == "confirmed"
            assert feed.queue.empty()

            await worker_a.close()
            await worker_b.close()

        asyncio.run(scenario())

    def test_status_filter(self, redis_server):
        async def scenario():
            bus = worker_bus(redis_server)
            kitchen = await bus.subscribe(statuses=["confirmed", "preparing"])

            await bus.publish(make_event(status="pending"))
            await bus.publish(make_event(status="preparing", old_status="confirmed"))

            event = await asyncio.wait_for(kitchen.get(), timeout=5)
            assert event.status == "preparing"
            assert event.old_status == "confirmed"
            assert kitchen.queue.empty()
            await bus.close()

        asyncio.run(scenario())

    def test_unsubscribe(self, redis_server):
        async def scenario():
            bus = worker_bus(redis_server)
            subscription = await bus.subscribe()
            assert bus.subscriber_count == 1

            await bus.unsubscribe(subscription)
            await bus.unsubscribe(subscription)
            assert bus.subscriber_count == 0
            assert subscription.reader.done()
            assert await bus.publish(make_event()) == 0
            await bus.close()

        asyncio.run(scenario())

    def test_close_releases_subscribers(self, redis_server):
        async def scenario():
            bus = worker_bus(redis_server)
            await bus.subscribe()
            await bus.subscribe(session_id="s-1")
            await bus.close()
            assert bus.subscriber_count == 0
            assert bus.redis is None

        asyncio.run(scenario())

    def test_publish_without_connection(self):
        async def scenario():
            assert await OrderEventBus().publish(make_event()) == 0

        asyncio.run(scenario())

    def test_publish_when_redis_is_down(self, redis_server):
        async def scenario():
            bus = worker_bus(redis_server)
            redis_server.connected = False
            assert await bus.publish(make_event()) == 0

        asyncio.run(scenario())

    def test_message_shape(self):
        message = make_event(event_type=UPDATE, status="confirmed", old_status="payment_received").to_message()
        assert message["event_type"] == "UPDATE"
        assert message["table"] == "orders"
        assert message["old_status"] == "payment_received"
        assert message["new"]["status"] == "confirmed"
        assert "timestamp" in message

        decoded = OrderEvent.from_message(json.loads(json.dumps(message)))
        assert decoded.status == "confirmed"
        assert decoded.old_status == "payment_received"


class TestSubscriptionBuffer:
    """Buffering and decoding on a single subscription"""

    def test_full_queue_drops_oldest(self):
        async def scenario():
            slow = Subscription(queue=asyncio.Queue(maxsize=2))
            for status in ["pending", "payment_received", "confirmed"]:
                slow.deliver(make_event(status=status))

            assert slow.dropped == 1
            assert [slow.get_nowait().status, slow.get_nowait().status] == ["payment_received", "confirmed"]

        asyncio.run(scenario())

    def test_malformed_messages_ignored(self):
        async def scenario():
            subscription = Subscription(queue=asyncio.Queue(maxsize=10))
            assert subscription.handle_message("not json") is False
            assert subscription.handle_message(json.dumps({"event_type": "UPDATE"})) is False
            assert subscription.handle_message(json.dumps(make_event().to_message())) is True
            assert subscription.queue.qsize() == 1

        asyncio.run(scenario())

    def test_session_filter(self):
        async def scenario():
            subscription = Subscription(queue=asyncio.Queue(maxsize=10), session_id="s-1")
            assert subscription.handle_message(json.dumps(make_event(session_id="s-2").to_message())) is False
            assert subscription.handle_message(json.dumps(make_event(session_id="s-1").to_message())) is True

        asyncio.run(scenario())


class TestServicePublishing:
    """Committed writes publish to the order_events channel"""

    @pytest.fixture
    def channel(self, redis_server):
        pubsub = fakeredis.FakeRedis(server=redis_server, decode_responses=True).pubsub()
        pubsub.subscribe("order_events")
        yield pubsub
        pubsub.close()

    @staticmethod
    def published(pubsub):
        messages = []
        while True:
            message = pubsub.get_message(timeout=0.2)
            if message is None:
                return messages
            if message["type"] == "message":
                messages.append(json.loads(message["data"]))

    def test_create_and_transition_publish(self, client, order_payload, admin_headers, channel):
        order = client.post("/api/v1/orders/", json=order_payload()).json()
        client.post(f"/api/v1/orders/{order['id']}/status", json={"status": "payment_received"}, headers=admin_headers)

        inserted, updated = self.published(channel)
        assert inserted["event_type"] == INSERT
        assert inserted["new"]["tracking_code"] == "FPI-AB12CD"
        assert inserted["old_status"] is None

        assert updated["event_type"] == UPDATE
        assert updated["old_status"] == "pending"
        assert updated["new"]["status"] == "payment_received"

    def test_failed_write_publishes_nothing(self, client, order_payload, channel):
        client.post("/api/v1/orders/", json=order_payload())
        client.post("/api/v1/orders/", json=order_payload(session_id="other"))

        assert len(self.published(channel)) == 1

    def test_payment_publishes_update(self, client, order_payload, session_headers, channel):
        order = client.post("/api/v1/orders/", json=order_payload()).json()
        client.post(
            f"/api/v1/orders/{order['id']}/payments",
            json={"amount": "1850", "reference": "TRF-0042"},
            headers=session_headers
        )

        _, payment = self.published(channel)
        assert payment["event_type"] == UPDATE
        assert payment["new"]["payment_status"] == "processing"
        assert payment["new"]["status"] == "pending"

    def test_order_saved_when_redis_is_down(self, client, db, order_payload, redis_server):
        redis_server.connected = False
        response = client.post("/api/v1/orders/", json=order_payload())
        redis_server.connected = True

        assert response.status_code == 201
        tracked = client.get("/api/v1/orders/track/FPI-AB12CD", headers={"X-Session-Id": "session-abc"})
        assert tracked.status_code == 200


class TestOrderFeedWebSocket:
    """Test cases for the websocket feed"""

    def test_session_feed_receives_own_orders(self, client, order_payload):
        with client.websocket_connect("/api/v1/orders/feed?session_id=session-abc") as websocket:
            client.post("/api/v1/orders/", json=order_payload(session_id="someone-else", tracking_code="FPI-OTHER1"))
            client.post("/api/v1/orders/", json=order_payload())

            message = websocket.receive_json()
            assert message["event_type"] == "INSERT"
            assert message["new"]["tracking_code"] == "FPI-AB12CD"
            assert message["new"]["session_id"] == "session-abc"

    def test_admin_feed(self, client, order_payload, admin_headers):
        token = admin_headers["Authorization"].split(" ", 1)[1]
        with client.websocket_connect(f"/api/v1/orders/feed?token={token}") as websocket:
            order = client.post("/api/v1/orders/", json=order_payload()).json()
            client.post(
                f"/api/v1/orders/{order['id']}/status",
                json={"status": "cancelled"},
                headers=admin_headers
            )

            assert websocket.receive_json()["event_type"] == "INSERT"
            update = websocket.receive_json()
            assert update["event_type"] == "UPDATE"
            assert update["old_status"] == "pending"
            assert update["new"]["status"] == "cancelled"

    def test_open_feed_counts_as_subscriber(self, client):
        assert client.get("/health").json()["feed_subscribers"] == 0
        with client.websocket_connect("/api/v1/orders/feed?session_id=session-abc"):
            assert client.get("/health").json()["feed_subscribers"] == 1

    def test_anonymous_feed_rejected(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/api/v1/orders/feed"):
                pass

    def test_bad_token_rejected(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/api/v1/orders/feed?token=garbage"):
                pass
