import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any

from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from services.common import BusMessage, KafkaConsumerStub, ServiceSettings, dispose_engines, lifespan_session
from services.payment_status_service.app.dependencies import get_event_publisher
from services.payment_status_service.app.events import PaymentStatusEventPublisher
from services.payment_status_service.app.main import create_app
from services.payment_status_service.app.repository import PaymentStatusRepository


def _run(coro):
    return asyncio.run(coro)


def _prepare_app(tmp_path) -> FastAPI:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'payment_status.db'}"
    settings = ServiceSettings(
        app_name="Payment Status Service Test",
        enable_metrics=False,
        enable_tracing=False,
        database_url=database_url,
    )
    return create_app(settings)


def _connection_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "paymentIntentId": "pi_123",
        "connectionId": "conn-1",
        "customerId": "cus_1",
        "customerEmail": "buyer@example.com",
    }
    payload.update(overrides)
    return payload


def _event_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "paymentIntentId": "pi_123",
        "status": "processing",
        "amount": 2599,
        "currency": "usd",
        "customerId": "cus_1",
        "metadata": {"orderId": "ord_9"},
        "createdAt": "2024-06-01T09:00:00Z",
    }
    payload.update(overrides)
    return payload


def test_register_get_and_close_connection(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                create_resp = await client.post("/connections", json=_connection_payload())
                assert create_resp.status_code == 201
                created = create_resp.json()
                assert created["paymentIntentId"] == "pi_123"
                assert created["connectionId"] == "conn-1"
                assert created["status"] == "active"
                assert created["id"]
                assert created["createdAt"] is not None

                duplicate = await client.post("/connections", json=_connection_payload(paymentIntentId="pi_other"))
                assert duplicate.status_code == 409

                get_resp = await client.get("/connections/conn-1")
                assert get_resp.status_code == 200
                assert get_resp.json()["id"] == created["id"]

                close_resp = await client.post("/connections/conn-1/close")
                assert close_resp.status_code == 200
                closed = close_resp.json()
                assert closed["status"] == "closed"
                assert closed["updatedAt"] >= created["updatedAt"]

                missing = await client.get("/connections/unknown")
                assert missing.status_code == 404
                assert missing.json()["detail"] == "Connection not found"

                missing_close = await client.post("/connections/unknown/close")
                assert missing_close.status_code == 404

    _run(body())
    _run(dispose_engines())


def test_list_connections_and_filters(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                await client.post("/connections", json=_connection_payload())
                await client.post("/connections", json=_connection_payload(connectionId="conn-2"))
                await client.post(
                    "/connections",
                    json=_connection_payload(connectionId="conn-3", paymentIntentId="pi_456"),
                )
                patch_resp = await client.patch("/connections/conn-2/status", json={"status": " closed "})
                assert patch_resp.status_code == 200
                assert patch_resp.json()["status"] == "closed"

                list_resp = await client.get("/connections", params={"paymentIntentId": "pi_123"})
                assert list_resp.status_code == 200
                data = list_resp.json()
                assert data["total"] == 2
                assert {item["connectionId"] for item in data["items"]} == {"conn-1", "conn-2"}

                active_resp = await client.get("/connections", params={"status": "active"})
                assert active_resp.json()["total"] == 2
                assert {item["connectionId"] for item in active_resp.json()["items"]} == {"conn-1", "conn-3"}

                paged = await client.get("/connections", params={"limit": 1})
                assert paged.json()["total"] == 3
                assert len(paged.json()["items"]) == 1

    _run(body())
    _run(dispose_engines())


def test_connection_payload_validation(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                blank = await client.post("/connections", json=_connection_payload(connectionId="   "))
                assert blank.status_code == 422

                missing = await client.post("/connections", json={"connectionId": "conn-9"})
                assert missing.status_code == 422

                stripped = await client.post(
                    "/connections",
                    json=_connection_payload(connectionId="  conn-9  ", customerEmail=None),
                )
                assert stripped.status_code == 201
                assert stripped.json()["connectionId"] == "conn-9"
                assert stripped.json()["customerEmail"] is None

    _run(body())
    _run(dispose_engines())


def test_record_payment_events_and_status(tmp_path) -> None:
    app = _prepare_app(tmp_path)
    received: list[BusMessage] = []

    async def handler(topic: str, message: BusMessage) -> None:
        received.append(message)

    async def body() -> None:
        consumer = KafkaConsumerStub(["payment.status.updated.v1"], handler)
        await consumer.start()
        try:
            async with lifespan(app):
                transport = ASGITransport(app=app)
                async with AsyncClient(transport=transport, base_url="http://test") as client:
                    await client.post("/connections", json=_connection_payload())

                    no_status = await client.get("/payment-intents/pi_123/status")
                    assert no_status.status_code == 404

                    succeeded = await client.post(
                        "/payment-events",
                        json=_event_payload(status="succeeded", createdAt="2024-06-01T09:00:30Z"),
                    )
                    assert succeeded.status_code == 201
                    created = await client.post(
                        "/payment-events",
                        json=_event_payload(status="created", createdAt="2024-06-01T09:00:00Z"),
                    )
                    assert created.status_code == 201
                    body_json = created.json()
                    assert body_json["amount"] == 2599
                    assert body_json["currency"] == "usd"
                    assert body_json["metadata"] == {"orderId": "ord_9"}
                    assert body_json["createdAt"].startswith("2024-06-01T09:00:00")

                    duplicate = await client.post(
                        "/payment-events",
                        json=_event_payload(status="created", createdAt="2024-06-01T09:00:00Z"),
                    )
                    assert duplicate.status_code == 409

                    await client.post("/payment-events", json=_event_payload(paymentIntentId="pi_456"))

                    history = await client.get("/payment-intents/pi_123/events")
                    assert history.status_code == 200
                    assert [item["status"] for item in history.json()] == ["created", "succeeded"]

                    listing = await client.get("/payment-events", params={"status": "succeeded"})
                    assert listing.json()["total"] == 1
                    assert listing.json()["items"][0]["paymentIntentId"] == "pi_123"

                    status_resp = await client.get("/payment-intents/pi_123/status")
                    assert status_resp.status_code == 200
                    snapshot = status_resp.json()
                    assert snapshot["paymentIntentId"] == "pi_123"
                    assert snapshot["status"] == "succeeded"
                    assert snapshot["eventCount"] == 2
                    assert snapshot["activeConnections"] == 1
        finally:
            await consumer.stop()

    _run(body())
    _run(dispose_engines())

    assert [message.value["status"] for message in received] == ["succeeded", "created", "processing"]
    assert [message.key for message in received] == ["pi_123", "pi_123", "pi_456"]
    assert all(message.value["type"] == "payment_status_update" for message in received)


def test_payment_event_validation(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                negative = await client.post("/payment-events", json=_event_payload(amount=-1))
                assert negative.status_code == 422

                bad_currency = await client.post("/payment-events", json=_event_payload(currency="dollars"))
                assert bad_currency.status_code == 422

                minimal = await client.post(
                    "/payment-events",
                    json={"paymentIntentId": "pi_789", "status": "created"},
                )
                assert minimal.status_code == 201
                data = minimal.json()
                assert data["amount"] is None
                assert data["currency"] is None
                assert data["createdAt"] is not None

    _run(body())
    _run(dispose_engines())



def test_payment_intent_history_returns_every_event(tmp_path) -> None:
    app = _prepare_app(tmp_path)
    base = datetime(2024, 6, 1, 9, 0, 0)
    event_total = 1001

    async def body() -> None:
        async with lifespan(app):
            async with lifespan_session(app.state.session_factory) as session:
                repository = PaymentStatusRepository(session)
                for index in range(event_total):
                    await repository.add_payment_event(
                        payment_intent_id="pi_busy",
                        status="processing",
                        amount=index,
                        currency="usd",
                        customer_id=None,
                        metadata=None,
                        created_at=base + timedelta(seconds=index),
                    )

            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                history = await client.get("/payment-intents/pi_busy/events")
                assert history.status_code == 200
                items = history.json()
                assert len(items) == event_total
                assert [item["amount"] for item in items] == list(range(event_total))

                status_resp = await client.get("/payment-intents/pi_busy/status")
                assert status_resp.json()["eventCount"] == event_total

    _run(body())
    _run(dispose_engines())


def test_events_recorded_back_to_back_replay_in_order(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                for status in ("processing", "payment_failed"):
                    resp = await client.post(
                        "/payment-events",
                        json={"paymentIntentId": "pi_fast", "status": status},
                    )
                    assert resp.status_code == 201

                history = await client.get("/payment-intents/pi_fast/events")
                assert [item["status"] for item in history.json()] == ["processing", "payment_failed"]

                status_resp = await client.get("/payment-intents/pi_fast/status")
                assert status_resp.json()["status"] == "payment_failed"

    _run(body())
    _run(dispose_engines())


def test_status_case_variants_are_separate_events(tmp_path) -> None:
    app = _prepare_app(tmp_path)

    async def body() -> None:
        async with lifespan(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                first = await client.post("/payment-events", json=_event_payload(status="Succeeded"))
                second = await client.post("/payment-events", json=_event_payload(status="succeeded"))
                repeat = await client.post("/payment-events", json=_event_payload(status="succeeded"))

                assert first.status_code == 201
                assert first.json()["status"] == "Succeeded"
                assert second.status_code == 201
                assert second.json()["status"] == "succeeded"
                assert repeat.status_code == 409

    _run(body())
    _run(dispose_engines())


def test_event_publisher_dependency_follows_lifespan(tmp_path) -> None:
    app = _prepare_app(tmp_path)
    request = Request({"type": "http", "app": app})

    async def body() -> None:
        async with lifespan(app):
            publisher = get_event_publisher(request)
            assert isinstance(publisher, PaymentStatusEventPublisher)
        assert get_event_publisher(request) is None

    _run(body())
    _run(dispose_engines())


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with app.router.lifespan_context(app):
        yield
