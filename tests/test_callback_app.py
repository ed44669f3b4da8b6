from __future__ import annotations

import hashlib
import hmac

import httpx
import pytest
from fastapi.testclient import TestClient

from adapters.callback_app import create_app
from adapters.discovery import ResourceDiscoverer
from adapters.subscription_client import SubscriptionClient
from core.domain.errors import SubscriptionInitiationError
from core.domain.models import Acknowledgement, SubscriberConfig, TopicReference
from core.services.subscription_orchestrator import SubscriptionOrchestrator

HUB = "https://hub.example/"
TOPIC = "https://example.com/topic"
CALLBACK = "https://subscriber.example/websub/callback"


def _orchestrator(settings, status: int = 202, calls: list | None = None) -> SubscriptionOrchestrator:
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(status)

    transport = httpx.MockTransport(handler)
    return SubscriptionOrchestrator(
        settings,
        discoverer=ResourceDiscoverer(settings, transport=transport),
        client=SubscriptionClient(settings, transport=transport),
    )


def test_intent_verification_roundtrip(settings, subscriber):
    app = create_app(settings, subscriber, SubscriberConfig(), subscribe_on_startup=False)

    with TestClient(app) as client:
        response = client.get(
            "/websub/callback",
            params={"hub.mode": "subscribe", "hub.topic": "T", "hub.challenge": "abc123"},
        )

    assert response.status_code == 200
    assert response.text == "abc123"


def test_signed_notification(settings, make_subscriber):
    service = make_subscriber(result=Acknowledgement(body={"status": "ok"}, headers={"X-Multi": ["a", "b"]}))
    app = create_app(settings, service, SubscriberConfig(secret="s3cret"), subscribe_on_startup=False)
    body = b"hello"
    signature = hmac.new(b"s3cret", body, hashlib.sha1).hexdigest()

    with TestClient(app) as client:
        accepted = client.post("/websub/callback", content=body, headers={"X-Hub-Signature": f"sha1={signature}"})
        flipped = signature[:-1] + ("0" if signature[-1] != "0" else "1")
        rejected = client.post("/websub/callback", content=body, headers={"X-Hub-Signature": f"sha1={flipped}"})

    assert accepted.status_code == 202
    assert accepted.text == "status=ok"
    assert accepted.headers["content-type"] == "application/x-www-form-urlencoded"
    assert accepted.headers.get_list("x-multi") == ["a", "b"]
    assert rejected.status_code == 404
    assert len(service.notifications) == 1


def test_startup_subscribes_and_shutdown_unsubscribes(settings, subscriber):
    calls: list[httpx.Request] = []
    config = SubscriberConfig(
        target=TopicReference(hub_url=HUB, topic_url=TOPIC),
        callback_url=CALLBACK,
        unsubscribe_on_shutdown=True,
    )
    app = create_app(settings, subscriber, config, orchestrator=_orchestrator(settings, calls=calls))

    with TestClient(app) as client:
        assert app.state.subscription is not None
        assert app.state.subscription.pending is True
        client.get("/websub/callback", params={"hub.mode": "subscribe", "hub.topic": TOPIC, "hub.challenge": "x"})

    modes = [httpx.QueryParams(r.content.decode())["hub.mode"] for r in calls]
    assert modes == ["subscribe", "unsubscribe"]


def test_startup_failure_is_fatal_by_default(settings, subscriber):
    config = SubscriberConfig(target=TopicReference(hub_url=HUB, topic_url=TOPIC), callback_url=CALLBACK)
    app = create_app(settings, subscriber, config, orchestrator=_orchestrator(settings, status=500))

    with pytest.raises(SubscriptionInitiationError):
        with TestClient(app):
            pass


def test_startup_failure_can_degrade(settings, subscriber):
    settings = settings.model_copy(update={"fail_on_subscription_error": False})
    config = SubscriberConfig(target=TopicReference(hub_url=HUB, topic_url=TOPIC), callback_url=CALLBACK)
    app = create_app(settings, subscriber, config, orchestrator=_orchestrator(settings, status=500))

    with TestClient(app) as client:
        assert app.state.subscription is None
        response = client.get("/websub/callback", params={"hub.mode": "subscribe", "hub.topic": TOPIC, "hub.challenge": "ok"})

    assert response.text == "ok"
