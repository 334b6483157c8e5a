from __future__ import annotations

import asyncio
import json
import threading

import httpx
import pytest

from agent_coordination.core.config import EventSettings
from agent_coordination.orchestration.events import EventBus
from agent_coordination.schemas.events import (
    AgentFailedEvent,
    CoordinationEventAdapter,
    FailurePayload,
    HandoffInitiatedEvent,
    HandoffInitiatedPayload,
)
from agent_coordination.services.subscribers import WebhookEventSubscriber
from tests.helpers.stubs import RecordingSubscriber


def _event() -> AgentFailedEvent:
    return AgentFailedEvent(
        agent_type="research",
        task_id="task-1",
        workflow_id="wf-1",
        coordination_id="coord-1",
        payload=FailurePayload(kind="agent_invocation", error="boom"),
    )


@pytest.mark.asyncio
async def test_publish_reaches_sync_and_async_subscribers() -> None:
    received: list[str] = []
    recorder = RecordingSubscriber()
    bus = EventBus()
    bus.subscribe(recorder)
    bus.subscribe(lambda event: received.append(event.type))

    await bus.publish(_event())
    await bus.drain()

    assert recorder.types == ["agent_failed"]
    assert received == ["agent_failed"]


@pytest.mark.asyncio
async def test_publish_returns_before_subscribers_finish() -> None:
    release = asyncio.Event()
    recorder = RecordingSubscriber()

    async def gated(event) -> None:
        await release.wait()

    bus = EventBus(subscriber_timeout_seconds=5)
    bus.subscribe(gated)
    bus.subscribe(recorder)

    await asyncio.wait_for(bus.publish(_event()), timeout=0.5)
    await asyncio.wait_for(bus.publish(_event()), timeout=0.5)
    await asyncio.sleep(0.05)

    assert recorder.types == ["agent_failed"]
    assert bus.pending == 1

    release.set()
    await asyncio.wait_for(bus.drain(), timeout=1)

    assert recorder.types == ["agent_failed", "agent_failed"]
    assert bus.pending == 0


@pytest.mark.asyncio
async def test_sync_subscribers_run_off_the_event_loop() -> None:
    threads: list[int] = []
    bus = EventBus()
    bus.subscribe(lambda event: threads.append(threading.get_ident()))

    await bus.publish(_event())
    await bus.drain()

    assert threads and threads[0] != threading.get_ident()


@pytest.mark.asyncio
async def test_failing_and_slow_subscribers_are_isolated() -> None:
    recorder = RecordingSubscriber()

    def broken(event) -> None:
        raise RuntimeError("down")

    async def stuck(event) -> None:
        await asyncio.sleep(5)

    bus = EventBus(subscriber_timeout_seconds=0.01)
    bus.subscribe(broken)
    bus.subscribe(stuck)
    bus.subscribe(recorder)

    await bus.publish(_event())
    await asyncio.wait_for(bus.drain(), timeout=1)

    assert recorder.types == ["agent_failed"]


@pytest.mark.asyncio
async def test_disabled_bus_drops_events() -> None:
    recorder = RecordingSubscriber()
    bus = EventBus.from_settings(EventSettings(enabled=False))
    bus.subscribe(recorder)

    await bus.publish(_event())
    await bus.drain()

    assert recorder.events == []
    assert bus.pending == 0


def test_subscribe_is_idempotent_and_unsubscribe_removes() -> None:
    recorder = RecordingSubscriber()
    bus = EventBus()

    bus.subscribe(recorder)
    bus.subscribe(recorder)
    assert bus.subscribers == (recorder,)

    bus.unsubscribe(recorder)
    assert bus.subscribers == ()


def test_event_adapter_selects_event_by_type() -> None:
    raw = {
        "type": "handoff_initiated",
        "agent_type": "research",
        "task_id": "task-1",
        "workflow_id": "wf-1",
        "payload": {"to_agent": "finance", "reason": "optimization"},
    }

    event = CoordinationEventAdapter.validate_python(raw)

    assert isinstance(event, HandoffInitiatedEvent)
    assert event.payload == HandoffInitiatedPayload(to_agent="finance", reason="optimization")
    assert event.timestamp.tzinfo is not None


@pytest.mark.asyncio
async def test_webhook_subscriber_posts_event_json() -> None:
    captured: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(202)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    webhook = WebhookEventSubscriber("http://observability.test/events", client=client)

    await webhook(_event())

    assert captured[0]["type"] == "agent_failed"
    assert captured[0]["payload"] == {"kind": "agent_invocation", "error": "boom"}
    await client.aclose()


def test_webhook_subscriber_requires_url() -> None:
    assert WebhookEventSubscriber.from_settings(EventSettings()) is None
    configured = WebhookEventSubscriber.from_settings(EventSettings(webhook_url="http://observability.test/events"))
    assert isinstance(configured, WebhookEventSubscriber)
