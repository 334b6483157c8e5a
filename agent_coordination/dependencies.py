from __future__ import annotations

from typing import Iterable, Sequence

from .core.config import Settings, get_settings
from .orchestration.engine import CoordinationEngine
from .orchestration.events import EventBus, Subscriber
from .orchestration.quality import QualityGate
from .services.agent_invoker import AgentInvoker, HttpAgentInvoker
from .services.subscribers import WebhookEventSubscriber, log_event, record_event_metrics


def build_event_bus(settings: Settings, *, subscribers: Iterable[Subscriber] = ()) -> EventBus:
    bus = EventBus.from_settings(settings.events)
    bus.subscribe(log_event)
    if settings.observability.prometheus_enabled:
        bus.subscribe(record_event_metrics)
    webhook = WebhookEventSubscriber.from_settings(settings.events)
    if webhook is not None:
        bus.subscribe(webhook)
    for subscriber in subscribers:
        bus.subscribe(subscriber)
    return bus


def build_coordination_engine(
    settings: Settings | None = None,
    *,
    invoker: AgentInvoker | None = None,
    quality_gates: Sequence[QualityGate] = (),
    subscribers: Iterable[Subscriber] = (),
) -> CoordinationEngine:
    """Wire an engine from settings; defaults to the HTTP agent invoker."""
    settings = settings or get_settings()
    return CoordinationEngine(
        invoker or HttpAgentInvoker(settings.agents),
        settings=settings.coordination,
        events=build_event_bus(settings, subscribers=subscribers),
        quality_gates=quality_gates,
    )


__all__ = ["build_coordination_engine", "build_event_bus"]
