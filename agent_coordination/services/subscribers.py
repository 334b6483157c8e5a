"""Observability subscribers for coordination events."""

from __future__ import annotations

import httpx

from ..core import metrics
from ..core.config import EventSettings
from ..core.logging import get_logger
from ..schemas.events import CoordinationEvent

logger = get_logger(name=__name__)


async def log_event(event: CoordinationEvent) -> None:
    logger.info(
        "coordination_event",
        event_type=event.type,
        agent_type=event.agent_type,
        task_id=event.task_id,
        workflow_id=event.workflow_id,
        coordination_id=event.coordination_id,
    )


def record_event_metrics(event: CoordinationEvent) -> None:
    if event.type == "coordination_started":
        metrics.mark_coordination_started(pattern=event.payload.pattern, agent_count=len(event.payload.agents))
    elif event.type == "coordination_completed":
        payload = event.payload
        metrics.mark_coordination_finished(
            pattern=payload.pattern,
            status=payload.status,
            latency=payload.elapsed_time_ms / 1000,
        )
        if payload.iterations is not None:
            metrics.observe_feedback_iterations(iterations=payload.iterations, converged=bool(payload.converged))
    elif event.type == "coordination_failed":
        metrics.mark_coordination_finished(
            pattern=event.payload.pattern,
            status="failed",
            latency=event.payload.elapsed_time_ms / 1000,
        )
    elif event.type == "agent_started":
        metrics.increment_agent_event(agent=event.agent_type or "unknown", event="started")
    elif event.type == "agent_completed":
        agent = event.agent_type or "unknown"
        metrics.increment_agent_event(agent=agent, event="completed")
        metrics.observe_agent_latency(agent=agent, latency=event.payload.execution_time_ms / 1000)
        metrics.record_agent_cost(agent=agent, cost_units=event.payload.cost_units)
    elif event.type == "agent_failed":
        metrics.increment_agent_event(agent=event.agent_type or "unknown", event="failed")
    elif event.type == "quality_gate_failed":
        metrics.increment_quality_gate_failure(gate=event.payload.gate, agent=event.agent_type or "unknown")
    elif event.type == "handoff_initiated":
        metrics.increment_handoff(reason=event.payload.reason)


class WebhookEventSubscriber:
    """Posts every event as JSON to an external observability endpoint."""

    def __init__(self, url: str, *, timeout_seconds: float = 5.0, client: httpx.AsyncClient | None = None) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: EventSettings) -> "WebhookEventSubscriber | None":
        if not settings.webhook_url:
            return None
        return cls(settings.webhook_url, timeout_seconds=settings.webhook_timeout_seconds)

    async def __call__(self, event: CoordinationEvent) -> None:
        body = event.model_dump(mode="json")
        if self._client is not None:
            response = await self._client.post(self._url, json=body)
            response.raise_for_status()
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._url, json=body)
            response.raise_for_status()


__all__ = ["WebhookEventSubscriber", "log_event", "record_event_metrics"]
