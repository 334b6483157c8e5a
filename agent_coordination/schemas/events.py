"""Typed lifecycle events emitted by the coordination engine."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _EventBase(BaseModel):
    agent_type: str | None = None
    task_id: str
    workflow_id: str
    coordination_id: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)


class CoordinationStartedPayload(BaseModel):
    pattern: str
    agents: list[str] = Field(default_factory=list)


class AgentStartedPayload(BaseModel):
    task_type: str
    input_fields: list[str] = Field(default_factory=list)
    iteration: int | None = None


class AgentCompletedPayload(BaseModel):
    confidence_score: float
    cost_units: float
    execution_time_ms: float


class FailurePayload(BaseModel):
    kind: str
    error: str


class HandoffInitiatedPayload(BaseModel):
    to_agent: str
    reason: str


class QualityGateFailedPayload(BaseModel):
    gate: str
    blocking: bool


class CoordinationCompletedPayload(BaseModel):
    pattern: str
    status: str
    elapsed_time_ms: float
    total_cost: float
    average_confidence: float
    agent_count: int
    error_count: int
    iterations: int | None = None
    converged: bool | None = None


class CoordinationFailedPayload(BaseModel):
    pattern: str
    kind: str
    error: str
    elapsed_time_ms: float


class CoordinationStartedEvent(_EventBase):
    type: Literal["coordination_started"] = "coordination_started"
    payload: CoordinationStartedPayload


class AgentStartedEvent(_EventBase):
    type: Literal["agent_started"] = "agent_started"
    payload: AgentStartedPayload


class AgentCompletedEvent(_EventBase):
    type: Literal["agent_completed"] = "agent_completed"
    payload: AgentCompletedPayload


class AgentFailedEvent(_EventBase):
    type: Literal["agent_failed"] = "agent_failed"
    payload: FailurePayload


class HandoffInitiatedEvent(_EventBase):
    type: Literal["handoff_initiated"] = "handoff_initiated"
    payload: HandoffInitiatedPayload


class QualityGateFailedEvent(_EventBase):
    type: Literal["quality_gate_failed"] = "quality_gate_failed"
    payload: QualityGateFailedPayload


class CoordinationCompletedEvent(_EventBase):
    type: Literal["coordination_completed"] = "coordination_completed"
    payload: CoordinationCompletedPayload


class CoordinationFailedEvent(_EventBase):
    type: Literal["coordination_failed"] = "coordination_failed"
    payload: CoordinationFailedPayload


CoordinationEvent = Annotated[
    Union[
        CoordinationStartedEvent,
        AgentStartedEvent,
        AgentCompletedEvent,
        AgentFailedEvent,
        HandoffInitiatedEvent,
        QualityGateFailedEvent,
        CoordinationCompletedEvent,
        CoordinationFailedEvent,
    ],
    Field(discriminator="type"),
]

CoordinationEventAdapter: TypeAdapter[CoordinationEvent] = TypeAdapter(CoordinationEvent)


__all__ = [
    "AgentCompletedEvent",
    "AgentCompletedPayload",
    "AgentFailedEvent",
    "AgentStartedEvent",
    "AgentStartedPayload",
    "CoordinationCompletedEvent",
    "CoordinationCompletedPayload",
    "CoordinationEvent",
    "CoordinationEventAdapter",
    "CoordinationFailedEvent",
    "CoordinationFailedPayload",
    "CoordinationStartedEvent",
    "CoordinationStartedPayload",
    "FailurePayload",
    "HandoffInitiatedEvent",
    "HandoffInitiatedPayload",
    "QualityGateFailedEvent",
    "QualityGateFailedPayload",
]
