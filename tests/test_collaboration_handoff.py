from __future__ import annotations

import pytest

from agent_coordination.core.exceptions import AgentInvocationError
from agent_coordination.orchestration.engine import CoordinationEngine
from agent_coordination.orchestration.events import EventBus
from agent_coordination.schemas.coordination import (
    CollaborationRequest,
    CollaborationType,
    HandoffReason,
    HandoffRequest,
    TaskComplexity,
)
from tests.helpers.stubs import RecordingSubscriber, ScriptedAgentInvoker, result


def _engine(invoker: ScriptedAgentInvoker) -> tuple[CoordinationEngine, RecordingSubscriber]:
    subscriber = RecordingSubscriber()
    bus = EventBus()
    bus.subscribe(subscriber)
    return CoordinationEngine(invoker, events=bus), subscriber


def _handoff(**overrides) -> HandoffRequest:
    payload = {
        "from_agent": "research",
        "to_agent": "finance",
        "task_id": "task-7",
        "workflow_id": "wf-7",
        "handoff_reason": HandoffReason.CAPABILITY_LIMIT,
        "handoff_data": {"ticker": "ACME"},
        "context_data": {"region": "eu"},
    }
    payload.update(overrides)
    return HandoffRequest(**payload)


@pytest.mark.asyncio
async def test_handoff_invokes_target_once_and_returns_its_result() -> None:
    invoker = ScriptedAgentInvoker({"finance": result(0.75, valuation=120)})
    engine, subscriber = _engine(invoker)

    outcome = await engine.handoff(_handoff())

    assert outcome.result_data == {"valuation": 120}
    assert invoker.invoked == ["finance"]
    request = invoker.calls[0]
    assert request.task_type == "capability_limit"
    assert request.input_data == {"ticker": "ACME"}
    assert request.context == {
        "workflow_context": {"region": "eu"},
        "handoff": {"from_agent": "research", "reason": "capability_limit"},
    }
    await engine.events.drain()
    assert subscriber.types == ["handoff_initiated", "agent_started", "agent_completed"]
    initiated = subscriber.events[0]
    assert initiated.agent_type == "research"
    assert initiated.payload.to_agent == "finance"
    assert engine.active_coordinations == ()


@pytest.mark.asyncio
async def test_handoff_failure_propagates() -> None:
    invoker = ScriptedAgentInvoker({"finance": RuntimeError("agent offline")})
    engine, subscriber = _engine(invoker)

    with pytest.raises(AgentInvocationError):
        await engine.handoff(_handoff(handoff_reason=HandoffReason.ERROR_RECOVERY))

    await engine.events.drain()
    assert subscriber.types[-1] == "agent_failed"


def _collaboration(*supporting: str) -> CollaborationRequest:
    return CollaborationRequest(
        primary_agent="writer",
        supporting_agents=list(supporting),
        task_id="task-3",
        workflow_id="wf-3",
        collaboration_type=CollaborationType.VALIDATION,
        collaboration_data={"brief": "launch post"},
    )


@pytest.mark.asyncio
async def test_collaboration_preserves_declared_order() -> None:
    invoker = ScriptedAgentInvoker(
        {
            "writer": result(0.8, draft="hello"),
            "slow_reviewer": result(0.6, verdict="slow"),
            "fast_reviewer": result(0.7, verdict="fast"),
            "broken_reviewer": RuntimeError("reviewer crashed"),
        },
        delays={"slow_reviewer": 0.05},
    )
    engine, _ = _engine(invoker)

    results = await engine.collaborate(_collaboration("slow_reviewer", "fast_reviewer", "broken_reviewer"))

    assert invoker.invoked[0] == "writer"
    assert invoker.timeline.index(("end", "fast_reviewer")) < invoker.timeline.index(("end", "slow_reviewer"))
    assert [item.result_data for item in results[:3]] == [
        {"draft": "hello"},
        {"verdict": "slow"},
        {"verdict": "fast"},
    ]
    assert len(results) == 4
    assert results[3].succeeded is False
    assert "reviewer crashed" in results[3].error


@pytest.mark.asyncio
async def test_collaboration_reviewers_receive_primary_output() -> None:
    invoker = ScriptedAgentInvoker({"writer": result(0.8, draft="hello")})
    engine, _ = _engine(invoker)

    await engine.collaborate(_collaboration("editor"))

    primary, review = invoker.calls
    assert primary.task_type == "validation"
    assert primary.input_data == {"brief": "launch post"}
    assert review.task_type == "validation_review"
    assert review.complexity is TaskComplexity.SIMPLE
    assert review.input_data == {"primary_result": {"draft": "hello"}, "original_data": {"brief": "launch post"}}


@pytest.mark.asyncio
async def test_collaboration_primary_failure_skips_reviewers() -> None:
    invoker = ScriptedAgentInvoker({"writer": RuntimeError("no draft")})
    engine, _ = _engine(invoker)

    with pytest.raises(AgentInvocationError):
        await engine.collaborate(_collaboration("editor", "legal"))

    assert invoker.invoked == ["writer"]


@pytest.mark.asyncio
async def test_collaboration_without_reviewers_returns_primary_only() -> None:
    invoker = ScriptedAgentInvoker({"writer": result(0.8, draft="hello")})
    engine, _ = _engine(invoker)

    results = await engine.collaborate(_collaboration())

    assert [item.confidence_score for item in results] == [pytest.approx(0.8)]
