from __future__ import annotations

import asyncio

import pytest

from agent_coordination.core.exceptions import QualityGateError, UnsupportedPatternError
from agent_coordination.orchestration.engine import CoordinationEngine
from agent_coordination.orchestration.events import EventBus
from agent_coordination.orchestration.quality import QualityGate, minimum_confidence_gate
from agent_coordination.schemas.coordination import (
    AgentResult,
    AgentTaskConfig,
    AgentTaskRequest,
    CoordinationStatus,
    CoordinationType,
)
from tests.helpers.stubs import RecordingSubscriber, ScriptedAgentInvoker, make_plan, result


def _sequential_plan():
    return make_plan(
        CoordinationType.SEQUENTIAL,
        AgentTaskConfig(agent_type="A", execution_order=1),
        AgentTaskConfig(agent_type="B", execution_order=2, dependencies=["A"]),
    )


def _bus(*subscribers) -> EventBus:
    bus = EventBus(subscriber_timeout_seconds=0.05)
    for subscriber in subscribers:
        bus.subscribe(subscriber)
    return bus


@pytest.mark.asyncio
async def test_successful_run_emits_lifecycle_events_in_order() -> None:
    subscriber = RecordingSubscriber()
    invoker = ScriptedAgentInvoker({"A": result(0.9, cost=1.0), "B": result(0.5)})
    engine = CoordinationEngine(invoker, events=_bus(subscriber))

    outcome = await engine.execute(_sequential_plan())

    await engine.events.drain()
    assert subscriber.types == [
        "coordination_started",
        "agent_started",
        "agent_completed",
        "agent_started",
        "agent_completed",
        "coordination_completed",
    ]
    assert {event.coordination_id for event in subscriber.events} == {outcome.coordination_id}
    assert all(event.task_id == "task-1" and event.workflow_id == "wf-1" for event in subscriber.events)
    started = subscriber.events[0]
    assert started.payload.pattern == "sequential"
    assert started.payload.agents == ["A", "B"]
    completed = subscriber.events[-1]
    assert completed.payload.status == "completed"
    assert completed.payload.agent_count == 2
    assert completed.payload.average_confidence == pytest.approx(0.7)
    assert subscriber.events[2].payload.cost_units == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_failed_run_emits_failure_event_and_marks_status() -> None:
    subscriber = RecordingSubscriber()
    invoker = ScriptedAgentInvoker({"A": RuntimeError("unreachable")})
    engine = CoordinationEngine(invoker, events=_bus(subscriber))

    with pytest.raises(Exception) as excinfo:
        await engine.execute(_sequential_plan())

    await engine.events.drain()
    assert subscriber.types == ["coordination_started", "agent_started", "agent_failed", "coordination_failed"]
    failed = subscriber.events[-1]
    assert failed.payload.kind == "agent_invocation"
    assert failed.agent_type == "A"
    assert excinfo.value.result.status is CoordinationStatus.FAILED
    assert engine.active_coordinations == ()


@pytest.mark.asyncio
async def test_active_coordinations_tracks_in_flight_runs() -> None:
    seen: list[tuple[str, ...]] = []
    invoker = ScriptedAgentInvoker()
    engine = CoordinationEngine(invoker)

    def observe(request: AgentTaskRequest) -> AgentResult:
        seen.append(engine.active_coordinations)
        return result(0.6)

    invoker.script("A", observe)

    outcome = await engine.execute(make_plan(CoordinationType.SEQUENTIAL, AgentTaskConfig(agent_type="A")))

    assert seen == [(outcome.coordination_id,)]
    assert engine.active_coordinations == ()


@pytest.mark.asyncio
async def test_cancellation_marks_execution_failed_and_reraises() -> None:
    subscriber = RecordingSubscriber()
    invoker = ScriptedAgentInvoker()
    invoker.hold("A")
    engine = CoordinationEngine(invoker, events=_bus(subscriber))

    task = asyncio.create_task(engine.execute(make_plan(CoordinationType.SEQUENTIAL, AgentTaskConfig(agent_type="A"))))
    while not invoker.calls:
        await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    await engine.events.drain()
    assert subscriber.types[-1] == "coordination_failed"
    assert subscriber.events[-1].payload.kind == "cancelled"
    assert engine.active_coordinations == ()


@pytest.mark.asyncio
async def test_subscriber_failures_never_break_execution() -> None:
    calls: list[str] = []

    def broken(event) -> None:
        raise RuntimeError("subscriber down")

    async def slow(event) -> None:
        await asyncio.sleep(1)

    def healthy(event) -> None:
        calls.append(event.type)

    invoker = ScriptedAgentInvoker()
    engine = CoordinationEngine(invoker, events=_bus(broken, slow, healthy))

    outcome = await engine.execute(make_plan(CoordinationType.SEQUENTIAL, AgentTaskConfig(agent_type="A")))

    assert outcome.status is CoordinationStatus.COMPLETED
    await asyncio.wait_for(engine.events.drain(), timeout=1)
    assert calls[0] == "coordination_started"
    assert calls[-1] == "coordination_completed"


@pytest.mark.asyncio
async def test_unregistered_pattern_is_rejected() -> None:
    invoker = ScriptedAgentInvoker()
    engine = CoordinationEngine(invoker, executors={})

    with pytest.raises(UnsupportedPatternError):
        await engine.execute(make_plan(CoordinationType.PARALLEL, AgentTaskConfig(agent_type="A")))

    assert invoker.calls == []


@pytest.mark.asyncio
async def test_non_blocking_quality_gate_records_failure() -> None:
    subscriber = RecordingSubscriber()
    invoker = ScriptedAgentInvoker({"A": result(0.9), "B": result(0.5)})
    engine = CoordinationEngine(
        invoker,
        events=_bus(subscriber),
        quality_gates=[minimum_confidence_gate(0.6)],
    )

    outcome = await engine.execute(_sequential_plan())

    assert outcome.status is CoordinationStatus.COMPLETED
    assert outcome.quality_gate_results == {"minimum_confidence:A": True, "minimum_confidence:B": False}
    await engine.events.drain()
    failures = subscriber.of_type("quality_gate_failed")
    assert [event.agent_type for event in failures] == ["B"]
    assert failures[0].payload.blocking is False


@pytest.mark.asyncio
async def test_blocking_quality_gate_aborts_plan() -> None:
    invoker = ScriptedAgentInvoker({"A": result(0.3), "B": result(0.9)})
    engine = CoordinationEngine(
        invoker,
        quality_gates=[minimum_confidence_gate(0.6, agent_types=["A"], blocking=True)],
    )

    with pytest.raises(QualityGateError) as excinfo:
        await engine.execute(_sequential_plan())

    assert invoker.invoked == ["A"]
    partial = excinfo.value.result
    assert partial is not None
    assert partial.result_for("A") is not None
    assert partial.quality_gate_results == {"minimum_confidence:A": False}
    assert partial.errors[-1].kind == "quality_gate"


@pytest.mark.asyncio
async def test_blocking_gate_in_parallel_level_lets_siblings_settle() -> None:
    invoker = ScriptedAgentInvoker({"A": result(0.2), "C": result(0.9)}, delays={"C": 0.01})
    engine = CoordinationEngine(
        invoker,
        quality_gates=[minimum_confidence_gate(0.5, agent_types=["A"], blocking=True)],
    )
    plan = make_plan(
        CoordinationType.PARALLEL,
        AgentTaskConfig(agent_type="A"),
        AgentTaskConfig(agent_type="C"),
        AgentTaskConfig(agent_type="B", dependencies=["A"]),
    )

    with pytest.raises(QualityGateError) as excinfo:
        await engine.execute(plan)

    assert sorted(invoker.invoked) == ["A", "C"]
    assert excinfo.value.result.result_for("C") is not None


@pytest.mark.asyncio
async def test_quality_gate_rule_errors_count_as_failures() -> None:
    async def exploding(agent_type: str, agent_result: AgentResult) -> bool:
        raise ValueError("rule bug")

    invoker = ScriptedAgentInvoker()
    engine = CoordinationEngine(invoker, quality_gates=[QualityGate(name="custom", rule=exploding)])

    outcome = await engine.execute(make_plan(CoordinationType.SEQUENTIAL, AgentTaskConfig(agent_type="A")))

    assert outcome.quality_gate_results == {"custom:A": False}
    assert outcome.status is CoordinationStatus.COMPLETED


@pytest.mark.asyncio
async def test_execute_does_not_wait_for_slow_subscribers() -> None:
    release = asyncio.Event()
    recorder = RecordingSubscriber()

    async def gated(event) -> None:
        await release.wait()

    invoker = ScriptedAgentInvoker()
    bus = EventBus(subscriber_timeout_seconds=5)
    bus.subscribe(gated)
    bus.subscribe(recorder)
    engine = CoordinationEngine(invoker, events=bus)

    outcome = await asyncio.wait_for(engine.execute(_sequential_plan()), timeout=0.5)

    assert outcome.status is CoordinationStatus.COMPLETED
    assert len(recorder.events) <= 1
    assert bus.pending > 0

    release.set()
    await asyncio.wait_for(engine.events.drain(), timeout=1)

    assert recorder.types == [
        "coordination_started",
        "agent_started",
        "agent_completed",
        "agent_started",
        "agent_completed",
        "coordination_completed",
    ]
