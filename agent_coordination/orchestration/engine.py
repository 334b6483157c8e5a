"""Coordination engine: the inbound entry point for plan execution."""

from __future__ import annotations

import asyncio
from typing import Mapping, Sequence

from ..core.config import CoordinationSettings
from ..core.exceptions import CoordinationError, UnsupportedPatternError
from ..core.logging import coordination_log_context, get_logger
from ..schemas.coordination import (
    AgentResult,
    CollaborationRequest,
    CoordinationPlan,
    CoordinationResult,
    CoordinationStatus,
    CoordinationType,
    ExecutionContext,
    ExecutionError,
    HandoffRequest,
)
from ..schemas.events import (
    CoordinationCompletedEvent,
    CoordinationCompletedPayload,
    CoordinationFailedEvent,
    CoordinationFailedPayload,
    CoordinationStartedEvent,
    CoordinationStartedPayload,
)
from ..services.agent_invoker import AgentInvoker
from .collaboration import CollaborationCoordinator
from .conditions import ConditionEvaluator
from .dispatch import AgentDispatcher
from .events import EventBus
from .handoff import HandoffCoordinator
from .patterns import PatternExecutor, default_executors, execution_error
from .quality import QualityGate
from .state import CoordinationExecution

logger = get_logger(name=__name__)


class CoordinationEngine:
    """Selects a pattern executor for each plan and owns its execution record.

    Executor errors are recorded on the execution, the execution is marked
    failed, and the original error is re-raised with the partial
    ``CoordinationResult`` attached as ``error.result``.
    """

    def __init__(
        self,
        invoker: AgentInvoker,
        *,
        settings: CoordinationSettings | None = None,
        events: EventBus | None = None,
        quality_gates: Sequence[QualityGate] = (),
        evaluator: ConditionEvaluator | None = None,
        executors: Mapping[CoordinationType, PatternExecutor] | None = None,
    ) -> None:
        self._settings = settings or CoordinationSettings()
        self._events = events or EventBus()
        self._dispatcher = AgentDispatcher(invoker, self._events)
        if executors is None:
            executors = default_executors(
                self._dispatcher,
                settings=self._settings,
                quality_gates=quality_gates,
                evaluator=evaluator,
            )
        self._executors = dict(executors)
        self._handoff = HandoffCoordinator(self._dispatcher)
        self._collaboration = CollaborationCoordinator(
            self._dispatcher,
            max_concurrency=self._settings.max_parallel_agents,
        )
        self._active: dict[str, CoordinationExecution] = {}

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def dispatcher(self) -> AgentDispatcher:
        return self._dispatcher

    @property
    def active_coordinations(self) -> tuple[str, ...]:
        return tuple(self._active)

    async def execute(self, plan: CoordinationPlan, context: ExecutionContext | None = None) -> CoordinationResult:
        executor = self._executors.get(plan.coordination_type)
        if executor is None:
            raise UnsupportedPatternError(
                f"Unsupported coordination pattern: {plan.coordination_type.value}",
                task_id=plan.task_id,
            )
        executor.validate(plan)

        execution = CoordinationExecution.start(plan, context)
        self._active[execution.id] = execution
        try:
            with coordination_log_context(
                coordination_id=execution.id,
                task_id=plan.task_id,
                workflow_id=plan.workflow_id,
            ):
                return await self._run(executor, execution)
        finally:
            self._active.pop(execution.id, None)

    async def _run(self, executor: PatternExecutor, execution: CoordinationExecution) -> CoordinationResult:
        plan = execution.plan
        logger.info(
            "coordination_started",
            pattern=plan.coordination_type.value,
            agents=plan.agent_types,
        )
        await self._events.publish(
            CoordinationStartedEvent(
                agent_type=plan.agents[0].agent_type,
                task_id=plan.task_id,
                workflow_id=plan.workflow_id,
                coordination_id=execution.id,
                payload=CoordinationStartedPayload(pattern=plan.coordination_type.value, agents=plan.agent_types),
            )
        )
        try:
            await executor.execute(execution)
        except asyncio.CancelledError:
            await self._fail(
                execution,
                ExecutionError(kind="cancelled", message="Coordination cancelled by caller"),
            )
            raise
        except Exception as exc:
            result = await self._fail(execution, execution_error(exc))
            if isinstance(exc, CoordinationError):
                exc.result = result
            raise

        execution.finish(CoordinationStatus.COMPLETED)
        result = execution.build_result()
        logger.info(
            "coordination_completed",
            elapsed_time_ms=result.elapsed_time_ms,
            agent_count=len(result.results),
            error_count=len(result.errors),
        )
        await self._events.publish(
            CoordinationCompletedEvent(
                agent_type=plan.agents[0].agent_type,
                task_id=plan.task_id,
                workflow_id=plan.workflow_id,
                coordination_id=execution.id,
                payload=CoordinationCompletedPayload(
                    pattern=plan.coordination_type.value,
                    status=result.status.value,
                    elapsed_time_ms=result.elapsed_time_ms,
                    total_cost=result.total_cost,
                    average_confidence=result.average_confidence,
                    agent_count=len(result.results),
                    error_count=len(result.errors),
                    iterations=result.iterations,
                    converged=result.converged,
                ),
            )
        )
        return result

    async def handoff(self, request: HandoffRequest) -> AgentResult:
        return await self._handoff.handle(request)

    async def collaborate(self, request: CollaborationRequest) -> list[AgentResult]:
        return await self._collaboration.coordinate(request)

    async def _fail(self, execution: CoordinationExecution, error: ExecutionError) -> CoordinationResult:
        execution.finish(CoordinationStatus.FAILED, error=error)
        result = execution.build_result()
        plan = execution.plan
        logger.error(
            "coordination_failed",
            kind=error.kind,
            error=error.message,
            completed_agents=sorted(execution.completed_agents),
        )
        await self._events.publish(
            CoordinationFailedEvent(
                agent_type=error.agent_type or plan.agents[0].agent_type,
                task_id=plan.task_id,
                workflow_id=plan.workflow_id,
                coordination_id=execution.id,
                payload=CoordinationFailedPayload(
                    pattern=plan.coordination_type.value,
                    kind=error.kind,
                    error=error.message,
                    elapsed_time_ms=result.elapsed_time_ms,
                ),
            )
        )
        return result


__all__ = ["CoordinationEngine"]
