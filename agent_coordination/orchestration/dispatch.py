from __future__ import annotations

import time

from ..core.exceptions import AgentInvocationError, CoordinationError
from ..core.logging import get_logger
from ..schemas.coordination import AgentResult, AgentTaskRequest
from ..schemas.events import (
    AgentCompletedEvent,
    AgentCompletedPayload,
    AgentFailedEvent,
    AgentStartedEvent,
    AgentStartedPayload,
    FailurePayload,
)
from ..services.agent_invoker import AgentInvoker
from .events import EventBus

logger = get_logger(name=__name__)


class AgentDispatcher:
    """Single choke point for agent invocations and their lifecycle events."""

    def __init__(self, invoker: AgentInvoker, events: EventBus) -> None:
        self._invoker = invoker
        self._events = events

    @property
    def events(self) -> EventBus:
        return self._events

    async def dispatch(
        self,
        request: AgentTaskRequest,
        *,
        coordination_id: str | None = None,
        iteration: int | None = None,
    ) -> AgentResult:
        agent_type = request.agent_type
        await self._events.publish(
            AgentStartedEvent(
                agent_type=agent_type,
                task_id=request.task_id,
                workflow_id=request.workflow_id,
                coordination_id=coordination_id,
                payload=AgentStartedPayload(
                    task_type=request.task_type,
                    input_fields=sorted(request.input_data),
                    iteration=iteration,
                ),
            )
        )

        start = time.perf_counter()
        try:
            result = await self._invoker.invoke(agent_type, request)
        except CoordinationError as exc:
            await self.report_failure(request, exc, coordination_id=coordination_id)
            raise
        except Exception as exc:
            error = AgentInvocationError(
                f"Agent '{agent_type}' failed: {exc}",
                agent_type=agent_type,
                task_id=request.task_id,
                cause=exc,
            )
            await self.report_failure(request, error, coordination_id=coordination_id)
            raise error from exc

        if not result.succeeded:
            error = AgentInvocationError(
                f"Agent '{agent_type}' returned an error: {result.error}",
                agent_type=agent_type,
                task_id=request.task_id,
            )
            await self.report_failure(request, error, coordination_id=coordination_id)
            raise error

        if not result.execution_time_ms:
            result = result.model_copy(update={"execution_time_ms": (time.perf_counter() - start) * 1000})

        await self._events.publish(
            AgentCompletedEvent(
                agent_type=agent_type,
                task_id=request.task_id,
                workflow_id=request.workflow_id,
                coordination_id=coordination_id,
                payload=AgentCompletedPayload(
                    confidence_score=result.confidence_score,
                    cost_units=result.cost_units,
                    execution_time_ms=result.execution_time_ms,
                ),
            )
        )
        return result

    async def report_failure(
        self,
        request: AgentTaskRequest,
        error: Exception,
        *,
        coordination_id: str | None = None,
    ) -> None:
        kind = getattr(error, "kind", type(error).__name__)
        logger.warning(
            "agent_invocation_failed",
            agent_type=request.agent_type,
            task_id=request.task_id,
            coordination_id=coordination_id,
            kind=kind,
            error=str(error),
        )
        await self._events.publish(
            AgentFailedEvent(
                agent_type=request.agent_type,
                task_id=request.task_id,
                workflow_id=request.workflow_id,
                coordination_id=coordination_id,
                payload=FailurePayload(kind=kind, error=str(error)),
            )
        )


__all__ = ["AgentDispatcher"]
