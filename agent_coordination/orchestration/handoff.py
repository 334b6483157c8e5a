"""One-shot transfer of an in-flight task to another agent type."""

from __future__ import annotations

from ..core.logging import get_logger
from ..schemas.coordination import AgentResult, AgentTaskRequest, HandoffRequest, TaskComplexity, TaskPriority
from ..schemas.events import HandoffInitiatedEvent, HandoffInitiatedPayload
from .dispatch import AgentDispatcher

logger = get_logger(name=__name__)


class HandoffCoordinator:
    def __init__(self, dispatcher: AgentDispatcher) -> None:
        self._dispatcher = dispatcher

    def build_request(self, request: HandoffRequest) -> AgentTaskRequest:
        return AgentTaskRequest(
            agent_type=request.to_agent,
            task_id=request.task_id,
            workflow_id=request.workflow_id,
            task_type=request.handoff_reason.value,
            complexity=TaskComplexity.MODERATE,
            input_data=dict(request.handoff_data),
            context={
                "workflow_context": dict(request.context_data),
                "handoff": {"from_agent": request.from_agent, "reason": request.handoff_reason.value},
            },
            priority=TaskPriority.NORMAL,
        )

    async def handle(self, request: HandoffRequest) -> AgentResult:
        """Invoke ``to_agent`` with the handed-off data and return its result as-is."""
        logger.info(
            "handoff_initiated",
            from_agent=request.from_agent,
            to_agent=request.to_agent,
            task_id=request.task_id,
            reason=request.handoff_reason.value,
        )
        await self._dispatcher.events.publish(
            HandoffInitiatedEvent(
                agent_type=request.from_agent,
                task_id=request.task_id,
                workflow_id=request.workflow_id,
                payload=HandoffInitiatedPayload(to_agent=request.to_agent, reason=request.handoff_reason.value),
            )
        )
        return await self._dispatcher.dispatch(self.build_request(request))


__all__ = ["HandoffCoordinator"]
