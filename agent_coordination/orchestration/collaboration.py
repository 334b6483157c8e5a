from __future__ import annotations

import asyncio

from ..core.logging import get_logger
from ..schemas.coordination import (
    AgentResult,
    AgentTaskRequest,
    CollaborationRequest,
    TaskComplexity,
    TaskPriority,
)
from .dispatch import AgentDispatcher

logger = get_logger(name=__name__)


class CollaborationCoordinator:
    """Runs a primary agent, then fans its output out to reviewers.

    The returned list is always ``[primary, *supporting]`` in declared order.
    A reviewer that fails occupies its slot with an error ``AgentResult``; a
    failing primary raises because there is nothing to review.
    """

    def __init__(self, dispatcher: AgentDispatcher, *, max_concurrency: int = 10) -> None:
        self._dispatcher = dispatcher
        self._max_concurrency = max_concurrency

    async def coordinate(self, request: CollaborationRequest) -> list[AgentResult]:
        primary_request = AgentTaskRequest(
            agent_type=request.primary_agent,
            task_id=request.task_id,
            workflow_id=request.workflow_id,
            task_type=request.collaboration_type.value,
            complexity=TaskComplexity.MODERATE,
            input_data=dict(request.collaboration_data),
            priority=TaskPriority.NORMAL,
        )
        primary_result = await self._dispatcher.dispatch(primary_request)

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def review(agent_type: str) -> AgentResult:
            supporting_request = AgentTaskRequest(
                agent_type=agent_type,
                task_id=request.task_id,
                workflow_id=request.workflow_id,
                task_type=f"{request.collaboration_type.value}_review",
                complexity=TaskComplexity.SIMPLE,
                input_data={
                    "primary_result": primary_result.result_data,
                    "original_data": dict(request.collaboration_data),
                },
                priority=TaskPriority.NORMAL,
            )
            async with semaphore:
                return await self._dispatcher.dispatch(supporting_request)

        outcomes = await asyncio.gather(
            *(review(agent_type) for agent_type in request.supporting_agents),
            return_exceptions=True,
        )

        results = [primary_result]
        for agent_type, outcome in zip(request.supporting_agents, outcomes):
            if isinstance(outcome, AgentResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            logger.warning(
                "collaboration_reviewer_failed",
                agent_type=agent_type,
                task_id=request.task_id,
                error=str(outcome),
            )
            results.append(AgentResult.from_error(str(outcome)))
        return results


__all__ = ["CollaborationCoordinator"]
