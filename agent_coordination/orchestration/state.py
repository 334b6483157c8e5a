from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from ..schemas.coordination import (
    AgentResult,
    AgentResultEntry,
    CoordinationPlan,
    CoordinationResult,
    CoordinationStatus,
    ExecutionContext,
    ExecutionError,
)


@dataclass(slots=True)
class CoordinationExecution:
    """Mutable record of one plan run, owned by the engine until it returns.

    Writers that may run concurrently (parallel levels) go through the async
    ``record_*`` methods, which serialise on ``_lock``. Once ``status`` leaves
    ``running`` every writer raises.
    """

    id: str
    plan: CoordinationPlan
    context: ExecutionContext
    status: CoordinationStatus = CoordinationStatus.RUNNING
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime | None = None
    agent_results: dict[str, AgentResult] = field(default_factory=dict)
    completed_agents: set[str] = field(default_factory=set)
    errors: list[ExecutionError] = field(default_factory=list)
    quality_gate_results: dict[str, bool] = field(default_factory=dict)
    skipped_agents: list[str] = field(default_factory=list)
    iterations: int | None = None
    converged: bool | None = None
    _started: float = field(default_factory=time.perf_counter)
    _elapsed_ms: float | None = None
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @classmethod
    def start(cls, plan: CoordinationPlan, context: ExecutionContext | None = None) -> "CoordinationExecution":
        coordination_id = f"coord_{plan.workflow_id}_{plan.task_id}_{uuid4().hex[:12]}"
        return cls(id=coordination_id, plan=plan, context=context or ExecutionContext())

    @property
    def is_running(self) -> bool:
        return self.status is CoordinationStatus.RUNNING

    @property
    def elapsed_ms(self) -> float:
        if self._elapsed_ms is not None:
            return self._elapsed_ms
        return (time.perf_counter() - self._started) * 1000

    def missing_dependencies(self, dependencies: list[str]) -> list[str]:
        return [dep for dep in dependencies if dep not in self.completed_agents]

    async def record_result(self, agent_type: str, result: AgentResult) -> None:
        if not result.succeeded:
            raise ValueError(f"Refusing to record failed result for agent '{agent_type}' as completed")
        async with self._lock:
            self._ensure_running()
            self.agent_results[agent_type] = result
            self.completed_agents.add(agent_type)

    async def record_error(self, error: ExecutionError) -> None:
        async with self._lock:
            self._ensure_running()
            self.errors.append(error)

    async def record_quality_gate(self, key: str, passed: bool) -> None:
        async with self._lock:
            self._ensure_running()
            self.quality_gate_results[key] = passed

    def mark_skipped(self, agent_type: str) -> None:
        self._ensure_running()
        self.skipped_agents.append(agent_type)

    def finish(self, status: CoordinationStatus, *, error: ExecutionError | None = None) -> None:
        self._ensure_running()
        if status is CoordinationStatus.RUNNING:
            raise ValueError("An execution can only finish as completed or failed")
        if error is not None:
            self.errors.append(error)
        self.status = status
        self.end_time = datetime.now(timezone.utc)
        self._elapsed_ms = (time.perf_counter() - self._started) * 1000

    def build_result(self) -> CoordinationResult:
        entries = [
            AgentResultEntry(agent_type=agent_type, result=result)
            for agent_type, result in self.agent_results.items()
        ]
        total_cost = sum(entry.result.cost_units for entry in entries)
        average_confidence = (
            sum(entry.result.confidence_score for entry in entries) / len(entries) if entries else 0.0
        )
        return CoordinationResult(
            coordination_id=self.id,
            status=self.status,
            pattern=self.plan.coordination_type,
            results=entries,
            errors=list(self.errors),
            elapsed_time_ms=self.elapsed_ms,
            total_cost=total_cost,
            average_confidence=average_confidence,
            iterations=self.iterations,
            converged=self.converged,
            skipped_agents=list(self.skipped_agents),
            quality_gate_results=dict(self.quality_gate_results),
        )

    def _ensure_running(self) -> None:
        if not self.is_running:
            raise RuntimeError(f"Coordination execution '{self.id}' is {self.status.value} and can no longer change")


__all__ = ["CoordinationExecution"]
