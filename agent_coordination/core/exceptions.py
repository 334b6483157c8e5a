from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..schemas.coordination import CoordinationResult


class CoordinationError(RuntimeError):
    """Base class for coordination failures."""

    kind = "coordination_error"

    def __init__(self, message: str, *, task_id: str | None = None, agent_type: str | None = None) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.agent_type = agent_type
        self.result: CoordinationResult | None = None


class CircularDependencyError(CoordinationError):
    """Raised before any invocation when a plan's dependencies cannot be levelled."""

    kind = "circular_dependency"

    def __init__(self, task_id: str, unresolved: list[str]) -> None:
        super().__init__(
            f"Circular dependency detected in coordination plan for task '{task_id}': "
            f"unable to schedule {', '.join(unresolved)}",
            task_id=task_id,
        )
        self.unresolved = list(unresolved)


class UnmetDependencyError(CoordinationError):
    """Raised when an agent is reached before all of its dependencies completed."""

    kind = "unmet_dependency"

    def __init__(self, agent_type: str, missing: list[str], *, task_id: str | None = None) -> None:
        super().__init__(
            f"Dependencies not met for agent '{agent_type}': missing {', '.join(missing)}",
            task_id=task_id,
            agent_type=agent_type,
        )
        self.missing = list(missing)


class AgentInvocationError(CoordinationError):
    """Raised when a remote agent call fails or returns an error result."""

    kind = "agent_invocation"

    def __init__(
        self,
        message: str,
        *,
        agent_type: str,
        task_id: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, task_id=task_id, agent_type=agent_type)
        self.status_code = status_code
        self.cause = cause


class UnsupportedPatternError(CoordinationError):
    """Raised when no executor is registered for a plan's coordination type."""

    kind = "unsupported_pattern"


class QualityGateError(CoordinationError):
    """Raised when a blocking quality gate rejects an agent result."""

    kind = "quality_gate"

    def __init__(self, gate: str, agent_type: str, *, task_id: str | None = None) -> None:
        super().__init__(
            f"Quality gate '{gate}' rejected result from agent '{agent_type}'",
            task_id=task_id,
            agent_type=agent_type,
        )
        self.gate = gate


__all__ = [
    "CoordinationError",
    "CircularDependencyError",
    "UnmetDependencyError",
    "AgentInvocationError",
    "UnsupportedPatternError",
    "QualityGateError",
]
