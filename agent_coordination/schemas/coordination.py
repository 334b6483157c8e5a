from __future__ import annotations

from enum import Enum
from typing import Any, Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Confidence = Annotated[float, Field(ge=0.0, le=1.0)]


class CoordinationType(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    CONDITIONAL = "conditional"
    FEEDBACK_LOOP = "feedback_loop"


class CoordinationStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class TaskComplexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class HandoffReason(str, Enum):
    TASK_COMPLETE = "task_complete"
    CAPABILITY_LIMIT = "capability_limit"
    ERROR_RECOVERY = "error_recovery"
    OPTIMIZATION = "optimization"


class CollaborationType(str, Enum):
    REVIEW = "review"
    VALIDATION = "validation"
    ENHANCEMENT = "enhancement"
    VERIFICATION = "verification"


class AgentTaskConfig(BaseModel):
    """One agent invocation inside a coordination plan."""

    agent_type: str = Field(..., min_length=1)
    execution_order: int = Field(default=0)
    dependencies: list[str] = Field(default_factory=list, description="Agent types that must complete first")
    input_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="Target input field -> 'agent_type' or 'agent_type.field' of an earlier result",
    )
    conditions: list[str] = Field(default_factory=list, description="Predicates ANDed before a conditional run")

    @field_validator("dependencies")
    @classmethod
    def _dedupe_dependencies(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))


class CoordinationPlan(BaseModel):
    workflow_id: str = Field(..., min_length=1)
    task_id: str = Field(..., min_length=1)
    coordination_type: CoordinationType
    agents: list[AgentTaskConfig] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _unique_agent_types(self) -> "CoordinationPlan":
        seen: set[str] = set()
        duplicates: set[str] = set()
        for config in self.agents:
            if config.agent_type in seen:
                duplicates.add(config.agent_type)
            seen.add(config.agent_type)
        if duplicates:
            raise ValueError(f"Agent types must be unique within a plan: {sorted(duplicates)}")
        return self

    @property
    def agent_types(self) -> list[str]:
        return [config.agent_type for config in self.agents]

    def unknown_dependencies(self) -> dict[str, list[str]]:
        """Map each agent to the dependencies it declares on agents missing from the plan."""
        declared = set(self.agent_types)
        unknown: dict[str, list[str]] = {}
        for config in self.agents:
            missing = [dep for dep in config.dependencies if dep not in declared]
            if missing:
                unknown[config.agent_type] = missing
        return unknown


class ExecutionContext(BaseModel):
    """Ambient caller data passed through untouched to every invocation."""

    model_config = ConfigDict(frozen=True)

    workflow_id: str | None = None
    workflow_type: str | None = None
    values: dict[str, Any] = Field(default_factory=dict)

    def as_payload(self) -> dict[str, Any]:
        return {"workflow_context": self.model_dump(mode="json")}


class AgentTaskRequest(BaseModel):
    agent_type: str = Field(..., min_length=1)
    task_id: str
    workflow_id: str
    task_type: str = Field(..., min_length=1)
    complexity: TaskComplexity = Field(default=TaskComplexity.MODERATE)
    input_data: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] = Field(default_factory=dict)
    priority: TaskPriority = Field(default=TaskPriority.NORMAL)


class AgentResult(BaseModel):
    result_data: dict[str, Any] = Field(default_factory=dict)
    confidence_score: Confidence = 0.0
    cost_units: float = Field(default=0.0, ge=0.0)
    execution_time_ms: float = Field(default=0.0, ge=0.0)
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def from_error(cls, message: str) -> "AgentResult":
        return cls(error=message)


class ExecutionError(BaseModel):
    agent_type: str | None = None
    kind: str
    message: str


class AgentResultEntry(BaseModel):
    agent_type: str
    result: AgentResult


class CoordinationResult(BaseModel):
    """Terminal summary of one plan execution."""

    model_config = ConfigDict(frozen=True)

    coordination_id: str
    status: CoordinationStatus
    pattern: CoordinationType
    results: list[AgentResultEntry] = Field(default_factory=list)
    errors: list[ExecutionError] = Field(default_factory=list)
    elapsed_time_ms: float = 0.0
    total_cost: float = 0.0
    average_confidence: float = 0.0
    iterations: int | None = None
    converged: bool | None = None
    skipped_agents: list[str] = Field(default_factory=list)
    quality_gate_results: dict[str, bool] = Field(default_factory=dict)

    def result_for(self, agent_type: str) -> AgentResult | None:
        for entry in self.results:
            if entry.agent_type == agent_type:
                return entry.result
        return None


class HandoffRequest(BaseModel):
    from_agent: str = Field(..., min_length=1)
    to_agent: str = Field(..., min_length=1)
    task_id: str
    workflow_id: str
    handoff_reason: HandoffReason
    handoff_data: dict[str, Any] = Field(default_factory=dict)
    context_data: dict[str, Any] = Field(default_factory=dict)


class CollaborationRequest(BaseModel):
    primary_agent: str = Field(..., min_length=1)
    supporting_agents: list[str] = Field(default_factory=list)
    task_id: str
    workflow_id: str
    collaboration_type: CollaborationType
    collaboration_data: dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "AgentResult",
    "AgentResultEntry",
    "AgentTaskConfig",
    "AgentTaskRequest",
    "CollaborationRequest",
    "CollaborationType",
    "CoordinationPlan",
    "CoordinationResult",
    "CoordinationStatus",
    "CoordinationType",
    "ExecutionContext",
    "ExecutionError",
    "HandoffReason",
    "HandoffRequest",
    "TaskComplexity",
    "TaskPriority",
]
