"""Pattern executors: the scheduling disciplines a plan can request."""

from __future__ import annotations

import asyncio
from typing import Any, ClassVar, Sequence

from ..core.config import CoordinationSettings
from ..core.exceptions import QualityGateError, UnmetDependencyError
from ..core.logging import get_logger
from ..schemas.coordination import (
    AgentResult,
    AgentTaskConfig,
    AgentTaskRequest,
    CoordinationPlan,
    CoordinationType,
    ExecutionError,
    TaskComplexity,
    TaskPriority,
)
from ..schemas.events import QualityGateFailedEvent, QualityGateFailedPayload
from .conditions import ConditionEvaluator
from .dispatch import AgentDispatcher
from .leveling import level_dependencies
from .mapping import build_input
from .quality import QualityGate
from .state import CoordinationExecution

logger = get_logger(name=__name__)


def execution_error(exc: BaseException, *, agent_type: str | None = None) -> ExecutionError:
    return ExecutionError(
        agent_type=getattr(exc, "agent_type", None) or agent_type,
        kind=getattr(exc, "kind", type(exc).__name__),
        message=str(exc),
    )


class PatternExecutor:
    """Drives one execution record to completion or raises.

    Subclasses implement ``execute``; the shared helpers map inputs, invoke
    agents through the dispatcher, record results and run quality gates.
    """

    pattern: ClassVar[CoordinationType]

    def __init__(
        self,
        dispatcher: AgentDispatcher,
        *,
        settings: CoordinationSettings | None = None,
        quality_gates: Sequence[QualityGate] = (),
    ) -> None:
        self._dispatcher = dispatcher
        self._settings = settings or CoordinationSettings()
        self._quality_gates = tuple(quality_gates)

    def validate(self, plan: CoordinationPlan) -> None:
        """Reject a plan before any agent runs. Default accepts everything."""

    async def execute(self, execution: CoordinationExecution) -> None:
        raise NotImplementedError

    def build_request(
        self,
        execution: CoordinationExecution,
        config: AgentTaskConfig,
        *,
        extra_input: dict[str, Any] | None = None,
    ) -> AgentTaskRequest:
        input_data = build_input(config.input_mapping, execution.agent_results)
        if extra_input:
            input_data.update(extra_input)
        return AgentTaskRequest(
            agent_type=config.agent_type,
            task_id=execution.plan.task_id,
            workflow_id=execution.plan.workflow_id,
            task_type=execution.context.workflow_type or self._settings.default_task_type,
            complexity=TaskComplexity.MODERATE,
            input_data=input_data,
            context=execution.context.as_payload(),
            priority=TaskPriority.NORMAL,
        )

    async def run_agent(
        self,
        execution: CoordinationExecution,
        config: AgentTaskConfig,
        *,
        extra_input: dict[str, Any] | None = None,
        iteration: int | None = None,
    ) -> AgentResult:
        request = self.build_request(execution, config, extra_input=extra_input)
        result = await self._dispatcher.dispatch(request, coordination_id=execution.id, iteration=iteration)
        await execution.record_result(config.agent_type, result)
        await self.check_quality_gates(execution, config.agent_type, result)
        return result

    def require_dependencies(self, execution: CoordinationExecution, config: AgentTaskConfig) -> None:
        missing = execution.missing_dependencies(config.dependencies)
        if missing:
            raise UnmetDependencyError(config.agent_type, missing, task_id=execution.plan.task_id)

    async def check_quality_gates(
        self,
        execution: CoordinationExecution,
        agent_type: str,
        result: AgentResult,
    ) -> None:
        for gate in self._quality_gates:
            if not gate.applies_to(agent_type):
                continue
            try:
                passed = await gate.check(agent_type, result)
            except Exception:
                logger.exception("quality_gate_rule_failed", gate=gate.name, agent_type=agent_type)
                passed = False
            await execution.record_quality_gate(gate.key_for(agent_type), passed)
            if passed:
                continue
            await self._dispatcher.events.publish(
                QualityGateFailedEvent(
                    agent_type=agent_type,
                    task_id=execution.plan.task_id,
                    workflow_id=execution.plan.workflow_id,
                    coordination_id=execution.id,
                    payload=QualityGateFailedPayload(gate=gate.name, blocking=gate.blocking),
                )
            )
            if gate.blocking:
                raise QualityGateError(gate.name, agent_type, task_id=execution.plan.task_id)


class SequentialExecutor(PatternExecutor):
    pattern = CoordinationType.SEQUENTIAL

    async def execute(self, execution: CoordinationExecution) -> None:
        ordered = sorted(execution.plan.agents, key=lambda config: config.execution_order)
        for config in ordered:
            self.require_dependencies(execution, config)
            await self.run_agent(execution, config)


class ParallelExecutor(PatternExecutor):
    """Runs dependency levels one after another, each level concurrently.

    A failing agent is recorded and its siblings still settle; dependants in
    later levels then fail their own dependency check instead of running.
    """

    pattern = CoordinationType.PARALLEL

    def validate(self, plan: CoordinationPlan) -> None:
        level_dependencies(plan.agents, task_id=plan.task_id)

    async def execute(self, execution: CoordinationExecution) -> None:
        levels = level_dependencies(execution.plan.agents, task_id=execution.plan.task_id)
        semaphore = asyncio.Semaphore(self._settings.max_parallel_agents)

        async def run_config(config: AgentTaskConfig) -> AgentResult:
            missing = execution.missing_dependencies(config.dependencies)
            if missing:
                error = UnmetDependencyError(config.agent_type, missing, task_id=execution.plan.task_id)
                await self._dispatcher.report_failure(
                    self.build_request(execution, config),
                    error,
                    coordination_id=execution.id,
                )
                raise error
            async with semaphore:
                return await self.run_agent(execution, config)

        for depth, level in enumerate(levels):
            logger.debug(
                "parallel_level_started",
                coordination_id=execution.id,
                level=depth,
                agents=[config.agent_type for config in level],
            )
            outcomes = await asyncio.gather(*(run_config(config) for config in level), return_exceptions=True)

            blocking: QualityGateError | None = None
            for config, outcome in zip(level, outcomes):
                if not isinstance(outcome, BaseException):
                    continue
                if not isinstance(outcome, Exception):
                    raise outcome
                if isinstance(outcome, QualityGateError):
                    blocking = blocking or outcome
                    continue
                await execution.record_error(execution_error(outcome, agent_type=config.agent_type))
            if blocking is not None:
                raise blocking


class ConditionalExecutor(PatternExecutor):
    pattern = CoordinationType.CONDITIONAL

    def __init__(
        self,
        dispatcher: AgentDispatcher,
        *,
        settings: CoordinationSettings | None = None,
        quality_gates: Sequence[QualityGate] = (),
        evaluator: ConditionEvaluator | None = None,
    ) -> None:
        super().__init__(dispatcher, settings=settings, quality_gates=quality_gates)
        self._evaluator = evaluator or ConditionEvaluator()

    async def execute(self, execution: CoordinationExecution) -> None:
        for config in execution.plan.agents:
            if config.conditions and not self._evaluator.evaluate(
                config.conditions,
                execution.agent_results,
                execution.context,
            ):
                logger.info(
                    "conditional_agent_skipped",
                    coordination_id=execution.id,
                    agent_type=config.agent_type,
                    conditions=config.conditions,
                )
                execution.mark_skipped(config.agent_type)
                continue
            self.require_dependencies(execution, config)
            await self.run_agent(execution, config)


class FeedbackLoopExecutor(PatternExecutor):
    """Re-runs every agent until confidence scores settle or the pass cap is hit.

    Reaching the cap without settling is a normal outcome, reported through
    ``converged=False`` on the execution.
    """

    pattern = CoordinationType.FEEDBACK_LOOP

    async def execute(self, execution: CoordinationExecution) -> None:
        max_iterations = self._settings.max_feedback_iterations
        threshold = self._settings.convergence_threshold
        execution.converged = False

        for iteration in range(max_iterations):
            changed: list[str] = []
            for config in execution.plan.agents:
                previous = execution.agent_results.get(config.agent_type)
                result = await self.run_agent(
                    execution,
                    config,
                    extra_input={"iteration": iteration},
                    iteration=iteration,
                )
                if previous is None or abs(previous.confidence_score - result.confidence_score) > threshold:
                    changed.append(config.agent_type)

            execution.iterations = iteration + 1
            logger.debug(
                "feedback_iteration_completed",
                coordination_id=execution.id,
                iteration=iteration,
                changed=changed,
            )
            if not changed:
                execution.converged = True
                break


def default_executors(
    dispatcher: AgentDispatcher,
    *,
    settings: CoordinationSettings | None = None,
    quality_gates: Sequence[QualityGate] = (),
    evaluator: ConditionEvaluator | None = None,
) -> dict[CoordinationType, PatternExecutor]:
    return {
        CoordinationType.SEQUENTIAL: SequentialExecutor(dispatcher, settings=settings, quality_gates=quality_gates),
        CoordinationType.PARALLEL: ParallelExecutor(dispatcher, settings=settings, quality_gates=quality_gates),
        CoordinationType.CONDITIONAL: ConditionalExecutor(
            dispatcher,
            settings=settings,
            quality_gates=quality_gates,
            evaluator=evaluator,
        ),
        CoordinationType.FEEDBACK_LOOP: FeedbackLoopExecutor(
            dispatcher,
            settings=settings,
            quality_gates=quality_gates,
        ),
    }


__all__ = [
    "ConditionalExecutor",
    "FeedbackLoopExecutor",
    "ParallelExecutor",
    "PatternExecutor",
    "SequentialExecutor",
    "default_executors",
    "execution_error",
]
