"""Quality gates run after every recorded agent result."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

from ..schemas.coordination import AgentResult

QualityRule = Callable[[str, AgentResult], bool | Awaitable[bool]]


@dataclass(frozen=True, slots=True)
class QualityGate:
    name: str
    rule: QualityRule
    agent_types: frozenset[str] | None = None
    blocking: bool = False

    def applies_to(self, agent_type: str) -> bool:
        return self.agent_types is None or agent_type in self.agent_types

    def key_for(self, agent_type: str) -> str:
        return f"{self.name}:{agent_type}"

    async def check(self, agent_type: str, result: AgentResult) -> bool:
        outcome = self.rule(agent_type, result)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return bool(outcome)


def minimum_confidence_gate(
    threshold: float,
    *,
    name: str = "minimum_confidence",
    agent_types: Iterable[str] | None = None,
    blocking: bool = False,
) -> QualityGate:
    def rule(_: str, result: AgentResult) -> bool:
        return result.confidence_score >= threshold

    return QualityGate(
        name=name,
        rule=rule,
        agent_types=frozenset(agent_types) if agent_types is not None else None,
        blocking=blocking,
    )


__all__ = ["QualityGate", "QualityRule", "minimum_confidence_gate"]
