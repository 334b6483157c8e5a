"""Partition plan agents into dependency levels."""

from __future__ import annotations

from typing import Sequence

from ..core.exceptions import CircularDependencyError, UnmetDependencyError
from ..schemas.coordination import AgentTaskConfig


def level_dependencies(configs: Sequence[AgentTaskConfig], *, task_id: str) -> list[list[AgentTaskConfig]]:
    """Group configs so every dependency of a level-k config sits in a level below k.

    A dependency on an agent the configs never declare can never be met and
    raises ``UnmetDependencyError`` up front. Each pass then collects every
    unplaced config whose dependencies were placed by earlier passes, keeping
    declared order inside the level; a pass that places nothing means the
    remaining configs form a cycle.
    """
    declared = {config.agent_type for config in configs}
    for config in configs:
        unknown = [dep for dep in config.dependencies if dep not in declared]
        if unknown:
            raise UnmetDependencyError(config.agent_type, unknown, task_id=task_id)

    levels: list[list[AgentTaskConfig]] = []
    placed: set[str] = set()
    remaining = list(configs)

    while remaining:
        level = [config for config in remaining if all(dep in placed for dep in config.dependencies)]
        if not level:
            raise CircularDependencyError(task_id, [config.agent_type for config in remaining])
        levels.append(level)
        placed.update(config.agent_type for config in level)
        remaining = [config for config in remaining if config.agent_type not in placed]

    return levels


__all__ = ["level_dependencies"]
