from __future__ import annotations

from typing import Any, Mapping

from ..schemas.coordination import AgentResult

MISSING = object()


def resolve_reference(data: Mapping[str, Any], path: str) -> Any:
    """Walk a dotted path through nested mappings; returns ``MISSING`` when absent."""
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


def is_missing(value: Any) -> bool:
    return value is MISSING


def build_input(input_mapping: Mapping[str, str], agent_results: Mapping[str, AgentResult]) -> dict[str, Any]:
    """Resolve a config's input fields from results recorded so far.

    Sources are ``agent_type`` (whole ``result_data``) or ``agent_type.field``.
    A field whose source agent or field has no value yet is left out entirely
    rather than set to ``None``.
    """
    input_data: dict[str, Any] = {}
    for target_field, source in input_mapping.items():
        agent_type, _, field_path = source.partition(".")
        result = agent_results.get(agent_type)
        if result is None:
            continue
        if not field_path:
            input_data[target_field] = dict(result.result_data)
            continue
        value = resolve_reference(result.result_data, field_path)
        if not is_missing(value):
            input_data[target_field] = value
    return input_data


__all__ = ["MISSING", "build_input", "resolve_reference", "is_missing"]
