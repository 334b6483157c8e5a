"""CLI for executing a coordination plan against the remote agent service."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from agent_coordination.core.config import Settings, get_settings
from agent_coordination.core.exceptions import CoordinationError
from agent_coordination.core.logging import configure_logging
from agent_coordination.dependencies import build_coordination_engine
from agent_coordination.orchestration.quality import minimum_confidence_gate
from agent_coordination.schemas.coordination import CoordinationPlan, ExecutionContext
from agent_coordination.services.agent_invoker import HttpAgentInvoker


def _load_json(path: Path) -> dict[str, Any]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return payload


async def _run(
    settings: Settings,
    plan: CoordinationPlan,
    context: ExecutionContext,
    *,
    min_confidence: float | None,
) -> dict[str, Any]:
    gates = [minimum_confidence_gate(min_confidence)] if min_confidence is not None else []
    async with HttpAgentInvoker(settings.agents) as invoker:
        engine = build_coordination_engine(settings, invoker=invoker, quality_gates=gates)
        try:
            result = await engine.execute(plan, context)
        finally:
            await engine.events.drain()
    return result.model_dump(mode="json")


def main() -> None:
    parser = argparse.ArgumentParser(description="Execute an agent coordination plan")
    parser.add_argument("plan", type=Path, help="Path to a JSON coordination plan.")
    parser.add_argument(
        "--context",
        type=Path,
        default=None,
        help="Optional JSON file with execution context (workflow_id, workflow_type, values).",
    )
    parser.add_argument(
        "--min-confidence",
        type=float,
        default=None,
        help="Attach a non-blocking minimum-confidence quality gate.",
    )
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.observability.log_level)
    plan = CoordinationPlan.model_validate(_load_json(args.plan))
    context = ExecutionContext.model_validate(_load_json(args.context)) if args.context else ExecutionContext()

    try:
        result = asyncio.run(_run(settings, plan, context, min_confidence=args.min_confidence))
    except CoordinationError as exc:
        print(f"Coordination failed ({exc.kind}): {exc}", file=sys.stderr)
        if exc.result is not None:
            print(json.dumps(exc.result.model_dump(mode="json"), indent=2), file=sys.stderr)
        raise SystemExit(1) from exc

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
