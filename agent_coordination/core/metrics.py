from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

COORDINATION_RUNS_TOTAL = Counter(
    "coordination_runs_total",
    "Coordination plan executions by pattern and status",
    labelnames=("pattern", "status"),
)

COORDINATION_ACTIVE_GAUGE = Gauge(
    "coordination_runs_active",
    "Coordination executions currently in flight",
    labelnames=("pattern",),
)

COORDINATION_LATENCY_SECONDS = Histogram(
    "coordination_latency_seconds",
    "End-to-end coordination plan runtime",
    labelnames=("pattern",),
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, 300, 600, float("inf")),
)

COORDINATION_AGENT_COUNT = Histogram(
    "coordination_plan_agents",
    "Number of agents declared per coordination plan",
    labelnames=("pattern",),
    buckets=(0, 1, 2, 3, 4, 5, 8, 13),
)

FEEDBACK_LOOP_ITERATIONS = Histogram(
    "coordination_feedback_loop_iterations",
    "Passes performed by feedback-loop coordinations",
    labelnames=("converged",),
    buckets=(1, 2, 3, 4, 5),
)

AGENT_EVENT_TOTAL = Counter(
    "coordination_agent_event_total",
    "Count of agent lifecycle events (started/completed/failed)",
    labelnames=("agent", "event"),
)

AGENT_LATENCY_SECONDS = Histogram(
    "coordination_agent_latency_seconds",
    "Latency for each agent invocation",
    labelnames=("agent",),
)

AGENT_COST_UNITS_TOTAL = Counter(
    "coordination_agent_cost_units_total",
    "Cost units reported by agents",
    labelnames=("agent",),
)

AGENT_INVOKER_REQUEST_TOTAL = Counter(
    "coordination_agent_invoker_request_total",
    "HTTP requests sent to the remote agent service by outcome",
    labelnames=("agent", "outcome"),
)

QUALITY_GATE_FAILURES_TOTAL = Counter(
    "coordination_quality_gate_failures_total",
    "Quality gate rejections by gate and agent",
    labelnames=("gate", "agent"),
)

HANDOFF_TOTAL = Counter(
    "coordination_handoff_total",
    "Agent handoffs by reason",
    labelnames=("reason",),
)


def mark_coordination_started(*, pattern: str, agent_count: int) -> None:
    COORDINATION_ACTIVE_GAUGE.labels(pattern=pattern).inc()
    COORDINATION_RUNS_TOTAL.labels(pattern, "started").inc()
    COORDINATION_AGENT_COUNT.labels(pattern=pattern).observe(agent_count)


def mark_coordination_finished(*, pattern: str, status: str, latency: float | None = None) -> None:
    COORDINATION_ACTIVE_GAUGE.labels(pattern=pattern).dec()
    COORDINATION_RUNS_TOTAL.labels(pattern, status).inc()
    if latency is not None:
        COORDINATION_LATENCY_SECONDS.labels(pattern=pattern).observe(max(latency, 0.0))


def observe_feedback_iterations(*, iterations: int, converged: bool) -> None:
    FEEDBACK_LOOP_ITERATIONS.labels(converged=str(converged).lower()).observe(iterations)


def increment_agent_event(*, agent: str, event: str) -> None:
    AGENT_EVENT_TOTAL.labels(agent=agent, event=event).inc()


def observe_agent_latency(*, agent: str, latency: float) -> None:
    AGENT_LATENCY_SECONDS.labels(agent=agent).observe(max(latency, 0.0))


def record_agent_cost(*, agent: str, cost_units: float) -> None:
    if cost_units > 0:
        AGENT_COST_UNITS_TOTAL.labels(agent=agent).inc(cost_units)


def record_agent_invoker_request(*, agent: str, outcome: str) -> None:
    AGENT_INVOKER_REQUEST_TOTAL.labels(agent=agent, outcome=outcome).inc()


def increment_quality_gate_failure(*, gate: str, agent: str) -> None:
    QUALITY_GATE_FAILURES_TOTAL.labels(gate=gate, agent=agent).inc()


def increment_handoff(*, reason: str) -> None:
    HANDOFF_TOTAL.labels(reason=reason).inc()
