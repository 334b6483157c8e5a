"""
Orchestration Package

Agent coordination components:
- Dependency levelling, input mapping and condition evaluation
- Pattern executors (sequential, parallel, conditional, feedback loop)
- Handoff and collaboration coordinators
- Coordination engine and event bus
"""

from .collaboration import CollaborationCoordinator
from .conditions import ConditionEvaluator, MalformedPredicateError, parse_predicate
from .dispatch import AgentDispatcher
from .engine import CoordinationEngine
from .events import EventBus, Subscriber
from .handoff import HandoffCoordinator
from .leveling import level_dependencies
from .mapping import build_input
from .patterns import (
    ConditionalExecutor,
    FeedbackLoopExecutor,
    ParallelExecutor,
    PatternExecutor,
    SequentialExecutor,
    default_executors,
)
from .quality import QualityGate, minimum_confidence_gate
from .state import CoordinationExecution

__all__ = [
    # Engine
    "CoordinationEngine",
    "CoordinationExecution",
    "AgentDispatcher",
    # Planning helpers
    "level_dependencies",
    "build_input",
    "ConditionEvaluator",
    "MalformedPredicateError",
    "parse_predicate",
    # Patterns
    "PatternExecutor",
    "SequentialExecutor",
    "ParallelExecutor",
    "ConditionalExecutor",
    "FeedbackLoopExecutor",
    "default_executors",
    # Handoff / collaboration
    "HandoffCoordinator",
    "CollaborationCoordinator",
    # Quality gates
    "QualityGate",
    "minimum_confidence_gate",
    # Events
    "EventBus",
    "Subscriber",
]
