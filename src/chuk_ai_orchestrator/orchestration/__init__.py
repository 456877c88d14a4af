# chuk_ai_orchestrator/orchestration/__init__.py
"""Turn state machine and its trace."""

from chuk_ai_orchestrator.orchestration.loop import OrchestrationLoop, TurnResult, render_call
from chuk_ai_orchestrator.orchestration.trace import PlanRecord, StateTransition, TurnTrace, TurnTraceSummary

__all__ = [
    "OrchestrationLoop",
    "PlanRecord",
    "StateTransition",
    "TurnResult",
    "TurnTrace",
    "TurnTraceSummary",
    "render_call",
]
