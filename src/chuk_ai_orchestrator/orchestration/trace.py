# chuk_ai_orchestrator/orchestration/trace.py
"""
Turn trace.

Append-only record of one turn, for:
- Debugging: "what did the request look like on step N?"
- Tests: the exact sequence of state transitions and budget plans
- Grounding: which messages and chunks the model actually saw
"""

from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr

from chuk_ai_orchestrator.models.budget import BudgetPlan
from chuk_ai_orchestrator.models.enums import LoopState


class StateTransition(BaseModel):
    """One move of the turn state machine."""

    step: int
    from_state: LoopState
    to_state: LoopState
    detail: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class PlanRecord(BaseModel):
    """A budget plan together with what it put in the request."""

    step: int
    attempt: int
    plan: BudgetPlan
    message_ids: list[str] = Field(default_factory=list)
    chunk_sources: list[str] = Field(default_factory=list)


class TurnTraceSummary(BaseModel):
    transitions: int = 0
    plans: int = 0
    tool_calls: int = 0
    retries: int = 0
    by_state: dict[str, int] = Field(default_factory=dict)


class TurnTrace(BaseModel):
    """
    Append-only log of a single turn.

    Not event-sourcing, just enough to answer "what happened" after the
    turn is over.
    """

    turn_id: str = Field(default="")

    _transitions: list[StateTransition] = PrivateAttr(default_factory=list)
    _plans: list[PlanRecord] = PrivateAttr(default_factory=list)
    _tool_calls: list[dict[str, Any]] = PrivateAttr(default_factory=list)

    def record_transition(
        self,
        step: int,
        from_state: LoopState,
        to_state: LoopState,
        detail: str | None = None,
    ) -> StateTransition:
        transition = StateTransition(step=step, from_state=from_state, to_state=to_state, detail=detail)
        self._transitions.append(transition)
        return transition

    def record_plan(
        self,
        step: int,
        attempt: int,
        plan: BudgetPlan,
        message_ids: list[str] | None = None,
        chunk_sources: list[str] | None = None,
    ) -> PlanRecord:
        record = PlanRecord(
            step=step,
            attempt=attempt,
            plan=plan,
            message_ids=list(message_ids or []),
            chunk_sources=list(chunk_sources or []),
        )
        self._plans.append(record)
        return record

    def record_tool_call(self, step: int, name: str, ok: bool, error_kind: str | None = None) -> None:
        self._tool_calls.append({"step": step, "name": name, "ok": ok, "error_kind": error_kind})

    @property
    def transitions(self) -> list[StateTransition]:
        return list(self._transitions)

    @property
    def states(self) -> list[LoopState]:
        """Every state entered, in order."""
        return [t.to_state for t in self._transitions]

    @property
    def plans(self) -> list[BudgetPlan]:
        return [r.plan for r in self._plans]

    @property
    def plan_records(self) -> list[PlanRecord]:
        return list(self._plans)

    @property
    def tool_calls(self) -> list[dict[str, Any]]:
        return list(self._tool_calls)

    def get_plans_in_step(self, step: int) -> list[BudgetPlan]:
        return [r.plan for r in self._plans if r.step == step]

    def get_summary(self) -> TurnTraceSummary:
        by_state = Counter(t.to_state.value for t in self._transitions)
        retries = sum(1 for r in self._plans if r.attempt > 1)
        return TurnTraceSummary(
            transitions=len(self._transitions),
            plans=len(self._plans),
            tool_calls=len(self._tool_calls),
            retries=retries,
            by_state=dict(by_state),
        )
