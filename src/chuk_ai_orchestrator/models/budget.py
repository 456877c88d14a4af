# chuk_ai_orchestrator/models/budget.py
"""Per-attempt budget plan."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from chuk_ai_orchestrator.models.enums import Segment


class BudgetPlan(BaseModel):
    """
    Token allocation for one request attempt.

    A plan is built fresh for every attempt (including retries) and thrown
    away afterwards. The floor (preamble, tool schemas and the current user
    message) is fixed; the remaining fields hold what each negotiable segment
    actually used.
    """

    model_config = ConfigDict(frozen=True)

    max_tokens: int = Field(..., gt=0)
    preamble_tokens: int = Field(default=0, ge=0)
    tools_tokens: int = Field(default=0, ge=0)
    current_turn_tokens: int = Field(default=0, ge=0)
    history_tokens: int = Field(default=0, ge=0)
    retrieval_tokens: int = Field(default=0, ge=0)
    tool_result_tokens: int = Field(default=0, ge=0)

    @property
    def floor(self) -> int:
        """Non-negotiable cost: preamble, tool schemas and the current user turn."""
        return self.preamble_tokens + self.tools_tokens + self.current_turn_tokens

    @property
    def total(self) -> int:
        return (
            self.floor
            + self.history_tokens
            + self.retrieval_tokens
            + self.tool_result_tokens
        )

    @property
    def headroom(self) -> int:
        return self.max_tokens - self.total

    def segment_tokens(self, segment: Segment) -> int:
        if segment == Segment.HISTORY:
            return self.history_tokens
        if segment == Segment.RETRIEVAL:
            return self.retrieval_tokens
        return self.tool_result_tokens

    @model_validator(mode="after")
    def _fits_ceiling(self) -> BudgetPlan:
        if self.total > self.max_tokens:
            raise ValueError(f"budget plan total {self.total} exceeds max_tokens {self.max_tokens}")
        return self
