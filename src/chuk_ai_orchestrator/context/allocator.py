# chuk_ai_orchestrator/context/allocator.py
"""
Context Budget Allocator.

Builds the BudgetPlan and the concrete request contents for one attempt:

1. The floor (preamble, tool schemas and the current user message) is
   reserved first. Tool-call messages that own pending results and pinned
   history units are required as well.
2. What is left is handed to the negotiable segments in priority order.
   Each segment may use at most its configured fraction of the budget still
   unassigned when its turn comes; anything it leaves unused flows on.
3. History that does not fit verbatim is compacted before the backward walk.

Nothing here is cached. A plan is recomputed for every attempt, since the
rate-limit guard may shrink the ceiling in between.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence

from pydantic import BaseModel, Field

from chuk_ai_orchestrator.config import OrchestratorConfig
from chuk_ai_orchestrator.context.packer import attach_context, pack_context_block, trim_tool_result
from chuk_ai_orchestrator.exceptions import BudgetError
from chuk_ai_orchestrator.history import CompactionResult, ConversationHistory, unit_bounds
from chuk_ai_orchestrator.models.budget import BudgetPlan
from chuk_ai_orchestrator.models.enums import Segment
from chuk_ai_orchestrator.models.message import Message
from chuk_ai_orchestrator.models.retrieval import ContextBlock, RetrievedChunk
from chuk_ai_orchestrator.models.tools import ToolSet
from chuk_ai_orchestrator.tokens import TokenAccountant

logger = logging.getLogger(__name__)


class Allocation(BaseModel):
    """A BudgetPlan plus the trimmed contents it accounts for."""

    plan: BudgetPlan
    messages: list[Message] = Field(default_factory=list, description="Chronological request view")
    context_block: ContextBlock = Field(default_factory=ContextBlock.empty)
    pending_results: list[Message] = Field(default_factory=list, description="Trimmed pending tool results")
    segment_budgets: dict[Segment, int] = Field(default_factory=dict)
    dropped_ids: list[str] = Field(default_factory=list, description="History ids left out of this request")
    compaction: CompactionResult | None = None


class ContextBudgetAllocator:
    """Computes a budget plan across all context segments for one attempt."""

    def __init__(self, accountant: TokenAccountant, config: OrchestratorConfig | None = None) -> None:
        self._accountant = accountant
        self.config = config or OrchestratorConfig()

    async def allocate(
        self,
        history: ConversationHistory,
        *,
        max_tokens: int,
        preamble: str,
        tools: ToolSet,
        turn_message_id: str | None = None,
        chunks: Sequence[RetrievedChunk] = (),
        pending_ids: Collection[str] = (),
        extra_pending: Sequence[Message] = (),
        priority: Sequence[Segment] | None = None,
    ) -> Allocation:
        """
        Plan one request.

        Args:
            history: The session's conversation log (may be compacted).
            max_tokens: Token ceiling for this attempt.
            preamble: System preamble text.
            tools: Tool set advertised in this request.
            turn_message_id: Id of the current user message in ``history``.
            chunks: Candidate retrieval chunks for this turn.
            pending_ids: Ids of tool results in ``history`` the model has not seen.
            extra_pending: Tool results not yet appended to ``history``.
            priority: Segment order, defaults to the configured one.

        Raises:
            BudgetError: the floor (plus required history) exceeds ``max_tokens``.
        """
        priority = tuple(priority or self.config.priority)
        pending_set = frozenset(pending_ids)
        messages = history.messages

        preamble_tokens = self._accountant.count(preamble)
        tools_tokens = tools.schema_cost
        turn_message = next((m for m in messages if m.id == turn_message_id), None)
        current_turn_tokens = turn_message.token_count if turn_message else 0

        floor = preamble_tokens + tools_tokens + current_turn_tokens
        if floor > max_tokens:
            raise BudgetError(floor, max_tokens)

        pending_call_ids = self._pending_call_ids(messages, pending_set, extra_pending)
        required_ids = self._required_ids(messages, pending_call_ids, turn_message_id, pending_set)
        required_tokens = sum(m.token_count for m in messages if m.id in required_ids)
        if floor + required_tokens > max_tokens:
            raise BudgetError(floor + required_tokens, max_tokens)

        remaining = max_tokens - floor - required_tokens
        segment_budgets: dict[Segment, int] = {}
        history_tokens = required_tokens
        retrieval_block = ContextBlock.empty()
        trimmed_pending: dict[str, Message] = {}
        tool_result_tokens = 0
        included_ids: set[str] = set()
        dropped_ids: list[str] = []
        compaction: CompactionResult | None = None

        for segment in priority:
            cap = int(remaining * self.config.fraction_for(segment))
            segment_budgets[segment] = cap

            if segment == Segment.HISTORY:
                protected = set(pending_set) | required_ids
                if turn_message_id:
                    protected.add(turn_message_id)
                compaction = await self._compact_if_needed(history, cap, protected)
                included_ids, dropped_ids, used = self._walk_history(history.messages, cap, protected)
                history_tokens += used

            elif segment == Segment.RETRIEVAL:
                retrieval_block = pack_context_block(chunks, cap, self._accountant)
                used = retrieval_block.token_count

            else:
                pending = [m for m in history.messages if m.id in pending_set] + list(extra_pending)
                trimmed_pending = self._share_tool_results(pending, cap)
                used = sum(m.token_count for m in trimmed_pending.values())
                tool_result_tokens = used

            remaining -= used

        plan = BudgetPlan(
            max_tokens=max_tokens,
            preamble_tokens=preamble_tokens,
            tools_tokens=tools_tokens,
            current_turn_tokens=current_turn_tokens,
            history_tokens=history_tokens,
            retrieval_tokens=retrieval_block.token_count,
            tool_result_tokens=tool_result_tokens,
        )

        view: list[Message] = []
        for message in history.messages:
            if message.id == turn_message_id:
                view.append(attach_context(message, retrieval_block))
            elif message.id in pending_set:
                view.append(trimmed_pending[message.id])
            elif message.id in included_ids or message.id in required_ids:
                view.append(message)
        view.extend(trimmed_pending[m.id] for m in extra_pending)

        if dropped_ids:
            logger.info(
                "Left %d older messages out of the request (history budget %d)",
                len(dropped_ids),
                segment_budgets.get(Segment.HISTORY, 0),
            )
        logger.debug(
            "Budget plan: %s (segments %s)",
            plan.model_dump(),
            {s.value: b for s, b in segment_budgets.items()},
        )

        return Allocation(
            plan=plan,
            messages=view,
            context_block=retrieval_block,
            pending_results=[trimmed_pending[m.id] for m in self._ordered_pending(history, pending_set, extra_pending)],
            segment_budgets=segment_budgets,
            dropped_ids=dropped_ids,
            compaction=compaction,
        )

    def trim_tool_result(self, message: Message, budget: int) -> Message:
        """Truncate one tool result to ``budget`` tokens with the configured marker."""
        return trim_tool_result(message, budget, self._accountant, self.config.truncation_marker)

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    async def _compact_if_needed(
        self,
        history: ConversationHistory,
        cap: int,
        protected: set[str],
    ) -> CompactionResult | None:
        candidates = sum(m.token_count for m in history.messages if m.id not in protected)
        if candidates <= cap:
            return None
        # Target covers the whole log: protected messages stay as they are.
        fixed = sum(m.token_count for m in history.messages if m.id in protected)
        target = cap + fixed
        logger.info("History candidates of %d tokens exceed budget %d, compacting", candidates, cap)
        return await history.compact(target, protected_ids=protected)

    @staticmethod
    def _walk_history(
        messages: Sequence[Message],
        cap: int,
        protected: set[str],
    ) -> tuple[set[str], list[str], int]:
        """Most recent units first; stop at the first one that does not fit."""
        candidates = [m for m in messages if m.id not in protected]
        units = unit_bounds(candidates)
        included: set[str] = set()
        used = 0
        stop_at = 0
        for start, end in reversed(units):
            cost = sum(m.token_count for m in candidates[start:end])
            if used + cost > cap:
                stop_at = end
                break
            included.update(m.id for m in candidates[start:end])
            used += cost
        dropped = [m.id for m in candidates[:stop_at]]
        return included, dropped, used

    def _share_tool_results(self, pending: Sequence[Message], cap: int) -> dict[str, Message]:
        """Split ``cap`` evenly, smallest results first so unused shares flow on."""
        trimmed: dict[str, Message] = {}
        budget = cap
        ordered = sorted(pending, key=lambda m: m.token_count)
        for index, message in enumerate(ordered):
            share = budget // (len(ordered) - index)
            result = self.trim_tool_result(message, share)
            if result is not message:
                logger.warning(
                    "Tool result for %s truncated from %d to %d tokens",
                    message.tool_name or message.tool_call_id,
                    message.token_count,
                    result.token_count,
                )
            trimmed[message.id] = result
            budget -= result.token_count
        return trimmed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _pending_call_ids(
        messages: Sequence[Message],
        pending_set: frozenset[str],
        extra_pending: Sequence[Message],
    ) -> set[str]:
        call_ids = {m.tool_call_id for m in messages if m.id in pending_set}
        call_ids.update(m.tool_call_id for m in extra_pending)
        call_ids.discard(None)
        return call_ids

    @staticmethod
    def _required_ids(
        messages: Sequence[Message],
        pending_call_ids: set[str],
        turn_message_id: str | None,
        pending_set: frozenset[str],
    ) -> set[str]:
        """Tool calls owning pending results, and whole units holding a pinned message."""
        required = {m.id for m in messages if m.is_tool_call and m.tool_call_id in pending_call_ids}
        skip = required | pending_set | {turn_message_id}
        candidates = [m for m in messages if m.id not in skip]
        for start, end in unit_bounds(candidates):
            unit = candidates[start:end]
            if any(m.pinned for m in unit):
                required.update(m.id for m in unit)
        return required

    @staticmethod
    def _ordered_pending(
        history: ConversationHistory,
        pending_set: frozenset[str],
        extra_pending: Sequence[Message],
    ) -> list[Message]:
        return [m for m in history.messages if m.id in pending_set] + list(extra_pending)
