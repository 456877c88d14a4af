# chuk_ai_orchestrator/orchestration/loop.py
"""
OrchestrationLoop - the per-turn state machine.

    IDLE -> AWAITING_MODEL -> FINAL_ANSWER
                           -> TOOL_CALL_REQUESTED -> TOOL_EXECUTING -> AWAITING_MODEL
    global: ABORTED (max turns exceeded), FAILED (error)

Every provider attempt gets a fresh budget plan. The only side effects are
``ConversationHistory.append`` and ``compact``; a failed turn is rolled back
to the state before the turn began, a cancelled step to the state before
that step.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field

from chuk_ai_orchestrator.config import OrchestratorConfig
from chuk_ai_orchestrator.context.allocator import Allocation, ContextBudgetAllocator
from chuk_ai_orchestrator.exceptions import (
    OrchestratorError,
    ProviderError,
    ProviderErrorKind,
    ToolError,
    ToolErrorKind,
)
from chuk_ai_orchestrator.guards.rate_limit import RateLimitGuard, RateLimitState
from chuk_ai_orchestrator.history import CompactionResult, ConversationHistory, HistoryCheckpoint
from chuk_ai_orchestrator.models.budget import BudgetPlan
from chuk_ai_orchestrator.models.completion import CompletionRequest, CompletionResponse
from chuk_ai_orchestrator.models.enums import AbortReason, LoopState, MessageRole
from chuk_ai_orchestrator.models.message import Message
from chuk_ai_orchestrator.models.retrieval import RetrievedChunk
from chuk_ai_orchestrator.models.tools import ToolCallRequest, ToolSet
from chuk_ai_orchestrator.orchestration.trace import TurnTrace
from chuk_ai_orchestrator.providers.base import CompletionProvider
from chuk_ai_orchestrator.retrieval.middleware import RetrievalMiddleware
from chuk_ai_orchestrator.storage.base import ConversationStore
from chuk_ai_orchestrator.summarizer import Summarizer
from chuk_ai_orchestrator.tokens import TokenAccountant
from chuk_ai_orchestrator.tools.registry import ToolRegistry, render_result

logger = logging.getLogger(__name__)


def render_call(call: ToolCallRequest) -> str:
    """Text form of a tool call, as stored and counted in history."""
    payload = {"name": call.name, "arguments": call.arguments}
    return json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)


class TurnResult(BaseModel):
    """Outcome of one user turn."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: LoopState
    answer: str | None = None
    error: OrchestratorError | None = None
    error_message: str | None = None
    abort_reason: AbortReason | None = None
    turn_counter: int = 0
    plans: list[BudgetPlan] = Field(default_factory=list)
    trace: TurnTrace = Field(default_factory=TurnTrace)

    @property
    def succeeded(self) -> bool:
        return self.state == LoopState.FINAL_ANSWER


class _StepOutcome(BaseModel):
    """Ids produced by a committed tool step."""

    result_ids: list[str] = Field(default_factory=list)
    call_ids: list[str] = Field(default_factory=list)


class OrchestrationLoop:
    """
    Drives one session's turns against the completion provider.

    One turn runs at a time; ``run_turn`` waits for any turn in flight.
    Tool discovery and the first retrieval run concurrently on the first
    turn, and discovery is retried on later turns until it succeeds.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        history: ConversationHistory,
        *,
        accountant: TokenAccountant,
        tools: ToolRegistry | None = None,
        retrieval: RetrievalMiddleware | None = None,
        config: OrchestratorConfig | None = None,
        allocator: ContextBudgetAllocator | None = None,
        guard: RateLimitGuard | None = None,
        store: ConversationStore | None = None,
    ) -> None:
        self.provider = provider
        self.history = history
        self.tools = tools
        self.retrieval = retrieval
        self.config = config or OrchestratorConfig()
        self.store = store
        self._accountant = accountant
        self.allocator = allocator or ContextBudgetAllocator(accountant, self.config)
        self.guard = guard or RateLimitGuard(self.config.rate_limit)

        self.state = LoopState.IDLE
        self.turn_counter = 0
        self._tools_discovered = False
        self._lock = asyncio.Lock()
        self._trace = TurnTrace()
        self._step = 0

    @property
    def session_id(self) -> str:
        return self.history.session_id

    @property
    def tool_set(self) -> ToolSet:
        return self.tools.tool_set if self.tools is not None else ToolSet()

    @classmethod
    async def from_store(
        cls,
        store: ConversationStore,
        session_id: str,
        provider: CompletionProvider,
        *,
        accountant: TokenAccountant,
        config: OrchestratorConfig | None = None,
        summarizer: Summarizer | None = None,
        **kwargs,
    ) -> OrchestrationLoop:
        """Resume a stored session, or start an empty one under ``session_id``."""
        config = config or OrchestratorConfig()
        history_kwargs = {"keep_recent": config.keep_recent, "summary_max_tokens": config.summary_max_tokens}
        conversation = await store.get(session_id)
        if conversation is not None:
            history = ConversationHistory.from_conversation(conversation, accountant, summarizer, **history_kwargs)
            logger.info("Resumed session %s with %d messages", session_id, len(history))
        else:
            history = ConversationHistory(accountant, summarizer, session_id=session_id, **history_kwargs)
        return cls(provider, history, accountant=accountant, config=config, store=store, **kwargs)

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    async def run_turn(self, user_input: str) -> TurnResult:
        """Run one user turn to a terminal state."""
        async with self._lock:
            return await self._run_turn(user_input)

    async def _run_turn(self, user_input: str) -> TurnResult:
        self._trace = TurnTrace(turn_id=uuid.uuid4().hex[:12])
        self.state = LoopState.IDLE
        self.turn_counter = 0
        self._step = 0
        plans: list[BudgetPlan] = []

        turn_checkpoint = self.history.checkpoint()
        step_checkpoint = turn_checkpoint
        user_message = self.history.new_message(MessageRole.USER, user_input)

        try:
            chunks = await self._prepare(user_input)
            self.history.append(user_message)
            self._transition(LoopState.AWAITING_MODEL, "user input")

            guard_state = self.guard.start(self.config.max_tokens)
            outcome = _StepOutcome()
            while True:
                self._step += 1
                if self._step > 1:
                    step_checkpoint = self.history.checkpoint()

                response = await self._complete(user_message, chunks, outcome, guard_state, plans)
                if not response.is_tool_call:
                    self.history.append(self.history.new_message(MessageRole.ASSISTANT, response.text))
                    self._transition(LoopState.FINAL_ANSWER)
                    await self._save()
                    logger.info("Turn finished after %d tool steps", self.turn_counter)
                    return self._result(LoopState.FINAL_ANSWER, plans, answer=response.text)

                if response.text:
                    logger.debug("Discarding text sent alongside tool calls: %r", response.text)
                self._transition(LoopState.TOOL_CALL_REQUESTED, ", ".join(c.name for c in response.tool_calls))
                outcome = await self._execute_tools(response.tool_calls, user_message, chunks, guard_state)
                self.turn_counter += 1

                if self.turn_counter >= self.config.max_turns:
                    self._transition(LoopState.ABORTED, AbortReason.MAX_TURNS_EXCEEDED.value)
                    await self._save()
                    logger.warning("Turn aborted: %d tool steps without a final answer", self.turn_counter)
                    return self._result(
                        LoopState.ABORTED,
                        plans,
                        abort_reason=AbortReason.MAX_TURNS_EXCEEDED,
                        error_message=f"No final answer after {self.turn_counter} tool steps",
                    )
                self._transition(LoopState.AWAITING_MODEL)

        except asyncio.CancelledError:
            self._rollback(step_checkpoint)
            self.state = LoopState.IDLE
            logger.info("Turn cancelled during step %d; history restored", self._step)
            raise
        except OrchestratorError as e:
            self._rollback(turn_checkpoint)
            self._transition(LoopState.FAILED, type(e).__name__)
            logger.error("Turn failed: %s", e)
            return self._result(LoopState.FAILED, plans, error=e, error_message=self._describe(e))
        except Exception:
            self._rollback(turn_checkpoint)
            self._transition(LoopState.FAILED, "unexpected error")
            raise

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _prepare(self, user_input: str) -> list[RetrievedChunk]:
        """Discovery (until it succeeds once) alongside retrieval for this turn."""
        if self.tools is not None and not self._tools_discovered:
            # Both coroutines run to completion before any error is raised.
            outcomes = await asyncio.gather(self._discover(), self._search(user_input), return_exceptions=True)
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
            return outcomes[1]
        return await self._search(user_input)

    async def _discover(self) -> None:
        try:
            await self.tools.discover()
        except ToolError as e:
            logger.warning("Tool discovery failed, continuing without tools: %s", e)
            return
        self._tools_discovered = True

    async def _search(self, user_input: str) -> list[RetrievedChunk]:
        if self.retrieval is None:
            return []
        return await self.retrieval.search(user_input)

    async def _complete(
        self,
        user_message: Message,
        chunks: Sequence[RetrievedChunk],
        outcome: _StepOutcome,
        guard_state: RateLimitState,
        plans: list[BudgetPlan],
    ) -> CompletionResponse:
        """One provider round-trip, retried through the rate-limit guard."""
        tool_set = self.tool_set
        attempt = 0
        while True:
            attempt += 1
            allocation = await self._allocate(
                user_message, chunks, tool_set, guard_state.max_tokens, outcome.result_ids
            )
            plans.append(allocation.plan)
            self._trace.record_plan(
                self._step,
                attempt,
                allocation.plan,
                message_ids=[m.id for m in allocation.messages],
                chunk_sources=[c.source_id for c in allocation.context_block.chunks],
            )
            request = CompletionRequest(
                system=self.config.preamble,
                tools=list(tool_set),
                messages=allocation.messages,
                max_output_tokens=self.config.max_output_tokens,
            )
            try:
                response = await self._call_provider(request)
            except ProviderError as e:
                if not e.is_rate_limit:
                    raise
                protected = {user_message.id, *outcome.result_ids, *outcome.call_ids}

                async def compact(new_max: int) -> CompactionResult:
                    target = max(0, new_max - self._accountant.count(self.config.preamble) - tool_set.schema_cost)
                    return await self.history.compact(target, protected_ids=protected)

                await self.guard.handle(e, guard_state, compact)
                continue
            guard_state.reset_failures()
            return response

    async def _call_provider(self, request: CompletionRequest) -> CompletionResponse:
        try:
            return await asyncio.wait_for(self.provider.complete(request), timeout=self.config.provider_timeout)
        except TimeoutError as e:
            raise ProviderError(
                ProviderErrorKind.TRANSIENT, f"provider timed out after {self.config.provider_timeout}s"
            ) from e

    async def _execute_tools(
        self,
        tool_calls: Sequence[ToolCallRequest],
        user_message: Message,
        chunks: Sequence[RetrievedChunk],
        guard_state: RateLimitState,
    ) -> _StepOutcome:
        """Dispatch every call, then commit the calls and their trimmed results."""
        self._transition(LoopState.TOOL_EXECUTING)
        tool_set = self.tool_set
        call_messages: list[Message] = []
        raw_results: list[Message] = []

        for call in tool_calls:
            call_messages.append(
                self.history.new_message(
                    MessageRole.TOOL_CALL,
                    render_call(call),
                    tool_call_id=call.id,
                    tool_name=call.name,
                    arguments=call.arguments,
                )
            )
            content, is_error = await self._dispatch(call, tool_set)
            raw_results.append(
                self.history.new_message(
                    MessageRole.TOOL_RESULT,
                    content,
                    tool_call_id=call.id,
                    tool_name=call.name,
                    is_error=is_error,
                )
            )

        for message in call_messages:
            self.history.append(message)
        allocation = await self._allocate(
            user_message, chunks, tool_set, guard_state.max_tokens, (), extra_pending=raw_results
        )
        for message in allocation.pending_results:
            self.history.append(message)

        return _StepOutcome(
            result_ids=[m.id for m in allocation.pending_results],
            call_ids=[m.id for m in call_messages],
        )

    async def _dispatch(self, call: ToolCallRequest, tool_set: ToolSet) -> tuple[str, bool]:
        try:
            if self.tools is None:
                raise ToolError(ToolErrorKind.NOT_FOUND, call.name, f"no tool named '{call.name}' is available")
            result = await self.tools.dispatch(call.name, call.arguments, tool_set)
        except ToolError as e:
            logger.warning("Tool call %s failed (%s): %s", call.name, e.kind.value, e)
            self._trace.record_tool_call(self._step, call.name, ok=False, error_kind=e.kind.value)
            return e.as_result_text(), True
        self._trace.record_tool_call(self._step, call.name, ok=True)
        return render_result(result), False

    async def _allocate(
        self,
        user_message: Message,
        chunks: Sequence[RetrievedChunk],
        tool_set: ToolSet,
        max_tokens: int,
        pending_ids: Sequence[str],
        extra_pending: Sequence[Message] = (),
    ) -> Allocation:
        return await self.allocator.allocate(
            self.history,
            max_tokens=max_tokens,
            preamble=self.config.preamble,
            tools=tool_set,
            turn_message_id=user_message.id,
            chunks=chunks,
            pending_ids=pending_ids,
            extra_pending=extra_pending,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transition(self, to_state: LoopState, detail: str | None = None) -> None:
        self._trace.record_transition(self._step, self.state, to_state, detail)
        logger.debug("State %s -> %s (step %d)", self.state.value, to_state.value, self._step)
        self.state = to_state

    def _rollback(self, checkpoint: HistoryCheckpoint) -> None:
        self.history.rollback(checkpoint)

    async def _save(self) -> None:
        if self.store is None:
            return
        try:
            await self.store.save(self.history.to_conversation())
        except OrchestratorError as e:
            logger.error("Could not save session %s: %s", self.session_id, e)

    def _result(self, state: LoopState, plans: list[BudgetPlan], **kwargs) -> TurnResult:
        return TurnResult(
            state=state,
            turn_counter=self.turn_counter,
            plans=list(plans),
            trace=self._trace,
            **kwargs,
        )

    @staticmethod
    def _describe(error: OrchestratorError) -> str:
        if isinstance(error, ProviderError):
            if error.is_rate_limit:
                return f"The model provider is rate limiting requests; please try again later ({error})"
            return f"The model provider request failed ({error.kind.value}): {error}"
        return str(error)
