# chuk_ai_orchestrator/history.py
"""
ConversationHistory - the explicitly owned log of a session's turns.

The only ways to change the log are ``append`` and ``compact``, plus
``rollback`` to a checkpoint taken earlier in the same session so that a
failed or cancelled step leaves no trace. Token totals are recomputed and
checked after every mutation.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection, Iterator, Sequence

from pydantic import BaseModel, ConfigDict, Field

from chuk_ai_orchestrator.exceptions import HistoryInvariantError, OrchestratorError
from chuk_ai_orchestrator.models.enums import MessageRole
from chuk_ai_orchestrator.models.message import Conversation, Message
from chuk_ai_orchestrator.summarizer import Summarizer, TruncatingSummarizer
from chuk_ai_orchestrator.tokens import TokenAccountant

logger = logging.getLogger(__name__)

MIN_KEEP_RECENT = 2


class HistoryCheckpoint(BaseModel):
    """Immutable copy of the message sequence at a point in time."""

    model_config = ConfigDict(frozen=True)

    messages: tuple[Message, ...] = ()

    @property
    def total_tokens(self) -> int:
        return sum(m.token_count for m in self.messages)


class CompactionResult(BaseModel):
    """Outcome of one ``compact`` call."""

    compacted: bool = False
    tokens_before: int = 0
    tokens_after: int = 0
    replaced_ids: list[str] = Field(default_factory=list)
    summary_ids: list[str] = Field(default_factory=list)
    fits: bool = True

    @property
    def tokens_saved(self) -> int:
        return self.tokens_before - self.tokens_after


def unit_bounds(messages: Sequence[Message]) -> list[tuple[int, int]]:
    """
    Split messages into units as ``(start, end)`` index pairs.

    Consecutive ToolCall messages and the ToolResult messages answering them
    form one unit; every other message is a unit of its own.
    """
    units: list[tuple[int, int]] = []
    i = 0
    while i < len(messages):
        j = i + 1
        if messages[i].role == MessageRole.TOOL_CALL:
            call_ids = {messages[i].tool_call_id}
            while j < len(messages) and messages[j].role == MessageRole.TOOL_CALL:
                call_ids.add(messages[j].tool_call_id)
                j += 1
            while (
                j < len(messages)
                and messages[j].role == MessageRole.TOOL_RESULT
                and messages[j].tool_call_id in call_ids
            ):
                j += 1
        units.append((i, j))
        i = j
    return units


class ConversationHistory:
    """
    Ordered, append-mostly message log for one session.

    Compaction replaces the oldest contiguous run of non-pinned messages
    with a single Summary message. The most recent ``keep_recent`` messages
    and any protected ids passed to ``compact`` are never compacted.
    """

    def __init__(
        self,
        accountant: TokenAccountant,
        summarizer: Summarizer | None = None,
        *,
        session_id: str | None = None,
        keep_recent: int = MIN_KEEP_RECENT,
        summary_max_tokens: int = 256,
        messages: Sequence[Message] | None = None,
    ) -> None:
        if keep_recent < MIN_KEEP_RECENT:
            raise ValueError(f"keep_recent must be at least {MIN_KEEP_RECENT}")
        self.session_id = session_id or str(uuid.uuid4())
        self._accountant = accountant
        self._summarizer = summarizer or TruncatingSummarizer(accountant)
        self.keep_recent = keep_recent
        self.summary_max_tokens = summary_max_tokens
        self._messages: list[Message] = list(messages or [])
        self._total_tokens = 0
        self._evictable_tokens = 0
        self._recompute()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def total_tokens(self) -> int:
        return self._total_tokens

    @property
    def evictable_tokens(self) -> int:
        """Token cost of non-pinned messages."""
        return self._evictable_tokens

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    def index_of(self, message_id: str) -> int:
        for index, message in enumerate(self._messages):
            if message.id == message_id:
                return index
        raise KeyError(message_id)

    def new_message(self, role: MessageRole, content: str, **kwargs) -> Message:
        """Build a message with its token count filled in (does not append)."""
        return Message(role=role, content=content, token_count=self._accountant.count(content), **kwargs)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def append(self, message: Message) -> None:
        """Append a message and recompute totals."""
        if any(m.id == message.id for m in self._messages):
            raise HistoryInvariantError(f"message {message.id} is already in the history")
        self._messages.append(message)
        self._recompute()

    async def compact(
        self,
        target_budget: int,
        protected_ids: Collection[str] = (),
    ) -> CompactionResult:
        """
        Summarize old messages until the history costs at most ``target_budget``.

        Pinned messages, ``protected_ids`` (the current turn's user message,
        unseen tool results) and the ``keep_recent`` newest messages are
        never compacted. Nothing happens when the history already fits. The
        new sequence is committed only after every summary has been
        produced, so a failing summarizer leaves the history untouched. An
        ``OrchestratorError`` from the summarizer (a rate-limited or timed
        out provider) is reported as ``fits=False``; other errors propagate.
        """
        before = self._total_tokens
        if before <= target_budget:
            return CompactionResult(tokens_before=before, tokens_after=before, fits=True)

        messages = list(self._messages)
        limit = len(messages) - self.keep_recent
        protected = frozenset(protected_ids)

        total = before
        replaced_ids: list[str] = []
        summary_ids: list[str] = []
        start = 0

        while total > target_budget:
            run = self._next_run(messages, start, limit, protected)
            if run is None:
                break
            run_start, boundaries = run
            excess = total - target_budget

            # Smallest unit-aligned prefix of the run that clears the excess.
            acc = 0
            run_end = boundaries[-1]
            for boundary in boundaries:
                acc = sum(m.token_count for m in messages[run_start:boundary])
                if max(acc - self.summary_max_tokens, 1) >= excess:
                    run_end = boundary
                    break
            acc = sum(m.token_count for m in messages[run_start:run_end])

            if acc < 2:
                start = run_end
                continue

            budget = min(self.summary_max_tokens, acc - 1, max(1, acc - excess))
            selected = messages[run_start:run_end]
            try:
                text = await self._summarizer.summarize(selected, budget)
            except OrchestratorError as e:
                logger.warning(
                    "Summarizer failed, leaving %d tokens of history uncompacted: %s",
                    before,
                    e,
                )
                return CompactionResult(tokens_before=before, tokens_after=before, fits=False)
            text, tokens = self._accountant.truncate(text, budget)
            summary = Message(role=MessageRole.SUMMARY, content=text, token_count=tokens)

            messages[run_start:run_end] = [summary]
            replaced_ids.extend(m.id for m in selected)
            summary_ids.append(summary.id)
            limit -= len(selected) - 1
            total = total - acc + tokens
            start = run_start + 1

        if not summary_ids:
            logger.warning(
                "History of %d tokens cannot be compacted toward %d (nothing eligible)",
                before,
                target_budget,
            )
            return CompactionResult(tokens_before=before, tokens_after=before, fits=False)

        self._messages = messages
        self._recompute()
        logger.info(
            "Compacted %d messages into %d summaries: %d -> %d tokens (target %d)",
            len(replaced_ids),
            len(summary_ids),
            before,
            self._total_tokens,
            target_budget,
        )
        return CompactionResult(
            compacted=True,
            tokens_before=before,
            tokens_after=self._total_tokens,
            replaced_ids=replaced_ids,
            summary_ids=summary_ids,
            fits=self._total_tokens <= target_budget,
        )

    def checkpoint(self) -> HistoryCheckpoint:
        return HistoryCheckpoint(messages=tuple(self._messages))

    def rollback(self, checkpoint: HistoryCheckpoint) -> None:
        """Restore the exact message sequence captured by ``checkpoint``."""
        logger.debug("Rolling history back from %d to %d messages", len(self._messages), len(checkpoint.messages))
        self._messages = list(checkpoint.messages)
        self._recompute()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_conversation(self) -> Conversation:
        return Conversation(session_id=self.session_id, messages=list(self._messages))

    @classmethod
    def from_conversation(
        cls,
        conversation: Conversation,
        accountant: TokenAccountant,
        summarizer: Summarizer | None = None,
        **kwargs,
    ) -> ConversationHistory:
        return cls(
            accountant,
            summarizer,
            session_id=conversation.session_id,
            messages=conversation.messages,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _next_run(
        messages: list[Message],
        start: int,
        limit: int,
        protected: frozenset[str],
    ) -> tuple[int, list[int]] | None:
        """
        Find the oldest run of whole, non-pinned units within ``[start, limit)``.

        Returns the run start and the end index of each unit in the run.
        """
        boundaries: list[int] = []
        run_start: int | None = None
        for unit_start, unit_end in unit_bounds(messages):
            if unit_start < start:
                continue
            eligible = unit_end <= limit and not any(
                m.pinned or m.id in protected for m in messages[unit_start:unit_end]
            )
            if eligible:
                if run_start is None:
                    run_start = unit_start
                boundaries.append(unit_end)
            elif run_start is not None:
                break
        if run_start is None:
            return None
        return run_start, boundaries

    def _recompute(self) -> None:
        self._total_tokens = sum(m.token_count for m in self._messages)
        self._evictable_tokens = sum(m.token_count for m in self._messages if not m.pinned)
        self._check_invariants()

    def _check_invariants(self) -> None:
        ids = [m.id for m in self._messages]
        if len(ids) != len(set(ids)):
            raise HistoryInvariantError("duplicate message ids in history")
        if self._evictable_tokens > self._total_tokens:
            raise HistoryInvariantError("evictable tokens exceed total tokens")
