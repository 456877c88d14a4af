# chuk_ai_orchestrator/exceptions.py
"""
Error taxonomy of the orchestration core.

Every failure that crosses a component boundary is one of the tagged errors
below. ``kind`` identifies the variant; callers branch on it rather than on
message text.
"""

from __future__ import annotations

from enum import Enum


class OrchestratorError(Exception):
    """Base class for all orchestration errors."""


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class ProviderErrorKind(str, Enum):
    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    TRANSIENT = "transient"
    MALFORMED = "malformed"


class ProviderError(OrchestratorError):
    """The completion provider rejected or failed a request."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str = "",
        *,
        retry_after: float | None = None,
    ) -> None:
        self.kind = kind
        self.retry_after = retry_after
        super().__init__(message or kind.value)

    @property
    def is_rate_limit(self) -> bool:
        return self.kind == ProviderErrorKind.RATE_LIMIT

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value!r}, message={str(self)!r}, retry_after={self.retry_after!r})"


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class ToolErrorKind(str, Enum):
    TIMEOUT = "timeout"
    INVALID_ARGS = "invalid_args"
    REMOTE_FAILURE = "remote_failure"
    NOT_FOUND = "not_found"


class ToolError(OrchestratorError):
    """A tool could not be invoked or failed remotely."""

    def __init__(self, kind: ToolErrorKind, tool_name: str, message: str = "") -> None:
        self.kind = kind
        self.tool_name = tool_name
        super().__init__(message or f"{kind.value}: {tool_name}")

    def as_result_text(self) -> str:
        """Text the model sees in place of a tool result."""
        return f"Error ({self.kind.value}) calling tool '{self.tool_name}': {self}"


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


class RetrievalErrorKind(str, Enum):
    EMBEDDING_FAILED = "embedding_failed"
    STORE_UNAVAILABLE = "store_unavailable"


class RetrievalError(OrchestratorError):
    """Embedding lookup or vector store query failed."""

    def __init__(self, kind: RetrievalErrorKind, message: str = "") -> None:
        self.kind = kind
        super().__init__(message or kind.value)


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------


class BudgetErrorKind(str, Enum):
    EXCEEDED = "exceeded"


class BudgetError(OrchestratorError):
    """The non-negotiable floor does not fit the token ceiling."""

    def __init__(self, floor: int, max_tokens: int, kind: BudgetErrorKind = BudgetErrorKind.EXCEEDED) -> None:
        self.kind = kind
        self.floor = floor
        self.max_tokens = max_tokens
        super().__init__(
            f"Request floor of {floor} tokens (preamble, tool schemas and current message) "
            f"exceeds the {max_tokens} token limit"
        )


# ---------------------------------------------------------------------------
# History / storage
# ---------------------------------------------------------------------------


class HistoryInvariantError(OrchestratorError):
    """Conversation bookkeeping no longer matches its messages."""


class StorageError(OrchestratorError):
    """A conversation store could not load or save a conversation."""
