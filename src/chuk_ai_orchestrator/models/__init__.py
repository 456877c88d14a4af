# chuk_ai_orchestrator/models/__init__.py
"""
Core models for the orchestration core.

All public names are re-exported here so callers can use
``from chuk_ai_orchestrator.models import Message``.
"""

from chuk_ai_orchestrator.models.budget import BudgetPlan  # noqa: F401
from chuk_ai_orchestrator.models.completion import (  # noqa: F401
    CompletionRequest,
    CompletionResponse,
    CompletionUsage,
)
from chuk_ai_orchestrator.models.enums import (  # noqa: F401
    TERMINAL_STATES,
    AbortReason,
    LoopState,
    MessageRole,
    Segment,
)
from chuk_ai_orchestrator.models.message import Conversation, Message  # noqa: F401
from chuk_ai_orchestrator.models.retrieval import (  # noqa: F401
    ContextBlock,
    RetrievedChunk,
    VectorMatch,
)
from chuk_ai_orchestrator.models.tools import (  # noqa: F401
    ToolCallRequest,
    ToolDescriptor,
    ToolSet,
)

__all__ = [
    # enums
    "AbortReason",
    "LoopState",
    "MessageRole",
    "Segment",
    "TERMINAL_STATES",
    # messages
    "Conversation",
    "Message",
    # budget
    "BudgetPlan",
    # tools
    "ToolCallRequest",
    "ToolDescriptor",
    "ToolSet",
    # retrieval
    "ContextBlock",
    "RetrievedChunk",
    "VectorMatch",
    # completion
    "CompletionRequest",
    "CompletionResponse",
    "CompletionUsage",
]
