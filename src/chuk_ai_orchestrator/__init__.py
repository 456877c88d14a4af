# chuk_ai_orchestrator/__init__.py
"""
CHUK AI Orchestrator - context-budget orchestration for tool-using LLM agents.

For every user turn the orchestrator assembles a request that fits a strict
token ceiling (preamble, tool schemas, history, retrieved documentation and
tool results), drives the tool-call protocol to a final answer, and recovers
from provider rate limits without corrupting the conversation.

Quick start:
    from chuk_ai_orchestrator import (
        AnthropicCompletionProvider,
        ConversationHistory,
        OrchestrationLoop,
        TokenAccountant,
    )

    accountant = TokenAccountant()
    loop = OrchestrationLoop(
        AnthropicCompletionProvider(),
        ConversationHistory(accountant),
        accountant=accountant,
    )
    result = await loop.run_turn("What does the deploy script do?")
"""

import logging

from chuk_ai_orchestrator.config import OrchestratorConfig, RateLimitConfig
from chuk_ai_orchestrator.context import Allocation, ContextBudgetAllocator
from chuk_ai_orchestrator.exceptions import (
    BudgetError,
    HistoryInvariantError,
    OrchestratorError,
    ProviderError,
    ProviderErrorKind,
    RetrievalError,
    RetrievalErrorKind,
    StorageError,
    ToolError,
    ToolErrorKind,
)
from chuk_ai_orchestrator.guards import RateLimitGuard
from chuk_ai_orchestrator.history import CompactionResult, ConversationHistory
from chuk_ai_orchestrator.models import (
    BudgetPlan,
    CompletionRequest,
    CompletionResponse,
    ContextBlock,
    Conversation,
    LoopState,
    Message,
    MessageRole,
    RetrievedChunk,
    Segment,
    ToolCallRequest,
    ToolDescriptor,
    ToolSet,
)
from chuk_ai_orchestrator.orchestration import OrchestrationLoop, TurnResult, TurnTrace
from chuk_ai_orchestrator.providers import (
    AnthropicCompletionProvider,
    CompletionProvider,
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
)
from chuk_ai_orchestrator.retrieval import InMemoryVectorStore, RetrievalMiddleware, VectorStore
from chuk_ai_orchestrator.storage import (
    ConversationStore,
    FileConversationStore,
    InMemoryConversationStore,
)
from chuk_ai_orchestrator.summarizer import LLMSummarizer, SummarizationStrategy, Summarizer, TruncatingSummarizer
from chuk_ai_orchestrator.tokens import TiktokenTokenizer, TokenAccountant, Tokenizer
from chuk_ai_orchestrator.tools import InProcessToolTransport, ToolRegistry, ToolTransport

__version__ = "0.1.0"

# Library code never configures handlers
logging.getLogger(__name__).addHandler(logging.NullHandler())


def get_version() -> str:
    """Get the package version."""
    return __version__


__all__ = [
    "__version__",
    "get_version",
    # config
    "OrchestratorConfig",
    "RateLimitConfig",
    # errors
    "BudgetError",
    "HistoryInvariantError",
    "OrchestratorError",
    "ProviderError",
    "ProviderErrorKind",
    "RetrievalError",
    "RetrievalErrorKind",
    "StorageError",
    "ToolError",
    "ToolErrorKind",
    # models
    "BudgetPlan",
    "CompletionRequest",
    "CompletionResponse",
    "ContextBlock",
    "Conversation",
    "LoopState",
    "Message",
    "MessageRole",
    "RetrievedChunk",
    "Segment",
    "ToolCallRequest",
    "ToolDescriptor",
    "ToolSet",
    # components
    "Allocation",
    "CompactionResult",
    "ContextBudgetAllocator",
    "ConversationHistory",
    "OrchestrationLoop",
    "RateLimitGuard",
    "RetrievalMiddleware",
    "TokenAccountant",
    "ToolRegistry",
    "TurnResult",
    "TurnTrace",
    # collaborators
    "AnthropicCompletionProvider",
    "CompletionProvider",
    "ConversationStore",
    "EmbeddingProvider",
    "FileConversationStore",
    "InMemoryConversationStore",
    "InMemoryVectorStore",
    "InProcessToolTransport",
    "LLMSummarizer",
    "OpenAIEmbeddingProvider",
    "SummarizationStrategy",
    "Summarizer",
    "TiktokenTokenizer",
    "Tokenizer",
    "ToolTransport",
    "TruncatingSummarizer",
    "VectorStore",
]
