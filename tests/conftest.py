# tests/conftest.py
"""
Shared pytest fixtures and fakes for chuk_ai_orchestrator tests.

Token counts in tests come from a whitespace tokenizer so every number in an
assertion can be worked out by counting words.
"""

import logging
from collections.abc import Callable

import pytest

from chuk_ai_orchestrator.config import OrchestratorConfig, RateLimitConfig
from chuk_ai_orchestrator.exceptions import ProviderError, ProviderErrorKind
from chuk_ai_orchestrator.history import ConversationHistory
from chuk_ai_orchestrator.models.completion import CompletionRequest, CompletionResponse
from chuk_ai_orchestrator.models.enums import MessageRole
from chuk_ai_orchestrator.models.message import Message
from chuk_ai_orchestrator.models.retrieval import RetrievedChunk
from chuk_ai_orchestrator.models.tools import ToolCallRequest
from chuk_ai_orchestrator.tokens import TokenAccountant

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("chuk_ai_orchestrator").setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class WordTokenizer:
    """One token per whitespace-separated word."""

    def __init__(self) -> None:
        self._ids: dict[str, int] = {}
        self._words: list[str] = []

    def encode(self, text: str) -> list[int]:
        ids = []
        for word in text.split():
            if word not in self._ids:
                self._ids[word] = len(self._words)
                self._words.append(word)
            ids.append(self._ids[word])
        return ids

    def decode(self, tokens: list[int]) -> str:
        return " ".join(self._words[t] for t in tokens)


class ScriptedProvider:
    """
    Completion provider that replays a script.

    Each entry is a CompletionResponse, an exception to raise, or a callable
    taking the request. The last entry repeats once the script runs out.
    """

    def __init__(self, script: list) -> None:
        self.script = list(script)
        self.requests: list[CompletionRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.requests.append(request)
        index = min(len(self.requests), len(self.script)) - 1
        entry = self.script[index]
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            return entry(request)
        return entry


class RecordingSleep:
    """Drop-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def words(n: int, prefix: str = "w") -> str:
    """``n`` distinct words."""
    return " ".join(f"{prefix}{i}" for i in range(n))


def text_response(text: str = "done") -> CompletionResponse:
    return CompletionResponse(text=text)


def tool_response(name: str, arguments: dict | None = None, call_id: str = "call_1") -> CompletionResponse:
    return CompletionResponse(tool_calls=[ToolCallRequest(id=call_id, name=name, arguments=arguments or {})])


def always_tool(name: str, arguments: dict | None = None) -> Callable[[CompletionRequest], CompletionResponse]:
    """Script entry that requests a tool on every call, with a fresh call id."""
    counter = {"n": 0}

    def respond(request: CompletionRequest) -> CompletionResponse:
        counter["n"] += 1
        return tool_response(name, arguments, call_id=f"call_{counter['n']}")

    return respond


def chunk(source_id: str, text: str, score: float, accountant: TokenAccountant) -> RetrievedChunk:
    return RetrievedChunk(source_id=source_id, text=text, score=score, token_count=accountant.count(text))


def rate_limited(retry_after: float | None = None) -> ProviderError:
    return ProviderError(ProviderErrorKind.RATE_LIMIT, "slow down", retry_after=retry_after)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tokenizer():
    return WordTokenizer()


@pytest.fixture
def accountant(tokenizer):
    return TokenAccountant(tokenizer=tokenizer)


@pytest.fixture
def config():
    """Small, fast configuration."""
    return OrchestratorConfig(
        max_tokens=2000,
        max_turns=5,
        preamble="You are a test assistant.",
        provider_timeout=5.0,
        tool_timeout=1.0,
        retrieval_timeout=1.0,
        rate_limit=RateLimitConfig(max_retries=3),
    )


@pytest.fixture
def history(accountant):
    return ConversationHistory(accountant, session_id="test-session")


@pytest.fixture
def make_message(accountant):
    """Factory for messages with correct token counts."""

    def factory(role: MessageRole, content: str, **kwargs) -> Message:
        return Message(role=role, content=content, token_count=accountant.count(content), **kwargs)

    return factory


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
