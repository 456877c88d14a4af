#!/usr/bin/env python3
"""
budget_demo.py - Context budgeting, tool steps and rate-limit recovery

Demonstrates:
1. Retrieval context packed into the current user message
2. A tool step whose oversized result is truncated to the remaining budget
3. Rate-limit recovery: a smaller plan, eager compaction, backoff
4. The max-turns abort when the model never stops calling tools

No API keys required: the completion provider is scripted and the
embedder is a toy keyword model.
"""

import asyncio

from chuk_ai_orchestrator import (
    CompletionResponse,
    ConversationHistory,
    InMemoryVectorStore,
    InProcessToolTransport,
    OrchestrationLoop,
    OrchestratorConfig,
    ProviderError,
    ProviderErrorKind,
    RateLimitConfig,
    RetrievalMiddleware,
    TokenAccountant,
    ToolCallRequest,
    ToolRegistry,
)
from chuk_ai_orchestrator.guards import RateLimitGuard

VOCAB = ("deploy", "config", "logs", "test")


class KeywordEmbedder:
    async def embed(self, text: str) -> list[float]:
        lowered = text.lower()
        return [1.0 if word in lowered else 0.0 for word in VOCAB]


class ScriptedProvider:
    """Replays canned responses; the last one repeats."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = 0

    async def complete(self, request):
        self.calls += 1
        entry = self.script[min(self.calls, len(self.script)) - 1]
        if isinstance(entry, Exception):
            raise entry
        return entry


def section(title: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"{title}")
    print("=" * 60)


def show_plans(result) -> None:
    for i, plan in enumerate(result.plans, 1):
        print(
            f"  plan {i}: total={plan.total}/{plan.max_tokens} "
            f"(floor={plan.floor}, history={plan.history_tokens}, "
            f"retrieval={plan.retrieval_tokens}, tools={plan.tool_result_tokens})"
        )


async def build_retrieval(accountant: TokenAccountant, config: OrchestratorConfig) -> RetrievalMiddleware:
    store = InMemoryVectorStore()
    embedder = KeywordEmbedder()
    docs = {
        "deploy.md": "Run make deploy from the repository root after the tests pass.",
        "config.md": "Configuration lives in settings.toml; environment variables override it.",
        "logs.md": "Application logs are written to /var/log/app and rotated daily.",
    }
    for source_id, text in docs.items():
        await store.upsert(source_id, await embedder.embed(text), {"source_id": source_id, "text": text})
    return RetrievalMiddleware.from_config(embedder, store, accountant, config)


def build_tools(accountant: TokenAccountant, config: OrchestratorConfig) -> ToolRegistry:
    transport = InProcessToolTransport()

    def read_logs(lines: int = 10) -> str:
        """Return the most recent log lines."""
        return "\n".join(f"2024-01-01 12:00:{i % 60:02d} INFO request served" for i in range(lines))

    transport.register(
        "read_logs",
        read_logs,
        input_schema={"type": "object", "properties": {"lines": {"type": "integer"}}},
    )
    return ToolRegistry.from_config(transport, accountant, config)


def call(name: str, call_id: str, **arguments) -> CompletionResponse:
    return CompletionResponse(tool_calls=[ToolCallRequest(id=call_id, name=name, arguments=arguments)])


async def main() -> None:
    print("Context Budget Orchestration Demo")
    print("No API keys required.\n")

    accountant = TokenAccountant()
    config = OrchestratorConfig(max_tokens=1500, max_turns=3, rate_limit=RateLimitConfig(base_backoff_seconds=0.1))
    retrieval = await build_retrieval(accountant, config)

    # ------------------------------------------------------------------ #
    section("1. Retrieval context")
    # ------------------------------------------------------------------ #

    provider = ScriptedProvider([CompletionResponse(text="Run make deploy after the tests pass.")])
    loop = OrchestrationLoop(
        provider, ConversationHistory(accountant), accountant=accountant, retrieval=retrieval, config=config
    )
    result = await loop.run_turn("How do I deploy?")
    print(f"Answer: {result.answer}")
    print(f"Sources: {result.trace.plan_records[0].chunk_sources}")
    show_plans(result)

    # ------------------------------------------------------------------ #
    section("2. Tool step with an oversized result")
    # ------------------------------------------------------------------ #

    provider = ScriptedProvider(
        [call("read_logs", "call_1", lines=5000), CompletionResponse(text="The service is healthy.")]
    )
    loop = OrchestrationLoop(
        provider,
        ConversationHistory(accountant),
        accountant=accountant,
        tools=build_tools(accountant, config),
        config=config,
    )
    result = await loop.run_turn("Check the logs")
    tool_result = loop.history[2]
    print(f"Answer: {result.answer}")
    print(f"Tool result kept {tool_result.token_count} tokens, ends with: {tool_result.content[-12:]!r}")
    show_plans(result)

    # ------------------------------------------------------------------ #
    section("3. Rate-limit recovery")
    # ------------------------------------------------------------------ #

    history = ConversationHistory(accountant)
    for i in range(30):
        message = history.new_message("user" if i % 2 == 0 else "assistant", f"Earlier message {i}. " * 8)
        history.append(message)

    provider = ScriptedProvider(
        [
            ProviderError(ProviderErrorKind.RATE_LIMIT, "429 Too Many Requests", retry_after=0.2),
            CompletionResponse(text="Back on track."),
        ]
    )
    loop = OrchestrationLoop(
        provider,
        history,
        accountant=accountant,
        config=config,
        guard=RateLimitGuard(config.rate_limit),
    )
    result = await loop.run_turn("Are you still there?")
    print(f"State: {result.state.value} after {provider.calls} provider calls")
    print(f"Summaries in history: {sum(1 for m in history if m.role == 'summary')}")
    show_plans(result)

    # ------------------------------------------------------------------ #
    section("4. Max turns")
    # ------------------------------------------------------------------ #

    provider = ScriptedProvider([call("read_logs", f"call_{i}") for i in range(1, 10)])
    loop = OrchestrationLoop(
        provider,
        ConversationHistory(accountant),
        accountant=accountant,
        tools=build_tools(accountant, config),
        config=config,
    )
    result = await loop.run_turn("Keep reading the logs forever")
    print(f"State: {result.state.value} ({result.abort_reason.value}), turn counter {result.turn_counter}")

    section("Done")


if __name__ == "__main__":
    asyncio.run(main())
