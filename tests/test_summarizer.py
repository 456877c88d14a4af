# tests/test_summarizer.py
"""Tests for the truncating and LLM-backed summarizers."""

import asyncio

import pytest
from conftest import ScriptedProvider, text_response, tool_response, words

from chuk_ai_orchestrator.exceptions import ProviderError, ProviderErrorKind
from chuk_ai_orchestrator.models.enums import MessageRole
from chuk_ai_orchestrator.summarizer import (
    LLMSummarizer,
    SummarizationStrategy,
    Summarizer,
    TruncatingSummarizer,
    render_transcript,
)


class HangingProvider:
    async def complete(self, request):
        await asyncio.Event().wait()


@pytest.fixture
def conversation(make_message):
    return [
        make_message(MessageRole.USER, "how do I deploy"),
        make_message(MessageRole.TOOL_CALL, '{"name": "search"}', tool_call_id="t1", tool_name="search"),
        make_message(MessageRole.TOOL_RESULT, words(80, "doc"), tool_call_id="t1", tool_name="search"),
        make_message(MessageRole.ASSISTANT, "run make deploy"),
    ]


def test_render_transcript_labels_roles(conversation):
    lines = render_transcript(conversation).splitlines()
    assert lines[0] == "User: how do I deploy"
    assert lines[1].startswith("Tool call (search):")
    assert lines[3] == "Assistant: run make deploy"


class TestTruncatingSummarizer:
    @pytest.mark.asyncio
    async def test_fits_budget(self, accountant, conversation):
        summarizer = TruncatingSummarizer(accountant)
        text = await summarizer.summarize(conversation, 30)
        assert 0 < accountant.count(text) <= 30
        assert text.startswith("Summary of earlier conversation:")

    @pytest.mark.asyncio
    async def test_empty_input(self, accountant):
        assert await TruncatingSummarizer(accountant).summarize([], 10) == ""

    def test_satisfies_protocol(self, accountant):
        assert isinstance(TruncatingSummarizer(accountant), Summarizer)


class TestLLMSummarizer:
    @pytest.mark.asyncio
    async def test_sends_transcript_without_tools(self, conversation):
        provider = ScriptedProvider([text_response("  The user asked about deploying.  ")])
        summarizer = LLMSummarizer(provider, SummarizationStrategy.KEY_POINTS)

        summary = await summarizer.summarize(conversation, 50)

        assert summary == "The user asked about deploying."
        request = provider.requests[0]
        assert request.tools == []
        assert request.max_output_tokens == 50
        assert "key points" in request.system
        assert "50 tokens" in request.system
        assert request.messages[0].content == render_transcript(conversation)

    @pytest.mark.asyncio
    async def test_tool_call_response_uses_text_only(self, conversation):
        response = tool_response("search")
        response = response.model_copy(update={"text": "partial"})
        summarizer = LLMSummarizer(ScriptedProvider([response]))
        assert await summarizer.summarize(conversation, 20) == "partial"

    @pytest.mark.asyncio
    async def test_compaction_through_llm_summarizer(self, accountant, make_message):
        from chuk_ai_orchestrator.history import ConversationHistory

        provider = ScriptedProvider([text_response("they talked about deploys")])
        history = ConversationHistory(accountant, LLMSummarizer(provider))
        for i in range(6):
            history.append(make_message(MessageRole.USER, words(10, f"m{i}_")))

        result = await history.compact(30)

        assert result.compacted
        assert history[0].content == "they talked about deploys"
        assert provider.calls == 1

    @pytest.mark.asyncio
    async def test_hung_provider_times_out_as_transient(self, conversation):
        summarizer = LLMSummarizer(HangingProvider(), timeout=0.01)

        with pytest.raises(ProviderError) as exc_info:
            await summarizer.summarize(conversation, 20)
        assert exc_info.value.kind == ProviderErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_timed_out_summary_leaves_history_uncompacted(self, accountant, make_message):
        from chuk_ai_orchestrator.history import ConversationHistory

        history = ConversationHistory(accountant, LLMSummarizer(HangingProvider(), timeout=0.01))
        for i in range(6):
            history.append(make_message(MessageRole.USER, words(10, f"m{i}_")))
        before = history.messages

        result = await history.compact(30)

        assert not result.fits
        assert history.messages == before
