"""Tests for conversation-aware query expansion."""

import pytest

from conftest import FakeLLM
from docrank.errors import LLMError
from docrank.rag import ExpanderConfig, QueryExpander

HISTORY = [
    {"role": "user", "content": "Show me ABC company documents"},
    {"role": "assistant", "content": "Here are the ABC company documents."},
    {"role": "user", "content": "Only the invoices"},
    {"role": "assistant", "content": "Found 3 invoices."},
    {"role": "user", "content": "From March"},
]


@pytest.mark.asyncio
async def test_no_history_returns_question_unchanged():
    llm = FakeLLM(text="should not be used")
    result = await QueryExpander(llm).expand("What about April?", [])

    assert result.skipped
    assert result.value == "What about April?"
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_llm_rewrites_question():
    llm = FakeLLM(text="  ABC company invoices from April  ")
    result = await QueryExpander(llm).expand("What about April?", HISTORY)

    assert result.ok
    assert result.value == "ABC company invoices from April"


@pytest.mark.asyncio
async def test_only_recent_turns_are_sent():
    llm = FakeLLM(text="rewritten")
    await QueryExpander(llm, ExpanderConfig(history_turns=4)).expand("What about April?", HISTORY)

    prompt = llm.prompts[0]
    assert "Show me ABC company documents" not in prompt
    assert "Assistant: Here are the ABC company documents." in prompt
    assert "User: From March" in prompt
    assert "What about April?" in prompt


@pytest.mark.asyncio
async def test_empty_rewrite_falls_back_to_question():
    result = await QueryExpander(FakeLLM(text="   ")).expand("What about April?", HISTORY)
    assert result.value == "What about April?"


@pytest.mark.asyncio
async def test_llm_failure_returns_original_question():
    llm = FakeLLM(error=LLMError("timeout"))
    result = await QueryExpander(llm).expand("What about April?", HISTORY)

    assert result.degraded
    assert result.value == "What about April?"


@pytest.mark.asyncio
async def test_without_llm_appends_user_turns():
    history = [
        {"role": "user", "content": "ABC company"},
        {"role": "assistant", "content": "ignored"},
        {"role": "user", "content": "invoices"},
    ]
    result = await QueryExpander(None).expand("from March?", history)

    assert result.value == "from March? (Previous context: ABC company invoices)"


@pytest.mark.asyncio
async def test_fallback_context_is_truncated():
    history = [{"role": "user", "content": "x" * 500}]
    result = await QueryExpander(None).expand("q", history)

    assert result.value == f"q (Previous context: {'x' * 200})"


@pytest.mark.asyncio
async def test_fallback_without_user_turns():
    history = [{"role": "assistant", "content": "Hello"}]
    result = await QueryExpander(None).expand("q", history)
    assert result.value == "q"
