"""
Unit tests for agents/llm.py - StructuredLLM and ModelRouter

litellm.acompletion is patched everywhere; no network calls are made.
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from tenacity import wait_none

from agents.llm import (
    LLMError,
    ModelRouter,
    StructuredLLM,
    TaskType,
    ValidationError,
    get_llm,
    reset_llm,
    set_llm,
)
from core.schemas import EnrichmentData


def _response(content):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def no_retry_wait(monkeypatch):
    """Drop the exponential backoff between validation retries."""
    monkeypatch.setattr(StructuredLLM.agenerate.retry, "wait", wait_none())


# =============================================================================
# MODEL ROUTER
# =============================================================================

def test_router_sends_hypothesis_to_reasoning_model():
    router = ModelRouter({"fast_model": "fast", "reasoning_model": "deep"})

    assert router.get_model_for_task(TaskType.HYPOTHESIS) == "deep"
    assert router.get_model_for_task(TaskType.ENRICHMENT) == "fast"
    assert router.get_model_for_task(TaskType.FACTS) == "fast"
    assert router.get_model_for_task(TaskType.VALIDATION) == "fast"


# =============================================================================
# RESPONSE CLEANING
# =============================================================================

@pytest.mark.parametrize("raw", [
    '{"summary": "x"}',
    '```json\n{"summary": "x"}\n```',
    '```\n{"summary": "x"}```',
    '  {"summary": "x"}  ',
])
def test_clean_response_strips_fences(raw):
    assert StructuredLLM()._clean_response(raw) == '{"summary": "x"}'


def test_system_prompt_embeds_schema():
    prompt = StructuredLLM()._build_system_prompt("Base.", EnrichmentData)

    assert prompt.startswith("Base.")
    assert "relatedTopics" in prompt
    assert "OUTPUT CONTRACT" in prompt


# =============================================================================
# GENERATION
# =============================================================================

@pytest.mark.asyncio
async def test_agenerate_decodes_camel_case():
    """
    Validate a successful structured call.

    Verifies:
    - The routed model overrides the instance model
    - JSON mode is requested
    - camelCase fields decode into the struct
    """
    payload = '```json\n{"summary": "ACE2 receptor", "relatedTopics": ["RAAS"]}\n```'
    with patch("agents.llm.litellm.acompletion", new=AsyncMock(return_value=_response(payload))) as mock:
        llm = StructuredLLM(model="default-model")
        result = await llm.agenerate("sys", "user", EnrichmentData, model="routed-model")

    assert result.summary == "ACE2 receptor"
    assert result.related_topics == ["RAAS"]
    kwargs = mock.await_args.kwargs
    assert kwargs["model"] == "routed-model"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][1] == {"role": "user", "content": "user"}


@pytest.mark.asyncio
async def test_agenerate_retries_on_invalid_output(no_retry_wait):
    responses = [_response("not json"), _response('{"wrong": 1}'), _response('{"summary": "ok"}')]
    with patch("agents.llm.litellm.acompletion", new=AsyncMock(side_effect=responses)) as mock:
        result = await StructuredLLM().agenerate("sys", "user", EnrichmentData)

    assert result.summary == "ok"
    assert mock.await_count == 3


@pytest.mark.asyncio
async def test_agenerate_gives_up_after_three_attempts(no_retry_wait):
    with patch("agents.llm.litellm.acompletion", new=AsyncMock(return_value=_response("[]"))) as mock:
        with pytest.raises(ValidationError):
            await StructuredLLM().agenerate("sys", "user", EnrichmentData)

    assert mock.await_count == 3


@pytest.mark.asyncio
async def test_agenerate_wraps_transport_errors():
    with patch("agents.llm.litellm.acompletion", new=AsyncMock(side_effect=ConnectionError("down"))) as mock:
        with pytest.raises(LLMError) as exc_info:
            await StructuredLLM(model="m").agenerate("sys", "user", EnrichmentData)

    assert "down" in str(exc_info.value)
    assert not isinstance(exc_info.value, ValidationError)
    assert mock.await_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    SimpleNamespace(choices=[]),
    SimpleNamespace(choices=None),
    SimpleNamespace(),
])
async def test_agenerate_wraps_malformed_provider_response(response):
    """
    Validate that a response without a usable first choice is an LLMError.

    Verifies:
    - No IndexError/TypeError/AttributeError escapes
    - The call is not retried (it is not a schema failure)
    """
    with patch("agents.llm.litellm.acompletion", new=AsyncMock(return_value=response)) as mock:
        with pytest.raises(LLMError) as exc_info:
            await StructuredLLM(model="m").agenerate("sys", "user", EnrichmentData)

    assert not isinstance(exc_info.value, ValidationError)
    assert mock.await_count == 1


# =============================================================================
# SINGLETON
# =============================================================================

def test_get_llm_reads_environment(monkeypatch):
    monkeypatch.setenv("BIOGRAPH_LLM_MODEL", "openai/gpt-4o-mini")
    monkeypatch.setenv("BIOGRAPH_LLM_TEMPERATURE", "0.3")
    reset_llm()

    llm = get_llm()

    assert llm.model == "openai/gpt-4o-mini"
    assert llm.temperature == 0.3
    assert get_llm() is llm


def test_set_llm_overrides_singleton():
    custom = StructuredLLM(model="custom")
    set_llm(custom)
    assert get_llm() is custom
