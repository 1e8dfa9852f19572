import asyncio

import pytest

from browser_pilot.agent.llm_caller import LLMCaller, call_with_retry
from browser_pilot.exceptions import LLMException


@pytest.mark.asyncio
async def test_retries_llm_exception_then_succeeds():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise LLMException("rate limited", status_code=429)
        return "ok"

    result = await call_with_retry(flaky, timeout_seconds=1, max_retries=2, backoff_base_seconds=0)

    assert result == "ok"
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_timeout_exhausts_retries():
    attempts = []

    async def slow():
        attempts.append(1)
        await asyncio.sleep(1)

    with pytest.raises(LLMException, match="timed out"):
        await call_with_retry(slow, timeout_seconds=0.01, max_retries=1, backoff_base_seconds=0, label="Slow call")

    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_other_exceptions_are_not_retried():
    attempts = []

    async def broken():
        attempts.append(1)
        raise ValueError("bad payload")

    with pytest.raises(ValueError):
        await call_with_retry(broken, timeout_seconds=1, max_retries=3, backoff_base_seconds=0)

    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_invoke_tools_passes_settings(settings, scripted_llm, tool_call):
    llm = scripted_llm([tool_call("thought", content="hi")])
    caller = LLMCaller(llm, settings)

    completion = await caller.invoke_tools(["hello"], [{"type": "function"}])

    assert completion.tool_calls[0].name == "thought"
    assert llm.calls[0]["model"] == settings.model
    assert llm.calls[0]["temperature"] == settings.temperature


@pytest.mark.asyncio
async def test_invoke_vision_returns_text(settings, scripted_llm):
    llm = scripted_llm(vision_reply="Click at (10, 20)")
    caller = LLMCaller(llm, settings)

    assert await caller.invoke_vision(b"png", "where?") == "Click at (10, 20)"
    assert llm.vision_calls == ["where?"]
