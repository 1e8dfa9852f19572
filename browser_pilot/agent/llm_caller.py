from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from browser_pilot.agent.state_manager import agent_log
from browser_pilot.exceptions import LLMException

if TYPE_CHECKING:
    from browser_pilot.agent.settings import OrchestratorSettings
    from browser_pilot.llm.base import BaseChatModel, ChatInvokeCompletion
    from browser_pilot.llm.messages import BaseMessage

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def call_with_retry(
    call: Callable[[], Awaitable[T]],
    timeout_seconds: float,
    max_retries: int,
    backoff_base_seconds: float,
    label: str = "LLM call",
    instruction_id: Optional[str] = None,
    step: Optional[int] = None,
) -> T:
    """
    Runs `call` under a timeout, retrying on timeouts and LLMException with
    exponential backoff (base, 2*base, 4*base, ...).
    Raises LLMException once every attempt has failed.
    """
    for attempt in range(max_retries + 1):
        agent_log(logging.DEBUG, instruction_id, step, f"{label} attempt {attempt + 1}/{max_retries + 1}")
        try:
            return await asyncio.wait_for(call(), timeout=timeout_seconds)
        except (asyncio.TimeoutError, LLMException) as e:
            reason = f"timed out after {timeout_seconds}s" if isinstance(e, asyncio.TimeoutError) else f"{type(e).__name__}: {e}"
            agent_log(logging.WARNING, instruction_id, step, f"{label} attempt {attempt + 1} failed: {reason}")
            if attempt >= max_retries:
                raise LLMException(f"{label} failed after all retries: {reason}") from e
            await asyncio.sleep(backoff_base_seconds * (2 ** attempt))

    raise LLMException(f"{label} failed.")


class LLMCaller:
    """
    Isolated model-calling component: the tool-calling decision call and the
    screenshot vision call, each with its own timeout and retry budget.
    """

    def __init__(self, llm: BaseChatModel, settings: OrchestratorSettings):
        self.llm = llm
        self.settings = settings

    async def invoke_tools(
        self,
        messages: List[BaseMessage],
        tools: List[Dict[str, Any]],
        instruction_id: Optional[str] = None,
        step: Optional[int] = None,
    ) -> ChatInvokeCompletion:
        s = self.settings
        return await call_with_retry(
            lambda: self.llm.ainvoke(
                messages,
                tools=tools,
                tool_choice='auto',
                temperature=s.temperature,
                max_tokens=s.max_tokens,
                model=s.model,
            ),
            timeout_seconds=s.llm_timeout_seconds,
            max_retries=s.llm_max_retries,
            backoff_base_seconds=s.llm_backoff_base_seconds,
            label="Decision call",
            instruction_id=instruction_id,
            step=step,
        )

    async def invoke_vision(
        self,
        image: bytes,
        prompt: str,
        instruction_id: Optional[str] = None,
        step: Optional[int] = None,
    ) -> str:
        s = self.settings
        return await call_with_retry(
            lambda: self.llm.avision(image, prompt, model=s.vision_model, max_tokens=s.vision_max_tokens),
            timeout_seconds=s.vision_timeout_seconds,
            max_retries=s.vision_max_retries,
            backoff_base_seconds=s.llm_backoff_base_seconds,
            label="Vision call",
            instruction_id=instruction_id,
            step=step,
        )
