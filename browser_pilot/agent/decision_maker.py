from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

from browser_pilot.agent.llm_caller import LLMCaller
from browser_pilot.agent.prompts import StructuredPrompt, SystemPrompt
from browser_pilot.agent.screenshot_analyzer import ScreenshotAnalyzer
from browser_pilot.agent.state_manager import agent_log
from browser_pilot.agent.step_parser import StepParser
from browser_pilot.agent.tools import tool_palette
from browser_pilot.agent.views import (
    InstructionClassification,
    ManualInterventionStep,
    Step,
    ThoughtStep,
)
from browser_pilot.exceptions import DecisionError, LLMException

if TYPE_CHECKING:
    from browser_pilot.agent.settings import OrchestratorSettings
    from browser_pilot.browser.types import Viewport
    from browser_pilot.llm.base import BaseChatModel

logger = logging.getLogger(__name__)

PROCESSING_ERROR_CATEGORY = 'processing_error'


class StepDecisionMaker:
    """
    Wraps one model call into exactly one next Step.

    The model only ever chooses a tool; a missing or malformed tool call, or a
    call that exhausts its retries, becomes a ManualIntervention step instead
    of an exception.
    """

    def __init__(
        self,
        llm: BaseChatModel,
        settings: OrchestratorSettings,
        system_prompt: Optional[SystemPrompt] = None,
    ):
        self.settings = settings
        self.llm_caller = LLMCaller(llm, settings)
        self.screenshot_analyzer = ScreenshotAnalyzer(self.llm_caller)
        self.step_parser = StepParser(default_scroll_amount=settings.default_scroll_amount)
        self.system_prompt = system_prompt or SystemPrompt()

    async def decide(
        self,
        instruction: str,
        dom_content: str,
        steps: Sequence[Step],
        action_history: Sequence[str] = (),
        screenshot: Optional[bytes] = None,
        classification: Optional[InstructionClassification] = None,
        viewport: Optional[Viewport] = None,
        instruction_id: Optional[str] = None,
    ) -> Step:
        step_no = len(steps)

        screenshot_analysis = ''
        if screenshot is not None and self.settings.enable_visual_analysis:
            analysis = await self.screenshot_analyzer.analyze(
                instruction, screenshot, viewport=viewport, instruction_id=instruction_id, step=step_no
            )
            screenshot_analysis = analysis.content

        window = self.settings.recent_steps_window
        prompt = StructuredPrompt(
            instruction=instruction,
            dom_content=dom_content,
            recent_steps=list(steps[-window:]) if window > 0 else [],
            step_count=len(steps),
            screenshot_analysis=screenshot_analysis or None,
            action_history=list(action_history),
        )
        messages = [self.system_prompt.get_system_message(), prompt.to_message()]
        # Classification is elicited once per run, then the cached result is reused
        tools = tool_palette(include_classification=classification is None)

        agent_log(
            logging.DEBUG, instruction_id, step_no,
            f"Deciding next step (dom_tokens≈{prompt.dom_tokens}, tools={len(tools)}, visual={bool(screenshot_analysis)})",
        )

        try:
            completion = await self.llm_caller.invoke_tools(messages, tools, instruction_id=instruction_id, step=step_no)
            if not completion.tool_calls:
                raise DecisionError("LLM returned no tool call")
            if len(completion.tool_calls) > 1:
                agent_log(logging.DEBUG, instruction_id, step_no,
                          f"Model returned {len(completion.tool_calls)} tool calls; using the first")
            step = self.step_parser.parse_tool_call(completion.tool_calls[0])
        except (DecisionError, LLMException) as e:
            agent_log(logging.WARNING, instruction_id, step_no, f"Decision failed: {e}")
            return self._processing_error(str(e))
        except Exception as e:
            agent_log(logging.ERROR, instruction_id, step_no, f"Unexpected decision failure: {e}", exc_info=True)
            return self._processing_error(str(e) or type(e).__name__)

        if isinstance(step, ThoughtStep) and step.classification is not None:
            c = step.classification
            agent_log(
                logging.INFO, instruction_id, step_no,
                f"🏷️ Instruction classified as {c.type} ({c.complexity}, ~{c.estimated_steps} steps, screenshot={c.needs_screenshot})",
            )
        return step

    @staticmethod
    def _processing_error(message: str) -> ManualInterventionStep:
        return ManualInterventionStep(reason=f"Processing error: {message}", category=PROCESSING_ERROR_CATEGORY)
