from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from browser_pilot.agent.state_manager import agent_log
from browser_pilot.browser.types import Viewport
from browser_pilot.exceptions import LLMException

if TYPE_CHECKING:
    from browser_pilot.agent.llm_caller import LLMCaller

logger = logging.getLogger(__name__)

COORDINATE_PATTERN = re.compile(r'\(\s*\d+(?:\.\d+)?\s*,\s*\d+(?:\.\d+)?\s*\)')

VISION_PROMPT = """Task: "{instruction}".

FAST COORDINATE ANALYSIS - Be concise!

VIEWPORT: {width}x{height}

Provide ONLY:
1. Target element coordinates like "Click at (X, Y)"
2. Brief description of what's at those coordinates

Example: "Click at (640, 360) to select the first search result\""""


@dataclass
class ScreenshotAnalysis:
    content: str = ''

    @property
    def has_coordinates(self) -> bool:
        return bool(COORDINATE_PATTERN.search(self.content))


class ScreenshotAnalyzer:
    """Vision pre-pass that annotates candidate click coordinates.

    Never raises: any failure degrades to an empty analysis.
    """

    def __init__(self, llm_caller: LLMCaller):
        self.llm_caller = llm_caller

    async def analyze(
        self,
        instruction: str,
        screenshot: bytes,
        viewport: Optional[Viewport] = None,
        instruction_id: Optional[str] = None,
        step: Optional[int] = None,
    ) -> ScreenshotAnalysis:
        viewport = viewport or Viewport()
        prompt = VISION_PROMPT.format(instruction=instruction, width=viewport.width, height=viewport.height)
        try:
            content = await self.llm_caller.invoke_vision(screenshot, prompt, instruction_id=instruction_id, step=step)
        except LLMException as e:
            agent_log(logging.ERROR, instruction_id, step, f"Screenshot analysis failed: {e}")
            return ScreenshotAnalysis()
        except Exception as e:
            agent_log(logging.ERROR, instruction_id, step, f"Screenshot analysis failed unexpectedly: {e}", exc_info=True)
            return ScreenshotAnalysis()

        analysis = ScreenshotAnalysis(content=content or 'Could not analyze screenshot')
        agent_log(
            logging.DEBUG, instruction_id, step,
            f"Screenshot analysis completed ({len(analysis.content)} chars, coordinates={analysis.has_coordinates})",
        )
        return analysis
