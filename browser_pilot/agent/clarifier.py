from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, List, Optional, Sequence

from pydantic import BaseModel, Field

from browser_pilot.agent.llm_caller import call_with_retry
from browser_pilot.llm.messages import SystemMessage, UserMessage

if TYPE_CHECKING:
    from browser_pilot.agent.settings import OrchestratorSettings
    from browser_pilot.llm.base import BaseChatModel

logger = logging.getLogger(__name__)

CLARIFIER_SYSTEM_PROMPT = """You are an assistant that evaluates how clear a SINGLE browser-automation instruction is. Take into account the RECENT TASKS list when judging clarity (they provide context about the current website).

SCORING (integer 1-10):
9-10  Perfectly clear, actionable with no ambiguity (e.g. "Go to linkedin.com", "Click the \\"Jobs\\" tab").
7-8   Mostly clear, minor rewrites could help but intent is obvious.
4-6   Needs clarification - missing a key detail or could be interpreted multiple ways.
1-3   Very ambiguous or multiple unrelated actions.

CONTEXT RULES
- If the instruction is generic (e.g. "log in", "sign out", "scroll down") BUT the recent tasks clearly show that the agent is already on a specific site, treat it as clear (score >= 8).
- Very short navigation requests like "go to linkedin" or "open google.com" are perfectly clear (score >= 9). Do NOT penalise brevity.

Return JSON ONLY with keys:
  score        Integer 1-10
  improved     Best single-sentence rewrite maximising success (or same string if already clear)
  suggestions  Up to 3 alternative phrasings (omit when score >= 8)."""

_FENCE = re.compile(r'^```(?:json)?\s*|\s*```$')

MAX_SUGGESTIONS = 3
HISTORY_WINDOW = 3


class ClarifyResult(BaseModel):
    score: int = 5
    improved: str
    suggestions: List[str] = Field(default_factory=list)


def parse_clarifier_reply(raw: Optional[str], instruction: str) -> ClarifyResult:
    """Lenient parse: bad JSON gives score 5, the original text and no suggestions."""
    try:
        parsed = json.loads(_FENCE.sub('', (raw or '{}').strip()) or '{}')
    except json.JSONDecodeError:
        logger.debug(f"Clarifier returned non-JSON reply: {raw!r:.200}")
        parsed = {}
    if not isinstance(parsed, dict):
        parsed = {}

    try:
        score = int(parsed.get('score') or 5)
    except (TypeError, ValueError):
        score = 5
    score = max(1, min(10, score))

    improved = parsed.get('improved')
    suggestions = parsed.get('suggestions')
    return ClarifyResult(
        score=score,
        improved=improved if isinstance(improved, str) and improved.strip() else instruction,
        suggestions=[str(s) for s in suggestions[:MAX_SUGGESTIONS]] if isinstance(suggestions, list) else [],
    )


class InstructionClarifier:
    """Scores instruction clarity 1..10 against recent session history and proposes a rewrite."""

    def __init__(self, llm: BaseChatModel, settings: OrchestratorSettings):
        self.llm = llm
        self.settings = settings

    async def clarify(self, instruction: str, history: Sequence[str] = ()) -> ClarifyResult:
        recent = '\n'.join(list(history)[-HISTORY_WINDOW:])
        messages = [
            SystemMessage(content=CLARIFIER_SYSTEM_PROMPT),
            UserMessage(content=f"TASK:\n{instruction}\n\nRECENT TASKS (context):\n{recent}"),
        ]
        completion = await call_with_retry(
            lambda: self.llm.ainvoke(
                messages,
                tools=None,
                temperature=0.3,
                max_tokens=300,
                model=self.settings.clarifier_model,
            ),
            timeout_seconds=self.settings.llm_timeout_seconds,
            max_retries=0,
            backoff_base_seconds=self.settings.llm_backoff_base_seconds,
            label="Clarifier call",
        )
        result = parse_clarifier_reply(completion.completion, instruction)
        logger.debug(f"Clarifier scored instruction {result.score}/10")
        return result
