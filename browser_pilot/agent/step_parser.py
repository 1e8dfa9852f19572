from __future__ import annotations

import json
import logging
from typing import Callable, Dict

from pydantic import ValidationError

from browser_pilot.agent.tools import (
    CLASSIFY_TOOL,
    TOOL_ARGS,
    ClassifyInstructionArgs,
    ClickArgs,
    ClickByPositionArgs,
    CompleteArgs,
    ManualInterventionArgs,
    NavigateArgs,
    PressEnterArgs,
    ScrollArgs,
    ThoughtArgs,
    ToolArgs,
    TypeArgs,
    WaitArgs,
)
from browser_pilot.agent.views import (
    Action,
    ActionStep,
    CompleteStep,
    InstructionClassification,
    ManualInterventionStep,
    Step,
    ThoughtStep,
)
from browser_pilot.exceptions import DecisionError
from browser_pilot.llm.base import ToolCall

logger = logging.getLogger(__name__)


def format_number(value: float) -> str:
    """Render 120.0 as '120' and 120.5 as '120.5'."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


class StepParser:
    """Turns one model tool call into exactly one Step."""

    def __init__(self, default_scroll_amount: int = 300):
        self.default_scroll_amount = default_scroll_amount
        self._builders: Dict[str, Callable[[ToolArgs], Step]] = {
            CLASSIFY_TOOL: self._classify,
            'thought': self._thought,
            'click': self._click,
            'clickByPosition': self._click_by_position,
            'type': self._type,
            'pressEnter': self._press_enter,
            'navigate': self._navigate,
            'wait': self._wait,
            'scroll': self._scroll,
            'complete': self._complete,
            'manualIntervention': self._manual_intervention,
        }

    def parse_tool_call(self, tool_call: ToolCall) -> Step:
        name = tool_call.name
        args_model = TOOL_ARGS.get(name)
        if args_model is None:
            raise DecisionError(f"Unknown tool: {name}", tool_name=name)

        try:
            raw = json.loads(tool_call.arguments or '{}')
            payload = args_model.model_validate(raw)
        except (json.JSONDecodeError, ValidationError) as e:
            raise DecisionError(f"Failed to parse {name} tool call: {e}", tool_name=name) from e

        return self._builders[name](payload)

    # --- builders ---

    def _classify(self, p: ClassifyInstructionArgs) -> Step:
        classification = InstructionClassification(
            type=p.type,
            needs_screenshot=p.needs_screenshot,
            complexity=p.complexity,
            estimated_steps=p.estimated_steps,
            reason=p.reason,
        )
        return ThoughtStep(
            content=(
                f"Used classifyInstruction tool - classified as {p.type} "
                f"({p.complexity} complexity, {p.estimated_steps} steps): {p.reason}"
            ),
            classification=classification,
        )

    def _thought(self, p: ThoughtArgs) -> Step:
        return ThoughtStep(content=p.content)

    def _click(self, p: ClickArgs) -> Step:
        action = Action(type='click', selectors=p.selectors, description=f"Click {', '.join(p.selectors)}: {p.reason}")
        return ActionStep(action_data=action, content=p.reason)

    def _click_by_position(self, p: ClickByPositionArgs) -> Step:
        action = Action(
            type='clickByPosition',
            x=p.x,
            y=p.y,
            description=f"Click at coordinates ({format_number(p.x)}, {format_number(p.y)}): {p.reason}",
        )
        return ActionStep(action_data=action, content=p.reason)

    def _type(self, p: TypeArgs) -> Step:
        action = Action(
            type='type',
            selectors=p.selectors,
            value=p.value,
            description=f'Type "{p.value}" into {", ".join(p.selectors)}: {p.reason}',
        )
        return ActionStep(action_data=action, content=p.reason)

    def _press_enter(self, p: PressEnterArgs) -> Step:
        return ActionStep(action_data=Action(type='pressEnter', description=f"Press Enter: {p.reason}"), content=p.reason)

    def _navigate(self, p: NavigateArgs) -> Step:
        action = Action(type='navigate', url=p.url, description=f"Navigate to {p.url}: {p.reason}")
        return ActionStep(action_data=action, content=p.reason)

    def _wait(self, p: WaitArgs) -> Step:
        action = Action(type='wait', duration=p.duration, description=f"Wait {p.duration}ms: {p.reason}")
        return ActionStep(action_data=action, content=p.reason)

    def _scroll(self, p: ScrollArgs) -> Step:
        amount = p.amount if p.amount is not None else self.default_scroll_amount
        action = Action(
            type='scroll',
            direction=p.direction,
            amount=amount,
            description=f"Scroll {p.direction} {amount}px: {p.reason}",
        )
        return ActionStep(action_data=action, content=p.reason)

    def _complete(self, p: CompleteArgs) -> Step:
        return CompleteStep(summary=p.summary, final_answer=p.final_answer)

    def _manual_intervention(self, p: ManualInterventionArgs) -> Step:
        return ManualInterventionStep(reason=p.reason, category=p.category, suggestion=p.suggestion)
