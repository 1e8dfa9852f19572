"""Tool palette offered to the decision model, with the argument model of each tool."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Literal

from browser_pilot.agent.views import InstructionType, InterventionCategory


class ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class ClassifyInstructionArgs(ToolArgs):
    type: InstructionType = Field(..., description="Semantic classification of the instruction type")
    needs_screenshot: bool = Field(..., alias='needsScreenshot', description="Whether this instruction type requires screenshot analysis")
    complexity: Literal['low', 'medium', 'high'] = Field(..., description="Estimated complexity level of the task")
    estimated_steps: int = Field(..., alias='estimatedSteps', description="Estimated number of steps to complete the task")
    reason: str = Field(..., description="Detailed reasoning for this classification")


class ThoughtArgs(ToolArgs):
    content: str = Field(..., description="Your reasoning about the current situation and next steps")


class ClickArgs(ToolArgs):
    selectors: List[str] = Field(..., description="Array of CSS selectors to try in order of preference")
    reason: str = Field(..., description="Why you are clicking this element")


class ClickByPositionArgs(ToolArgs):
    x: float = Field(..., description="X coordinate to click")
    y: float = Field(..., description="Y coordinate to click")
    reason: str = Field(..., description="Reason for using position-based clicking")


class TypeArgs(ToolArgs):
    selectors: List[str] = Field(..., description="Array of CSS selectors to try in order of preference")
    value: str = Field(..., description="Text to type")
    reason: str = Field(..., description="Why you are typing this text")


class PressEnterArgs(ToolArgs):
    reason: str = Field(..., description='Why you are pressing Enter (e.g., "submit form", "trigger search")')


class NavigateArgs(ToolArgs):
    url: str = Field(..., description="URL to navigate to")
    reason: str = Field(..., description="Why you are navigating to this URL")


class WaitArgs(ToolArgs):
    duration: int = Field(..., description="Duration to wait in milliseconds")
    reason: str = Field(..., description="Why you are waiting")


class ScrollArgs(ToolArgs):
    direction: Literal['up', 'down'] = Field(..., description="Direction to scroll")
    amount: Optional[int] = Field(None, description="Amount to scroll in pixels (default: 300)")
    reason: str = Field(..., description='Reason for scrolling (e.g., "looking for comment section")')


class CompleteArgs(ToolArgs):
    summary: str = Field(..., description="Brief summary of what was accomplished")
    final_answer: str = Field(..., alias='finalAnswer', description="Final answer or result for the user")


class ManualInterventionArgs(ToolArgs):
    reason: str = Field(..., description="Detailed reason why manual intervention is needed")
    suggestion: str = Field(..., description="Specific suggestion for what the user should do manually")
    category: InterventionCategory = Field(..., description="Category of manual intervention needed")


CLASSIFY_TOOL = 'classifyInstruction'

TOOL_ARGS: Dict[str, Type[ToolArgs]] = {
    CLASSIFY_TOOL: ClassifyInstructionArgs,
    'thought': ThoughtArgs,
    'click': ClickArgs,
    'clickByPosition': ClickByPositionArgs,
    'type': TypeArgs,
    'pressEnter': PressEnterArgs,
    'navigate': NavigateArgs,
    'wait': WaitArgs,
    'complete': CompleteArgs,
    'scroll': ScrollArgs,
    'manualIntervention': ManualInterventionArgs,
}

TOOL_DESCRIPTIONS: Dict[str, str] = {
    CLASSIFY_TOOL: "Classify the type of instruction to optimize processing (should be called first)",
    'thought': "Add a reasoning step about what to do next",
    'click': "Click an element on the page with multiple fallback selectors",
    'clickByPosition': "Click at specific coordinates on the page when selectors fail or are unreliable",
    'type': "Type text into an input field with multiple fallback selectors",
    'pressEnter': "Press the Enter key, typically used to submit forms or trigger actions",
    'navigate': "Navigate to a URL",
    'wait': "Wait for a specified duration",
    'complete': "Signal that the task has been completed successfully",
    'scroll': "Scroll the page to reveal elements that might be outside the viewport",
    'manualIntervention': "Request manual intervention when automated action is not safe or possible",
}


def _parameters_schema(args_model: Type[ToolArgs]) -> Dict[str, Any]:
    schema = args_model.model_json_schema(by_alias=True)
    schema.pop('title', None)
    for prop in schema.get('properties', {}).values():
        prop.pop('title', None)
    schema.setdefault('required', [])
    return schema


def build_tool(name: str) -> Dict[str, Any]:
    return {
        'type': 'function',
        'function': {
            'name': name,
            'description': TOOL_DESCRIPTIONS[name],
            'parameters': _parameters_schema(TOOL_ARGS[name]),
        },
    }


def tool_palette(include_classification: bool = True) -> List[Dict[str, Any]]:
    """OpenAI-style function definitions, optionally without `classifyInstruction` once it is cached."""
    return [build_tool(name) for name in TOOL_ARGS if include_classification or name != CLASSIFY_TOOL]
