import pytest

from browser_pilot.agent.step_parser import StepParser, format_number
from browser_pilot.agent.tools import CLASSIFY_TOOL, TOOL_ARGS, build_tool, tool_palette
from browser_pilot.agent.views import ActionStep, CompleteStep, ManualInterventionStep, ThoughtStep
from browser_pilot.exceptions import DecisionError
from browser_pilot.llm.base import ToolCall


@pytest.fixture
def parser():
    return StepParser(default_scroll_amount=300)


def test_format_number_drops_trailing_zero():
    assert format_number(120.0) == "120"
    assert format_number(120.5) == "120.5"


def test_classify_becomes_thought_with_classification(parser, tool_call):
    step = parser.parse_tool_call(tool_call(
        "classifyInstruction", type="visual_task", needsScreenshot=True,
        complexity="high", estimatedSteps=4, reason="needs to look at images",
    ))
    assert isinstance(step, ThoughtStep)
    assert step.classification.type == "visual_task"
    assert step.classification.needs_screenshot is True
    assert step.classification.estimated_steps == 4
    assert step.content == (
        "Used classifyInstruction tool - classified as visual_task (high complexity, 4 steps): needs to look at images"
    )


@pytest.mark.parametrize(
    "name,args,description",
    [
        ("click", {"selectors": ["#a", ".b"], "reason": "open menu"}, "Click #a, .b: open menu"),
        ("clickByPosition", {"x": 640, "y": 360.5, "reason": "icon"}, "Click at coordinates (640, 360.5): icon"),
        ("type", {"selectors": ["#q"], "value": "shoes", "reason": "search"}, 'Type "shoes" into #q: search'),
        ("pressEnter", {"reason": "submit"}, "Press Enter: submit"),
        ("navigate", {"url": "https://example.com", "reason": "start"}, "Navigate to https://example.com: start"),
        ("wait", {"duration": 1500, "reason": "let it load"}, "Wait 1500ms: let it load"),
        ("scroll", {"direction": "down", "reason": "see more"}, "Scroll down 300px: see more"),
        ("scroll", {"direction": "up", "amount": 800, "reason": "back"}, "Scroll up 800px: back"),
    ],
)
def test_action_tools_build_descriptions(parser, tool_call, name, args, description):
    step = parser.parse_tool_call(tool_call(name, **args))
    assert isinstance(step, ActionStep)
    assert step.action_data.type == name
    assert step.action_data.description == description
    assert step.content == args["reason"]


def test_complete_and_manual_intervention(parser, tool_call):
    complete = parser.parse_tool_call(tool_call("complete", summary="Found it", finalAnswer="42"))
    assert isinstance(complete, CompleteStep)
    assert complete.final_answer == "42"
    assert complete.text == "42"

    manual = parser.parse_tool_call(tool_call(
        "manualIntervention", reason="Captcha shown", suggestion="Solve it", category="captcha",
    ))
    assert isinstance(manual, ManualInterventionStep)
    assert manual.category == "captcha"
    assert manual.suggestion == "Solve it"


def test_unknown_tool_raises(parser):
    with pytest.raises(DecisionError, match="Unknown tool: teleport"):
        parser.parse_tool_call(ToolCall(name="teleport", arguments="{}"))


@pytest.mark.parametrize("arguments", ["{not json", '{"reason": "no selectors"}', '{"selectors": "#a", "reason": "x"}'])
def test_malformed_arguments_raise(parser, arguments):
    with pytest.raises(DecisionError, match="Failed to parse click tool call"):
        parser.parse_tool_call(ToolCall(name="click", arguments=arguments))


def test_palette_uses_camel_case_parameters():
    tool = build_tool("complete")
    assert tool["type"] == "function"
    assert tool["function"]["name"] == "complete"
    params = tool["function"]["parameters"]
    assert "finalAnswer" in params["properties"]
    assert set(params["required"]) == {"summary", "finalAnswer"}


def test_palette_can_drop_classification():
    assert len(tool_palette()) == len(TOOL_ARGS)
    names = [t["function"]["name"] for t in tool_palette(include_classification=False)]
    assert CLASSIFY_TOOL not in names
    assert len(names) == len(TOOL_ARGS) - 1
