import pytest

from browser_pilot.agent.decision_maker import StepDecisionMaker
from browser_pilot.agent.prompts import SystemPrompt
from browser_pilot.agent.views import (
    ActionStep,
    InstructionClassification,
    ManualInterventionStep,
    ObservationStep,
    ThoughtStep,
)
from browser_pilot.exceptions import LLMException
from browser_pilot.llm.base import ToolCall


@pytest.mark.asyncio
async def test_returns_parsed_step_and_builds_prompt(settings, scripted_llm, tool_call):
    llm = scripted_llm([tool_call("click", selectors=["#login"], reason="open login")])
    maker = StepDecisionMaker(llm, settings)
    steps = [ThoughtStep(content="t1"), ThoughtStep(content="t2"), ThoughtStep(content="t3"), ObservationStep(content="o4")]

    step = await maker.decide("Log in", "<html>page</html>", steps, action_history=["Navigate to x: start"])

    assert isinstance(step, ActionStep)
    system, user = llm.calls[0]["messages"]
    assert "agentic browser" in system.text
    prompt = user.text
    assert prompt.startswith("TASK: Log in\n\nCURRENT PAGE HTML:\n<html>page</html>")
    assert "ACTION HISTORY:\n- Navigate to x: start" in prompt
    # Only the last three steps, numbered by their position in the run
    assert "1. THOUGHT: t1" not in prompt
    assert "2. THOUGHT: t2" in prompt
    assert "4. OBSERVATION: o4" in prompt
    assert prompt.endswith("What is your next step? Use exactly one tool.")


@pytest.mark.asyncio
async def test_cached_classification_drops_classify_tool(settings, scripted_llm, tool_call):
    llm = scripted_llm([tool_call("thought", content="next")])
    maker = StepDecisionMaker(llm, settings)

    await maker.decide("x", "<html/>", [], classification=InstructionClassification(type="visual_task"))

    assert "classifyInstruction" not in llm.tool_names(0)


@pytest.mark.asyncio
async def test_screenshot_analysis_is_added_as_visual_guidance(settings, scripted_llm, tool_call):
    settings.enable_visual_analysis = True
    llm = scripted_llm([tool_call("thought", content="next")], vision_reply="Click at (100, 200) on the red button")
    maker = StepDecisionMaker(llm, settings)

    await maker.decide("Click the red button", "<html/>", [], screenshot=b"png")

    assert len(llm.vision_calls) == 1
    assert "VIEWPORT: 1280x720" in llm.vision_calls[0]
    assert "VISUAL GUIDANCE:\nClick at (100, 200) on the red button" in llm.calls[0]["messages"][1].text


@pytest.mark.asyncio
async def test_failed_vision_call_is_skipped(settings, scripted_llm, tool_call):
    settings.enable_visual_analysis = True

    class NoVisionLLM(scripted_llm):
        async def avision(self, image, prompt, model=None, max_tokens=None):
            raise LLMException("vision unavailable")

    llm = NoVisionLLM([tool_call("thought", content="next")])
    step = await StepDecisionMaker(llm, settings).decide("x", "<html/>", [], screenshot=b"png")

    assert isinstance(step, ThoughtStep)
    assert "VISUAL GUIDANCE" not in llm.calls[0]["messages"][1].text


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    [
        None,
        ToolCall(name="teleport", arguments="{}"),
        ToolCall(name="click", arguments="{broken"),
        LLMException("server error", status_code=500),
    ],
)
async def test_failures_become_processing_error_steps(settings, scripted_llm, reply):
    llm = scripted_llm([reply])
    step = await StepDecisionMaker(llm, settings).decide("x", "<html/>", [])

    assert isinstance(step, ManualInterventionStep)
    assert step.category == "processing_error"
    assert step.reason.startswith("Processing error: ")


@pytest.mark.asyncio
async def test_custom_system_prompt(settings, scripted_llm, tool_call):
    llm = scripted_llm([tool_call("thought", content="next")])
    maker = StepDecisionMaker(llm, settings, system_prompt=SystemPrompt(override_system_message="Be brief.", extend_system_message="Never buy."))

    await maker.decide("x", "<html/>", [])

    assert llm.calls[0]["messages"][0].text == "Be brief.\nNever buy."
