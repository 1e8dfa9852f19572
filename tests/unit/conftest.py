"""
Shared fakes for the orchestration unit tests: a scripted decision model, an
in-memory browser and fast settings.
"""

import json

import pytest

from browser_pilot.agent.settings import OrchestratorSettings
from browser_pilot.agent.views import ChangeDetectionResult
from browser_pilot.browser.types import BrowserContextInfo, SelectorResult
from browser_pilot.llm.base import ChatInvokeCompletion, ToolCall


def make_tool_call(name, **arguments):
    return ToolCall(id=f"call_{name}", name=name, arguments=json.dumps(arguments))


class ScriptedLLM:
    """Replays scripted tool calls; the last entry repeats once the script runs out.

    An Exception entry is raised instead of returned. Calls without tools
    (clarifier) get `text_reply`.
    """

    model = "fake-model"
    provider = "fake"

    def __init__(self, script=(), text_reply=None, vision_reply="Click at (640, 360) on the button"):
        self.script = list(script)
        self.text_reply = text_reply
        self.vision_reply = vision_reply
        self.calls = []
        self.vision_calls = []

    async def ainvoke(self, messages, tools=None, tool_choice="auto", temperature=None, max_tokens=None, model=None):
        self.calls.append({"messages": messages, "tools": tools, "model": model, "temperature": temperature})
        if tools is None:
            if isinstance(self.text_reply, Exception):
                raise self.text_reply
            return ChatInvokeCompletion(completion=self.text_reply)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        if item is None:
            return ChatInvokeCompletion(completion="no tool", tool_calls=[])
        return ChatInvokeCompletion(tool_calls=[item])

    async def avision(self, image, prompt, model=None, max_tokens=None):
        self.vision_calls.append(prompt)
        return self.vision_reply

    def tool_names(self, call_index):
        return [t["function"]["name"] for t in self.calls[call_index]["tools"]]


class FakeBrowser:
    def __init__(self, url="about:blank", title="Blank"):
        self.url = url
        self.title = title
        self.calls = []
        self.click_result = SelectorResult(success=True, used_selector="#ok")
        self.type_result = SelectorResult(success=True, used_selector="#input")
        self.change = ChangeDetectionResult()
        self.navigate_error = None
        self.context_error = None
        self.screenshot_error = None
        self.manual_mode = False
        self.dom = "<html><body><button id='ok'>OK</button></body></html>"

    async def navigate(self, url):
        self.calls.append(("navigate", url))
        if self.navigate_error:
            raise self.navigate_error
        self.url = url
        self.title = url

    async def click_with_selectors(self, selectors):
        self.calls.append(("click", list(selectors)))
        return self.click_result

    async def type_with_selectors(self, selectors, value):
        self.calls.append(("type", list(selectors), value))
        return self.type_result

    async def click_coordinates(self, x, y):
        self.calls.append(("click_coordinates", x, y))

    async def press_key(self, key):
        self.calls.append(("press_key", key))

    async def scroll(self, direction, amount):
        self.calls.append(("scroll", direction, amount))

    async def wait(self, ms):
        self.calls.append(("wait", ms))

    async def screenshot(self):
        self.calls.append(("screenshot",))
        if self.screenshot_error:
            raise self.screenshot_error
        return b"\x89PNG fake"

    async def get_dom_content(self, token_budget):
        if self.context_error:
            raise self.context_error
        return self.dom[: token_budget * 4]

    async def get_context(self):
        if self.context_error:
            raise self.context_error
        return BrowserContextInfo(current_url=self.url, page_title=self.title)

    async def observe_dom_changes_for_action(self, action, settle_delay_seconds=0.1):
        before = self.url
        result = await action()
        change = self.change.model_copy(update={
            "before_url": before,
            "after_url": self.url,
            "url_changed": self.change.url_changed or before != self.url,
        })
        return result, change

    async def enable_manual_intervention_mode(self):
        self.manual_mode = True


@pytest.fixture
def settings():
    return OrchestratorSettings(
        model="gpt-4o",
        temperature=0.0,
        max_tokens=500,
        pace_delay_seconds=0,
        settle_delay_seconds=0,
        llm_backoff_base_seconds=0,
        llm_max_retries=0,
        llm_timeout_seconds=5,
        enable_visual_analysis=False,
    )


@pytest.fixture
def browser():
    return FakeBrowser()


@pytest.fixture
def tool_call():
    return make_tool_call


@pytest.fixture
def scripted_llm():
    return ScriptedLLM
