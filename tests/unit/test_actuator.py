import pytest

from browser_pilot.agent.actuator import ActionExecutor
from browser_pilot.agent.views import Action, ChangeDetectionResult
from browser_pilot.browser.types import SelectorResult


@pytest.fixture
def executor(browser, settings):
    return ActionExecutor(browser, settings)


@pytest.mark.asyncio
async def test_navigate_is_observed_and_reports_url_change(executor, browser):
    result = await executor.execute_action(Action(type="navigate", url="https://example.com", description="go"))

    assert result.success
    assert result.observation == "Successfully executed: go"
    change = result.metadata.change_detection
    assert change.url_changed
    assert change.before_url == "about:blank"
    assert change.after_url == "https://example.com"
    assert result.metadata.duration >= 0


@pytest.mark.asyncio
async def test_unobserved_actions_have_no_change_detection(executor, browser):
    result = await executor.execute_action(Action(type="scroll", direction="up", description="scroll"))

    assert result.success
    assert result.metadata.change_detection is None
    assert browser.calls == [("scroll", "up", 300)]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "action,message",
    [
        (Action(type="navigate", description="x"), "URL not provided for navigate action"),
        (Action(type="click", description="x"), "No selectors provided for click action"),
        (Action(type="clickByPosition", x=10, description="x"), "Coordinates not provided for clickByPosition action"),
        (Action(type="type", selectors=["#q"], description="x"), "Selectors or value not provided for type action"),
        (Action(type="wait", description="x"), "Duration not provided for wait action"),
    ],
)
async def test_missing_fields_are_hard_failures(executor, action, message):
    result = await executor.execute_action(action)

    assert not result.success
    assert result.failure_kind == "hard"
    assert result.error == message


@pytest.mark.asyncio
async def test_selector_exhaustion_is_soft_with_coordinate_fallback(executor, browser):
    browser.click_result = SelectorResult(success=False, error="Element is not stable after 3 attempts")

    result = await executor.execute_action(Action(type="click", selectors=["#a", "#b"], description="click"))

    assert not result.success
    assert result.failure_kind == "soft"
    assert result.coordinate_fallback is True
    assert result.error == "Element is not stable after 3 attempts"


@pytest.mark.asyncio
async def test_type_selector_failure_is_soft(executor, browser):
    browser.type_result = SelectorResult(success=False, error="No element matched")

    result = await executor.execute_action(Action(type="type", selectors=["#q"], value="hi", description="type"))

    assert result.failure_kind == "soft"
    assert result.coordinate_fallback is False


@pytest.mark.asyncio
async def test_browser_exception_is_hard_failure(executor, browser):
    browser.navigate_error = RuntimeError("net::ERR_CONNECTION_REFUSED")

    result = await executor.execute_action(Action(type="navigate", url="http://localhost:1", description="go"))

    assert result.failure_kind == "hard"
    assert result.error == "net::ERR_CONNECTION_REFUSED"


@pytest.mark.asyncio
async def test_other_actions_reach_the_browser(executor, browser):
    await executor.execute_action(Action(type="clickByPosition", x=12.5, y=40, description="c"))
    await executor.execute_action(Action(type="pressEnter", description="e"))
    await executor.execute_action(Action(type="wait", duration=250, description="w"))

    assert browser.calls == [("click_coordinates", 12.5, 40), ("press_key", "Enter"), ("wait", 250)]


def _change(**fields):
    return ChangeDetectionResult(**fields)


@pytest.mark.parametrize(
    "action_type,change,expected",
    [
        ("click", _change(has_changes=True, change_count=35, change_types=["content_added"]), True),
        ("click", _change(has_changes=True, change_count=29, change_types=["content_added"]), False),
        ("click", _change(has_changes=True, change_count=35, change_types=["attribute_changed"]), False),
        ("click", _change(url_changed=True, before_url="https://site.test/a", after_url="https://site.test/b"), True),
        ("navigate", _change(url_changed=True, has_changes=True, change_count=100, change_types=["content_added"]), False),
        ("type", _change(has_changes=True, change_count=100, change_types=["content_added"]), False),
    ],
)
def test_check_for_task_completion(executor, action_type, change, expected):
    check = executor.check_for_task_completion(change, Action(type=action_type, description="x"))
    assert check.should_complete is expected
    if expected:
        assert check.reason


def test_navigation_completion_names_the_new_url(executor):
    change = _change(url_changed=True, has_changes=True, before_url="https://site.test/jobs", after_url="https://site.test/jobs/42")
    check = executor.check_for_task_completion(change, Action(type="click", selectors=["#job"], description="open job"))
    assert check.reason == "Click triggered navigation to https://site.test/jobs/42"


def test_same_url_context_swap_does_not_complete_click(executor):
    change = _change(has_changes=True, change_count=1, change_types=["navigation"], url_changed=False,
                     before_url="https://site.test/form", after_url="https://site.test/form")
    check = executor.check_for_task_completion(change, Action(type="click", selectors=["#submit"], description="submit"))
    assert check.should_complete is False
