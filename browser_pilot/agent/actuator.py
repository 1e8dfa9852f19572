from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Optional

from browser_pilot.agent.state_manager import agent_log
from browser_pilot.agent.views import (
    OBSERVED_ACTION_TYPES,
    Action,
    ActionExecutionMetadata,
    ActionExecutionResult,
    ChangeDetectionResult,
    TaskCompletionCheck,
)
from browser_pilot.exceptions import HardActionError, SoftActionError
from browser_pilot.timing import elapsed_ms

if TYPE_CHECKING:
    from browser_pilot.agent.settings import OrchestratorSettings
    from browser_pilot.browser.types import BrowserController

logger = logging.getLogger(__name__)

COORDINATE_FALLBACK_MARKERS = ('viewport/timeout', 'outside', 'not stable', 'unstable', 'timeout', 'Timeout')
COMPLETION_CONTENT_TYPES = ('content_added', 'content_removed')


class ActionExecutor:
    """
    Executes one decided Action against the browser collaborator.
    Never raises: failures are classified soft (selector exhaustion) or hard
    (anything else) and reported in the returned ActionExecutionResult.
    """

    def __init__(self, browser: BrowserController, settings: OrchestratorSettings):
        self.browser = browser
        self.settings = settings

    async def execute_action(
        self,
        action: Action,
        instruction_id: Optional[str] = None,
        step: Optional[int] = None,
    ) -> ActionExecutionResult:
        start = time.monotonic()
        agent_log(logging.INFO, instruction_id, step, f"▶️ Executing: {action.description}")

        try:
            change_detection: Optional[ChangeDetectionResult] = None
            if action.type in OBSERVED_ACTION_TYPES:
                _, change_detection = await self.browser.observe_dom_changes_for_action(
                    lambda: self._perform_action(action),
                    settle_delay_seconds=self.settings.settle_delay_seconds,
                )
            else:
                await self._perform_action(action)

            duration = elapsed_ms(start)
            agent_log(logging.INFO, instruction_id, step, f"✅ Action completed in {duration:.0f}ms")
            return ActionExecutionResult(
                success=True,
                observation=f"Successfully executed: {action.description}",
                metadata=ActionExecutionMetadata(duration=duration, change_detection=change_detection),
            )

        except SoftActionError as e:
            agent_log(logging.WARNING, instruction_id, step, f"⚠️ Selector fallback exhausted: {action.description}: {e.message}")
            return ActionExecutionResult(
                success=False,
                error=e.message,
                failure_kind='soft',
                coordinate_fallback=e.coordinate_fallback,
                metadata=ActionExecutionMetadata(duration=elapsed_ms(start)),
            )
        except Exception as e:
            message = e.message if isinstance(e, HardActionError) else (str(e) or type(e).__name__)
            agent_log(logging.ERROR, instruction_id, step, f"❌ Action failed: {action.description}: {message}",
                      exc_info=not isinstance(e, HardActionError))
            return ActionExecutionResult(
                success=False,
                error=message,
                failure_kind='hard',
                metadata=ActionExecutionMetadata(duration=elapsed_ms(start)),
            )

    async def _perform_action(self, action: Action) -> None:
        if action.type == 'navigate':
            if not action.url:
                raise HardActionError("URL not provided for navigate action")
            await self.browser.navigate(action.url)

        elif action.type == 'click':
            if not action.selectors:
                raise HardActionError("No selectors provided for click action")
            result = await self.browser.click_with_selectors(action.selectors)
            if not result.success:
                self._raise_selector_failure(result.error or "Click failed with selectors")

        elif action.type == 'clickByPosition':
            if action.x is None or action.y is None:
                raise HardActionError("Coordinates not provided for clickByPosition action")
            await self.browser.click_coordinates(action.x, action.y)

        elif action.type == 'type':
            if not action.selectors or not action.value:
                raise HardActionError("Selectors or value not provided for type action")
            result = await self.browser.type_with_selectors(action.selectors, action.value)
            if not result.success:
                self._raise_selector_failure(result.error or "Type failed with selectors")

        elif action.type == 'pressEnter':
            await self.browser.press_key('Enter')

        elif action.type == 'scroll':
            amount = action.amount or self.settings.default_scroll_amount
            await self.browser.scroll(action.direction or 'down', amount)

        elif action.type == 'wait':
            if not action.duration:
                raise HardActionError("Duration not provided for wait action")
            await self.browser.wait(action.duration)

        else:
            raise HardActionError(f"Unknown action type: {action.type}")

    @staticmethod
    def _raise_selector_failure(error: str) -> None:
        raise SoftActionError(error, coordinate_fallback=any(m in error for m in COORDINATE_FALLBACK_MARKERS))

    def check_for_task_completion(self, change_detection: ChangeDetectionResult, action: Action) -> TaskCompletionCheck:
        """Heuristic completion for clicks only; every other case defers to the decision model."""
        if action.type != 'click':
            return TaskCompletionCheck(should_complete=False)

        if change_detection.url_changed:
            logger.info(f"Task completion detected: URL changed after click ({change_detection.before_url} -> {change_detection.after_url})")
            return TaskCompletionCheck(
                should_complete=True,
                reason=f"Click triggered navigation to {change_detection.after_url}",
            )

        if (
            change_detection.has_changes
            and change_detection.change_count >= self.settings.mutation_completion_threshold
            and any(t in COMPLETION_CONTENT_TYPES for t in change_detection.change_types)
        ):
            logger.info(f"Task completion detected: {change_detection.change_count} DOM mutations after click")
            return TaskCompletionCheck(
                should_complete=True,
                reason=f"Click caused significant page update ({change_detection.change_count} mutations)",
            )

        return TaskCompletionCheck(should_complete=False)
