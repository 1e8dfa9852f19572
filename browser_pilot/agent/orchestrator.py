from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import TYPE_CHECKING, List, Optional, Sequence

from browser_pilot.agent.actuator import ActionExecutor
from browser_pilot.agent.clarifier import InstructionClarifier
from browser_pilot.agent.decision_maker import PROCESSING_ERROR_CATEGORY, StepDecisionMaker
from browser_pilot.agent.events import (
    ActionExecuted,
    EventSink,
    InstructionFinished,
    InstructionStarted,
    OrchestratorEvent,
    StepRecorded,
    dispatch,
)
from browser_pilot.agent.heuristics import is_simple_navigation_complete, is_stalled, should_take_screenshot
from browser_pilot.agent.settings import OrchestratorSettings
from browser_pilot.agent.state_manager import RunState, RunStatus, SignalState, StateManager, agent_log
from browser_pilot.agent.views import (
    ActionStep,
    ClarificationRequest,
    CompleteStep,
    Instruction,
    InstructionResponse,
    ManualInterventionRequest,
    ManualInterventionStep,
    ObservationStep,
    Step,
)
from browser_pilot.browser.types import BrowserContextInfo
from browser_pilot.timing import elapsed_ms

if TYPE_CHECKING:
    from browser_pilot.browser.types import BrowserController
    from browser_pilot.llm.base import BaseChatModel
    from browser_pilot.session import SessionService

logger = logging.getLogger(__name__)

FALLBACK_DOM = '<html><body><h1>Browser Error</h1><p>Browser context unavailable</p></body></html>'

STOPPED_BY_USER = "Instruction stopped by user"
MAX_STEPS_REASON = "Maximum reasoning steps reached"
STALLED_REASON = "Agent appears stuck in reasoning loop"
INCOMPLETE_ERROR = "Instruction processing did not complete successfully"

SOFT_CLICK_FAILURE = (
    "Click action failed: {error}. Elements found but not clickable (outside viewport or not stable). "
    "Recommendation: Try scrolling first, then use clickByPosition with screenshot analysis."
)
SOFT_TYPE_FAILURE = (
    "Type action failed: {error}. Recommendation: Scroll the input into view or click it by position, "
    "then try typing again with different selectors."
)

MARK_AS_DONE = 'click "Mark as Done" to continue'
AGE_PATTERN = re.compile(r"\bage\b")


def generate_manual_intervention_suggestion(reason: Optional[str]) -> str:
    """Human-facing instructions derived from the intervention reason keywords."""
    if not reason:
        return f'Please review the current page and take any necessary manual actions, then {MARK_AS_DONE}.'

    r = reason.lower()
    if 'login' in r or 'authentication' in r or 'sign in' in r:
        return f'Please log in to your account using your credentials, then {MARK_AS_DONE} with the task.'
    if 'two-factor' in r or '2fa' in r or 'verification code' in r:
        return f'Please enter the verification code from your authenticator app or SMS, then {MARK_AS_DONE}.'
    if 'captcha' in r or 'verification' in r or 'robot' in r:
        return f'Please complete the CAPTCHA verification challenge, then {MARK_AS_DONE}.'
    if 'cookie' in r or 'gdpr' in r:
        return f'Please accept or decline the cookie consent banner as preferred, then {MARK_AS_DONE}.'
    if AGE_PATTERN.search(r) or 'date of birth' in r:
        return f'Please complete the age verification form, then {MARK_AS_DONE}.'
    if 'error' in r or 'failed' in r or 'timeout' in r:
        return f'An error occurred during automated processing. Please review the page, resolve any issues manually, then {MARK_AS_DONE}.'
    if 'stalled' in r or 'stuck' in r:
        return 'The automated process encountered difficulties. Please complete the task manually and click "Mark as Done" when finished.'
    return f'Manual action is required: {reason}. Please complete the necessary steps and {MARK_AS_DONE}.'


class OrchestrationLoop:
    """
    Drives one session's browser through the decide -> execute -> observe cycle.

    One instruction runs at a time per loop (enforced by the StateManager).
    Stop/complete signals are polled at the top of every iteration; an
    in-flight model call or browser action always finishes first.
    """

    def __init__(
        self,
        browser: BrowserController,
        llm: BaseChatModel,
        session: SessionService,
        settings: Optional[OrchestratorSettings] = None,
        sinks: Optional[Sequence[EventSink]] = None,
        state_manager: Optional[StateManager] = None,
    ):
        self.browser = browser
        self.session = session
        self.settings = settings or OrchestratorSettings()
        self.sinks: List[EventSink] = list(sinks or [])
        self.state_manager = state_manager or StateManager(self.settings.processed_retention_seconds)
        self.decision_maker = StepDecisionMaker(llm, self.settings)
        self.executor = ActionExecutor(browser, self.settings)
        self.clarifier = InstructionClarifier(llm, self.settings)
        logger.info(f"🧠 Orchestration loop ready for session {session.id} (max_steps={self.settings.max_steps})")

    # --- public interface ---

    def is_currently_processing(self) -> bool:
        return self.state_manager.is_currently_processing()

    def get_current_instruction_id(self) -> Optional[str]:
        return self.state_manager.get_current_instruction_id()

    def stop_current_instruction(self, instruction_id: Optional[str] = None) -> None:
        self.state_manager.set_stop_signal(instruction_id)

    def mark_current_instruction_complete(self, instruction_id: Optional[str] = None) -> None:
        self.state_manager.set_complete_signal(instruction_id)

    def add_sink(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    def shutdown(self) -> None:
        self.state_manager.shutdown()

    async def process_instruction(self, instruction: Instruction) -> InstructionResponse:
        """Run one instruction to a terminal state. Never raises."""
        if self.settings.enable_clarifier:
            clarified = await self._clarify(instruction)
            if isinstance(clarified, InstructionResponse):
                return clarified
            instruction = clarified

        accepted, rejection = self.state_manager.start_processing(instruction.id)
        if not accepted:
            agent_log(logging.WARNING, instruction.id, None, f"Rejecting instruction: {rejection}")
            return InstructionResponse(id=instruction.id, status='error', error=rejection)

        # The run keeps its own signal object even if a later instruction preempts it
        signals = self.state_manager.signals
        start = time.monotonic()
        run = RunState(instruction=instruction)
        context_before = BrowserContextInfo()
        try:
            context_before = await self._read_context(instruction.id)
            agent_log(logging.INFO, instruction.id, 0, f"🚀 Starting instruction: {instruction.text[:100]}")
            await self._emit(InstructionStarted(
                instruction_id=instruction.id,
                text=instruction.text,
                session_id=instruction.session_id,
                current_url=context_before.current_url,
            ))

            response = await self._run(run, signals)
            context_after = await self._read_context(instruction.id, fallback=context_before)
            response.current_url = context_after.current_url
            response.page_title = context_after.page_title
        except Exception as e:
            agent_log(logging.ERROR, instruction.id, run.n_steps, f"Instruction failed unexpectedly: {e}", exc_info=True)
            response = InstructionResponse(
                id=instruction.id,
                status='error',
                error=str(e) or type(e).__name__,
                executed=list(run.executed),
                current_url=context_before.current_url,
                page_title=context_before.page_title,
            )
        finally:
            self.state_manager.stop_processing(instruction.id)
            self.state_manager.cleanup_old_instructions()

        duration = elapsed_ms(start)
        agent_log(
            logging.INFO, instruction.id, run.n_steps,
            f"🏁 Instruction finished: status={response.status}, duration={duration}ms, "
            f"actions_executed={len(response.executed)}, steps={run.n_steps}",
        )
        await self._emit(InstructionFinished(
            instruction_id=instruction.id, response=response, duration_ms=duration, steps=run.n_steps
        ))
        return response

    # --- the loop ---

    async def _run(self, run: RunState, signals: SignalState) -> InstructionResponse:
        s = self.settings
        instruction = run.instruction

        while True:
            if signals.stop_signal:
                agent_log(logging.INFO, instruction.id, run.n_steps, "🛑 Stop signal received")
                run.status = RunStatus.STOPPED
                break
            if signals.complete_signal:
                agent_log(logging.INFO, instruction.id, run.n_steps, "✅ Complete signal received")
                run.status = RunStatus.COMPLETED
                break

            if run.n_steps >= s.max_steps:
                self._require_manual_intervention(run, MAX_STEPS_REASON, category='max_steps')
                break

            if is_simple_navigation_complete(run.steps, window=s.auto_complete_window):
                agent_log(logging.INFO, instruction.id, run.n_steps, "Auto-completing: successful navigation without recent failures")
                run.status = RunStatus.COMPLETED
                run.final_answer = f"Successfully completed: {instruction.text}"
                break

            run.status = RunStatus.DECIDING
            dom_content, context = await self._perceive(run)

            screenshot = None
            if should_take_screenshot(instruction.text, run.steps, run.classification):
                screenshot = await self._capture_screenshot(run)

            decide_start = time.monotonic()
            step = await self.decision_maker.decide(
                instruction.text,
                dom_content,
                run.steps,
                action_history=self.session.get_state().actions_history,
                screenshot=screenshot,
                classification=run.classification,
                viewport=context.viewport,
                instruction_id=instruction.id,
            )
            decide_seconds = time.monotonic() - decide_start
            if decide_seconds > s.slow_step_seconds:
                agent_log(logging.WARNING, instruction.id, run.n_steps, f"⚠️ Slow decision step detected ({decide_seconds:.1f}s)")

            await self._record(run, step)

            if isinstance(step, CompleteStep):
                agent_log(logging.INFO, instruction.id, run.n_steps, f"Model signaled completion: {step.summary}")
                run.status = RunStatus.COMPLETED
                run.final_answer = step.final_answer or step.summary
                break

            if isinstance(step, ManualInterventionStep):
                reason = step.reason
                if step.category != PROCESSING_ERROR_CATEGORY:
                    reason = f"{step.category}: {step.reason}"
                self._require_manual_intervention(run, reason, category=step.category, suggestion=step.suggestion)
                break

            if isinstance(step, ActionStep):
                await self._act(run, step)
                if run.is_terminal:
                    break

            stall = is_stalled(
                run.steps,
                min_steps=s.stall_min_steps,
                similarity_threshold=s.thought_similarity_threshold,
                progress_window=s.progress_window,
                classification_window=s.classification_window,
            )
            if stall:
                agent_log(logging.WARNING, instruction.id, run.n_steps, f"Stall detected: {stall}")
                self._require_manual_intervention(run, STALLED_REASON, category='stalled')
                break

            await asyncio.sleep(s.pace_delay_seconds)

        return await self._build_final_response(run, signals)

    async def _act(self, run: RunState, step: ActionStep) -> None:
        action = step.action_data
        run.status = RunStatus.EXECUTING
        result = await self.executor.execute_action(action, instruction_id=run.instruction.id, step=run.n_steps)
        await self._emit(ActionExecuted(instruction_id=run.instruction.id, action=action, result=result))
        run.status = RunStatus.OBSERVING

        if result.success:
            run.executed.append(action.description)
            self.session.add_action(action.description)
            await self._record(run, ObservationStep(content=result.observation or f"Successfully executed: {action.description}", success=True))

            change_detection = result.metadata.change_detection
            if change_detection is not None:
                check = self.executor.check_for_task_completion(change_detection, action)
                if check.should_complete:
                    run.status = RunStatus.COMPLETED
                    run.final_answer = check.reason or f"Successfully completed: {run.instruction.text}"
            return

        error = result.error or "Unknown error"
        if result.failure_kind == 'soft':
            template = SOFT_CLICK_FAILURE if action.type == 'click' else SOFT_TYPE_FAILURE
            await self._record(run, ObservationStep(content=template.format(error=error), success=False))
            return

        await self._record(run, ObservationStep(content=f"Action failed: {error}", success=False))
        run.status = RunStatus.ERROR
        run.error = error

    # --- helpers ---

    def _require_manual_intervention(
        self,
        run: RunState,
        reason: str,
        category: str = 'other',
        suggestion: Optional[str] = None,
    ) -> None:
        run.status = RunStatus.MANUAL_INTERVENTION
        run.manual_intervention = ManualInterventionRequest(
            reason=reason,
            suggestion=suggestion or generate_manual_intervention_suggestion(reason),
            category=category,
        )
        agent_log(logging.INFO, run.instruction.id, run.n_steps, f"🖐️ Manual intervention required ({category}): {reason}")

    async def _build_final_response(self, run: RunState, signals: SignalState) -> InstructionResponse:
        """Externally signaled terminals take priority over locally computed ones."""
        instruction_id = run.instruction.id
        executed = list(run.executed)
        actions = [s.action_data.model_dump(exclude_none=True) for s in run.steps if isinstance(s, ActionStep)]

        if signals.stop_signal:
            return InstructionResponse(id=instruction_id, status='error', error=STOPPED_BY_USER, executed=executed)

        if signals.complete_signal:
            return InstructionResponse(id=instruction_id, status='success', executed=executed, actions=actions)

        if run.status == RunStatus.MANUAL_INTERVENTION and run.manual_intervention is not None:
            try:
                await self.browser.enable_manual_intervention_mode()
            except Exception as e:
                agent_log(logging.WARNING, instruction_id, run.n_steps, f"Could not enable manual intervention mode: {e}")
            return InstructionResponse(
                id=instruction_id,
                status='manual_intervention_required',
                manual_intervention_request=run.manual_intervention,
                executed=executed,
            )

        if run.status == RunStatus.COMPLETED and run.final_answer:
            return InstructionResponse(id=instruction_id, status='success', executed=executed, actions=actions)

        if run.status == RunStatus.ERROR:
            return InstructionResponse(id=instruction_id, status='error', error=run.error, executed=executed)

        return InstructionResponse(id=instruction_id, status='error', error=INCOMPLETE_ERROR, executed=executed)

    async def _clarify(self, instruction: Instruction) -> Instruction | InstructionResponse:
        try:
            result = await self.clarifier.clarify(instruction.text, self.session.get_state().actions_history)
        except Exception as e:
            agent_log(logging.WARNING, instruction.id, None, f"Clarifier failed, continuing with original text: {e}")
            return instruction

        if result.score < self.settings.clarity_threshold:
            agent_log(logging.INFO, instruction.id, None, f"Instruction needs clarification (score {result.score}/10)")
            return InstructionResponse(
                id=instruction.id,
                status='needs_clarification',
                clarification_request=ClarificationRequest(
                    confidence_score=result.score,
                    reasoning="Low clarity score",
                    message=f"Your task is unclear (score {result.score}/10). Please choose one of the suggestions or rephrase.",
                    suggested_questions=result.suggestions,
                ),
            )
        return instruction.model_copy(update={'text': result.improved})

    async def _perceive(self, run: RunState) -> tuple[str, BrowserContextInfo]:
        try:
            dom_content = await self.browser.get_dom_content(self.settings.resolved_dom_token_budget())
            context = await self.browser.get_context()
            return dom_content, context
        except Exception as e:
            agent_log(logging.ERROR, run.instruction.id, run.n_steps, f"Failed to get browser context: {e}")
            return FALLBACK_DOM, BrowserContextInfo(page_title='Browser Error')

    async def _capture_screenshot(self, run: RunState) -> Optional[bytes]:
        start = time.monotonic()
        try:
            screenshot = await self.browser.screenshot()
        except Exception as e:
            agent_log(logging.ERROR, run.instruction.id, run.n_steps, f"Failed to take screenshot: {e}")
            return None
        seconds = time.monotonic() - start
        if seconds > self.settings.slow_screenshot_seconds:
            agent_log(logging.WARNING, run.instruction.id, run.n_steps, f"⚠️ Slow screenshot capture detected ({seconds:.1f}s)")
        return screenshot

    async def _read_context(self, instruction_id: str, fallback: Optional[BrowserContextInfo] = None) -> BrowserContextInfo:
        try:
            return await self.browser.get_context()
        except Exception as e:
            agent_log(logging.DEBUG, instruction_id, None, f"Browser context unavailable: {e}")
            return fallback or BrowserContextInfo()

    async def _record(self, run: RunState, step: Step) -> None:
        run.add_step(step)
        await self._emit(StepRecorded(instruction_id=run.instruction.id, step_number=run.n_steps, step=step))

    async def _emit(self, event: OrchestratorEvent) -> None:
        if self.sinks:
            await dispatch(self.sinks, event)
