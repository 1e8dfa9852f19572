from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from browser_pilot.agent.views import (
    Instruction,
    InstructionClassification,
    ManualInterventionRequest,
    Step,
    ThoughtStep,
)

logger = logging.getLogger(__name__)


class RunStatus(Enum):
    DECIDING = "DECIDING"; EXECUTING = "EXECUTING"; OBSERVING = "OBSERVING"
    COMPLETED = "COMPLETED"; MANUAL_INTERVENTION = "MANUAL_INTERVENTION"; STOPPED = "STOPPED"; ERROR = "ERROR"


TERMINAL_STATES = {RunStatus.COMPLETED, RunStatus.MANUAL_INTERVENTION, RunStatus.STOPPED, RunStatus.ERROR}


def agent_log(level: int, instruction_id: Optional[str], step: Optional[int], message: str, **kwargs):
    log_extras = {'instruction_id': instruction_id, 'step': step}
    logger.log(level, message, extra=log_extras, **kwargs)


@dataclass
class SignalState:
    """Stop/complete flags for one run.

    Each accepted instruction gets a fresh object; the run keeps a reference
    to its own, so a preempted run still sees the signal that preempted it.
    """
    current_instruction_id: Optional[str] = None
    stop_signal: bool = False
    complete_signal: bool = False


@dataclass
class ProcessingState:
    is_processing: bool = False
    processed_instruction_ids: Set[str] = field(default_factory=set)


class RunState(BaseModel):
    """Mutable bookkeeping for one instruction run. Steps are append-only."""
    instruction: Instruction
    status: RunStatus = RunStatus.DECIDING
    steps: List[Step] = Field(default_factory=list)
    executed: List[str] = Field(default_factory=list)
    classification: Optional[InstructionClassification] = None
    final_answer: Optional[str] = None
    manual_intervention: Optional[ManualInterventionRequest] = None
    error: Optional[str] = None
    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def n_steps(self) -> int:
        return len(self.steps)

    def add_step(self, step: Step) -> None:
        self.steps.append(step)
        if isinstance(step, ThoughtStep) and step.classification is not None and self.classification is None:
            self.classification = step.classification

    def recent_steps(self, n: int) -> List[Step]:
        return self.steps[-n:] if n > 0 else []

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES


class StateManager:
    """Session-scoped single-flight guard for instruction processing.

    All methods are synchronous: a session runs on one event loop, and the
    loop only reads signals at iteration boundaries, so no lock is needed.
    """

    def __init__(self, processed_retention_seconds: float = 300.0):
        self.processed_retention_seconds = processed_retention_seconds
        self.signals = SignalState()
        self.processing = ProcessingState()
        self._cleanup_handles: List[asyncio.TimerHandle] = []

    # --- Signals ---

    def _targets_other_instruction(self, instruction_id: Optional[str]) -> bool:
        current = self.signals.current_instruction_id
        return bool(current and instruction_id and instruction_id != current)

    def set_stop_signal(self, instruction_id: Optional[str] = None) -> None:
        if self._targets_other_instruction(instruction_id):
            agent_log(logging.INFO, self.signals.current_instruction_id, None,
                      f"Stop signal ignored - not for current instruction (requested {instruction_id})")
            return
        agent_log(logging.INFO, self.signals.current_instruction_id, None, "🛑 Stop signal set")
        self.signals.stop_signal = True

    def set_complete_signal(self, instruction_id: Optional[str] = None) -> None:
        if self._targets_other_instruction(instruction_id):
            agent_log(logging.INFO, self.signals.current_instruction_id, None,
                      f"Complete signal ignored - not for current instruction (requested {instruction_id})")
            return
        agent_log(logging.INFO, self.signals.current_instruction_id, None,
                  f"✅ Complete signal set (was_processing={self.processing.is_processing})")
        self.signals.complete_signal = True

    def get_current_instruction_id(self) -> Optional[str]:
        return self.signals.current_instruction_id

    # --- Processing ---

    def start_processing(self, instruction_id: str) -> tuple[bool, Optional[str]]:
        """Try to acquire the processing slot. Returns (accepted, rejection_reason)."""
        if instruction_id in self.processing.processed_instruction_ids:
            agent_log(logging.INFO, instruction_id, None,
                      f"Rejecting instruction - already processed ({len(self.processing.processed_instruction_ids)} tracked)")
            return False, "Instruction already processed"

        if self.processing.is_processing:
            if not self.signals.complete_signal:
                agent_log(logging.INFO, self.signals.current_instruction_id, None,
                          f"Rejecting instruction {instruction_id} - already processing")
                return False, "Already processing an instruction"
            agent_log(logging.WARNING, self.signals.current_instruction_id, None,
                      f"Force stopping current run (marked complete) to accept {instruction_id}")
            self._release()

        self.processing.is_processing = True
        self.processing.processed_instruction_ids.add(instruction_id)
        # Fresh object: the preempted run keeps the old one
        self.signals = SignalState(current_instruction_id=instruction_id)
        agent_log(logging.INFO, instruction_id, None, "Starting processing for new instruction")
        return True, None

    def stop_processing(self, instruction_id: Optional[str] = None) -> None:
        """Release the slot. With an id, only releases if that id still owns it."""
        if instruction_id is not None and instruction_id != self.signals.current_instruction_id:
            agent_log(logging.DEBUG, instruction_id, None, "stop_processing ignored - slot owned by another instruction")
            return
        agent_log(logging.DEBUG, self.signals.current_instruction_id, None,
                  f"Stopping processing (stop={self.signals.stop_signal}, complete={self.signals.complete_signal})")
        self._release()

    def _release(self) -> None:
        self.processing.is_processing = False
        self.signals = SignalState()

    def is_currently_processing(self) -> bool:
        return self.processing.is_processing

    def was_instruction_processed(self, instruction_id: str) -> bool:
        return instruction_id in self.processing.processed_instruction_ids

    # --- Cleanup ---

    def cleanup_old_instructions(self) -> None:
        """Schedule removal of the currently processed ids after the retention window."""
        snapshot = set(self.processing.processed_instruction_ids)
        if not snapshot:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; processed instruction ids kept until next cleanup")
            return
        handle = loop.call_later(self.processed_retention_seconds, self._purge, snapshot)
        self._cleanup_handles.append(handle)

    def _purge(self, instruction_ids: Set[str]) -> None:
        self.processing.processed_instruction_ids -= instruction_ids
        self._cleanup_handles = [h for h in self._cleanup_handles if not h.cancelled() and h.when() > asyncio.get_running_loop().time()]
        logger.debug(f"Purged {len(instruction_ids)} processed instruction ids")

    def shutdown(self) -> None:
        """Cancel pending purges (e.g. when the session is torn down)."""
        for handle in self._cleanup_handles:
            handle.cancel()
        self._cleanup_handles.clear()
