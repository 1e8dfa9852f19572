from __future__ import annotations

import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Sequence, Union

if TYPE_CHECKING:
    from browser_pilot.agent.views import Action, ActionExecutionResult, InstructionResponse, Step

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorEvent:
    """Base event class for everything the orchestration loop reports to its sinks."""
    instruction_id: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class InstructionStarted(OrchestratorEvent):
    """Emitted once the instruction has acquired the processing slot."""
    text: str = field(default="")
    session_id: str = field(default="")
    current_url: Optional[str] = field(default=None)


@dataclass
class StepRecorded(OrchestratorEvent):
    """Emitted for every step appended to the run's step sequence."""
    step_number: int = field(default=0)
    step: Optional[Step] = field(default=None)


@dataclass
class ActionExecuted(OrchestratorEvent):
    """Emitted after the executor returns, successful or not."""
    action: Optional[Action] = field(default=None)
    result: Optional[ActionExecutionResult] = field(default=None)


@dataclass
class InstructionFinished(OrchestratorEvent):
    """Emitted with the final response and run metrics."""
    response: Optional[InstructionResponse] = field(default=None)
    duration_ms: int = field(default=0)
    steps: int = field(default=0)


EventSink = Callable[[OrchestratorEvent], Union[None, Awaitable[None]]]


async def dispatch(sinks: Sequence[EventSink], event: OrchestratorEvent) -> None:
    """Deliver `event` to every sink in order. A failing sink is logged and skipped."""
    for sink in sinks:
        try:
            result: Any = sink(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Event sink {getattr(sink, '__name__', sink)!r} failed on {type(event).__name__}: {e}", exc_info=True)


__all__ = [
    "OrchestratorEvent",
    "InstructionStarted",
    "StepRecorded",
    "ActionExecuted",
    "InstructionFinished",
    "EventSink",
    "dispatch",
]
