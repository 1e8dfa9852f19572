from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Literal

logger = logging.getLogger(__name__)

ActionType = Literal['navigate', 'click', 'clickByPosition', 'type', 'pressEnter', 'scroll', 'wait']
InstructionType = Literal[
    'simple_navigation', 'complex_interaction', 'content_extraction', 'multi_step_task', 'visual_task', 'unknown'
]
InterventionCategory = Literal['login', 'captcha', 'security', 'privacy', 'complex_interaction', 'other']
ResponseStatus = Literal['success', 'error', 'manual_intervention_required', 'needs_clarification']

# Actions whose effect is observed through DOM mutation tracking
OBSERVED_ACTION_TYPES = frozenset({'navigate', 'click', 'type', 'pressEnter'})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Instruction(BaseModel):
    """A caller-supplied instruction. Immutable; the clarifier produces a rewritten copy."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    text: str
    session_id: str
    timestamp: datetime = Field(default_factory=_utcnow)


class InstructionClassification(BaseModel):
    type: InstructionType = 'unknown'
    needs_screenshot: bool = True
    complexity: Literal['low', 'medium', 'high'] = 'medium'
    estimated_steps: int = 1
    reason: str = ''


class Action(BaseModel):
    type: ActionType
    selectors: Optional[List[str]] = None
    value: Optional[str] = None
    url: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    direction: Optional[Literal['up', 'down']] = None
    amount: Optional[int] = None
    duration: Optional[int] = None
    description: str = ''


# --- Steps ---

class _StepBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def text(self) -> str:
        return getattr(self, 'content', '')


class ThoughtStep(_StepBase):
    type: Literal['thought'] = 'thought'
    content: str
    classification: Optional[InstructionClassification] = None


class ActionStep(_StepBase):
    type: Literal['action'] = 'action'
    action_data: Action
    content: str


class ObservationStep(_StepBase):
    type: Literal['observation'] = 'observation'
    content: str
    success: bool = True


class CompleteStep(_StepBase):
    type: Literal['complete'] = 'complete'
    summary: str
    final_answer: str = ''

    @property
    def text(self) -> str:
        return self.final_answer or self.summary


class ManualInterventionStep(_StepBase):
    type: Literal['manual_intervention'] = 'manual_intervention'
    reason: str
    category: str = 'other'
    suggestion: Optional[str] = None

    @property
    def text(self) -> str:
        return self.reason


Step = Annotated[
    Union[ThoughtStep, ActionStep, ObservationStep, CompleteStep, ManualInterventionStep],
    Field(discriminator='type'),
]


# --- Execution results ---

class ChangeDetectionResult(BaseModel):
    has_changes: bool = False
    change_count: int = 0
    change_types: List[str] = Field(default_factory=list)
    url_changed: bool = False
    before_url: str = ''
    after_url: str = ''


class ActionExecutionMetadata(BaseModel):
    duration: float = 0.0  # milliseconds
    change_detection: Optional[ChangeDetectionResult] = None


class ActionExecutionResult(BaseModel):
    """Outcome of one executed action. Failures are reported here, never raised."""
    success: bool
    observation: Optional[str] = None
    error: Optional[str] = None
    failure_kind: Optional[Literal['soft', 'hard']] = None
    coordinate_fallback: bool = False
    metadata: ActionExecutionMetadata = Field(default_factory=ActionExecutionMetadata)


class TaskCompletionCheck(BaseModel):
    should_complete: bool = False
    reason: Optional[str] = None


# --- Responses ---

class ManualInterventionRequest(BaseModel):
    reason: str
    suggestion: str
    category: str = 'other'
    timestamp: datetime = Field(default_factory=_utcnow)


class ClarificationRequest(BaseModel):
    confidence_score: int
    reasoning: str
    message: str
    suggested_questions: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)


class InstructionResponse(BaseModel):
    id: str
    status: ResponseStatus
    error: Optional[str] = None
    executed: List[str] = Field(default_factory=list)
    actions: List[Dict[str, Any]] = Field(default_factory=list)
    manual_intervention_request: Optional[ManualInterventionRequest] = None
    clarification_request: Optional[ClarificationRequest] = None
    current_url: Optional[str] = None
    page_title: Optional[str] = None
