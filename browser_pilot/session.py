from __future__ import annotations

import logging
import secrets
from typing import List

from pydantic import BaseModel, Field

from browser_pilot.timing import now_ms

logger = logging.getLogger(__name__)

INACTIVE_THRESHOLD_MS = 60 * 60 * 1000


def _generate_session_id() -> str:
	return f'session-{now_ms()}-{secrets.token_hex(5)[:9]}'


class SessionState(BaseModel):
	id: str = Field(default_factory=_generate_session_id)
	actions_history: List[str] = Field(default_factory=list)
	last_activity: int = Field(default_factory=now_ms)


class SessionService:
	"""In-memory session: the action history the orchestration loop appends to."""

	def __init__(self, state: SessionState | None = None):
		self.state = state or SessionState()
		logger.info(f'Session initialized: {self.state.id}')

	@property
	def id(self) -> str:
		return self.state.id

	def get_state(self) -> SessionState:
		"""A deep copy; mutating it does not affect the session."""
		return self.state.model_copy(deep=True)

	def add_action(self, description: str) -> None:
		self.state.actions_history.append(description)
		self._touch()

	def is_active(self, threshold_ms: int = INACTIVE_THRESHOLD_MS) -> bool:
		return now_ms() - self.state.last_activity < threshold_ms

	def _touch(self) -> None:
		self.state.last_activity = now_ms()
