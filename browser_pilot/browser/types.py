# centralize types for the browser collaborator

from typing import Awaitable, Callable, Optional, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

from browser_pilot.agent.views import ChangeDetectionResult

T = TypeVar('T')


class Viewport(BaseModel):
	width: int = 1280
	height: int = 720


class BrowserContextInfo(BaseModel):
	current_url: str = 'about:blank'
	page_title: str = ''
	viewport: Viewport = Viewport()
	dpr: float = 1.0


class SelectorResult(BaseModel):
	"""Outcome of a selector-fallback click or type."""

	success: bool
	used_selector: Optional[str] = None
	error: Optional[str] = None


@runtime_checkable
class BrowserController(Protocol):
	"""The live browser the orchestration loop acts on.

	Selector-based actions report failure in their result; everything else
	raises on failure.
	"""

	async def navigate(self, url: str) -> None: ...

	async def click_with_selectors(self, selectors: list[str]) -> SelectorResult: ...

	async def type_with_selectors(self, selectors: list[str], value: str) -> SelectorResult: ...

	async def click_coordinates(self, x: float, y: float) -> None: ...

	async def press_key(self, key: str) -> None: ...

	async def scroll(self, direction: str, amount: int) -> None: ...

	async def wait(self, ms: int) -> None: ...

	async def screenshot(self) -> bytes: ...

	async def get_dom_content(self, token_budget: int) -> str: ...

	async def get_context(self) -> BrowserContextInfo: ...

	async def observe_dom_changes_for_action(
		self, action: Callable[[], Awaitable[T]], settle_delay_seconds: float = 0.1
	) -> tuple[T, ChangeDetectionResult]: ...

	async def enable_manual_intervention_mode(self) -> None: ...
