from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from pydantic import BaseModel, Field
from typing_extensions import Self

from browser_pilot.agent.views import ChangeDetectionResult
from browser_pilot.browser.types import BrowserContextInfo, SelectorResult, Viewport
from browser_pilot.config import CONFIG

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Substrings of Playwright errors that mean the page navigated away mid-observation
NAVIGATION_ERROR_MARKERS = ('Execution context was destroyed', 'Target closed', 'Navigation')
# Substrings of click errors that suggest clicking by position instead
COORDINATE_FALLBACK_MARKERS = ('outside', 'timeout', 'unstable', 'Timeout')

INSTALL_OBSERVER_JS = """
() => {
	const target = document.body || document.documentElement;
	const records = [];
	const observer = new MutationObserver((mutations) => {
		for (const m of mutations) {
			records.push({type: m.type, added: m.addedNodes.length, removed: m.removedNodes.length});
		}
	});
	observer.observe(target, {childList: true, subtree: true, attributes: true, characterData: true});
	window.__browserPilotObserver = observer;
	window.__browserPilotChanges = records;
}
"""

COLLECT_CHANGES_JS = """
() => {
	const observer = window.__browserPilotObserver;
	const records = window.__browserPilotChanges || [];
	if (observer) observer.disconnect();
	delete window.__browserPilotObserver;
	delete window.__browserPilotChanges;
	return records;
}
"""

MANUAL_MODE_JS = """
() => {
	if (document.body) document.body.focus();
	const existing = document.getElementById('browser-pilot-manual-cursor');
	if (existing) existing.remove();
	const cursor = document.createElement('div');
	cursor.id = 'browser-pilot-manual-cursor';
	cursor.style.cssText = 'position:fixed;width:20px;height:20px;border:2px solid #00ff00;border-radius:50%;' +
		'background-color:rgba(0,255,0,0.1);pointer-events:none;z-index:999998;transform:translate(-50%,-50%);';
	document.body && document.body.appendChild(cursor);
	document.addEventListener('mousemove', (e) => {
		cursor.style.left = e.clientX + 'px';
		cursor.style.top = e.clientY + 'px';
	});
}
"""


def categorize_mutations(records: list[dict]) -> tuple[int, list[str]]:
	"""Map raw MutationRecord summaries to (count, sorted change types)."""
	types: set[str] = set()
	for record in records:
		kind = record.get('type')
		if kind == 'childList':
			if record.get('added', 0) > 0:
				types.add('content_added')
			if record.get('removed', 0) > 0:
				types.add('content_removed')
		elif kind == 'attributes':
			types.add('attributes_changed')
		elif kind == 'characterData':
			types.add('text_changed')
	return len(records), sorted(types)


class BrowserConfig(BaseModel):
	headless: bool = Field(default_factory=lambda: CONFIG.HEADLESS)
	viewport: Viewport = Field(default_factory=lambda: Viewport(width=CONFIG.VIEWPORT_WIDTH, height=CONFIG.VIEWPORT_HEIGHT))
	click_wait_timeout_ms: int = 1000
	click_timeout_ms: int = 3000
	type_wait_timeout_ms: int = 4000
	fill_timeout_ms: int = 3000
	navigation_timeout_ms: int = 30000


class PlaywrightBrowser:
	"""Playwright-backed browser collaborator: one Chromium page per session."""

	def __init__(self, config: BrowserConfig | None = None, page: Page | None = None):
		self.config = config or BrowserConfig()
		self.page: Optional[Page] = page
		self._playwright: Optional[Playwright] = None
		self._browser: Optional[Browser] = None
		self._context: Optional[BrowserContext] = None

	async def start(self) -> Self:
		if self.page is not None:
			return self
		self._playwright = await async_playwright().start()
		self._browser = await self._playwright.chromium.launch(headless=self.config.headless)
		self._context = await self._browser.new_context(
			viewport={'width': self.config.viewport.width, 'height': self.config.viewport.height}
		)
		self.page = await self._context.new_page()
		logger.info(f'🌎 Browser launched (headless={self.config.headless}, viewport={self.config.viewport.width}x{self.config.viewport.height})')
		return self

	async def stop(self) -> None:
		if self._context is not None:
			await self._context.close()
		if self._browser is not None:
			await self._browser.close()
		if self._playwright is not None:
			await self._playwright.stop()
		self._context = self._browser = self._playwright = None
		self.page = None
		logger.debug('Browser stopped')

	async def __aenter__(self) -> Self:
		return await self.start()

	async def __aexit__(self, exc_type, exc_val, exc_tb):
		await self.stop()

	def _require_page(self) -> Page:
		if self.page is None:
			raise RuntimeError('Browser not initialized, call start() first')
		return self.page

	# --- actions ---

	async def navigate(self, url: str) -> None:
		page = self._require_page()
		logger.debug(f'Navigating to {url}')
		await page.goto(url, wait_until='domcontentloaded', timeout=self.config.navigation_timeout_ms)

	async def _try_selectors(
		self,
		selectors: list[str],
		wait_timeout_ms: int,
		perform: Callable[[Page, str], Awaitable[None]],
		label: str,
	) -> SelectorResult:
		page = self._require_page()
		if not selectors:
			return SelectorResult(success=False, error='No selectors provided')

		last_error = 'Unknown error'
		for i, selector in enumerate(selectors):
			try:
				logger.debug(f'Trying selector {i + 1}/{len(selectors)} for {label}: {selector}')
				await page.wait_for_selector(selector, timeout=wait_timeout_ms)
				await perform(page, selector)
				logger.debug(f'✅ {label} succeeded with selector: {selector}')
				return SelectorResult(success=True, used_selector=selector)
			except Exception as e:
				last_error = str(e)
				logger.debug(f'❌ Selector {i + 1} failed ({selector}): {last_error}')

		if any(marker in last_error for marker in COORDINATE_FALLBACK_MARKERS):
			return SelectorResult(
				success=False,
				error=(
					f'All {len(selectors)} selectors failed with viewport/timeout issues. '
					f'Consider using clickByPosition with screenshot analysis. Last error: {last_error}'
				),
			)
		return SelectorResult(success=False, error=f'All {len(selectors)} selectors failed. Last error: {last_error}')

	async def click_with_selectors(self, selectors: list[str]) -> SelectorResult:
		timeout = self.config.click_timeout_ms

		async def _click(page: Page, selector: str) -> None:
			await page.click(selector, timeout=timeout)

		return await self._try_selectors(selectors, self.config.click_wait_timeout_ms, _click, 'click')

	async def type_with_selectors(self, selectors: list[str], value: str) -> SelectorResult:
		timeout = self.config.fill_timeout_ms

		async def _fill(page: Page, selector: str) -> None:
			await page.fill(selector, value, timeout=timeout)

		return await self._try_selectors(selectors, self.config.type_wait_timeout_ms, _fill, 'type')

	async def click_coordinates(self, x: float, y: float) -> None:
		logger.debug(f'Clicking at coordinates ({x}, {y})')
		await self._require_page().mouse.click(x, y)

	async def press_key(self, key: str) -> None:
		await self._require_page().keyboard.press(key)

	async def scroll(self, direction: str, amount: int) -> None:
		delta_y = amount if direction == 'down' else -amount
		await self._require_page().mouse.wheel(0, delta_y)

	async def wait(self, ms: int) -> None:
		await asyncio.sleep(ms / 1000)

	async def screenshot(self) -> bytes:
		return await self._require_page().screenshot(type='png')

	async def get_dom_content(self, token_budget: int) -> str:
		html = await self._require_page().content()
		max_chars = token_budget * 4
		if len(html) > max_chars:
			html = html[:max_chars] + '\n<!-- ... HTML truncated -->'
		return html

	async def get_context(self) -> BrowserContextInfo:
		page = self._require_page()
		size = page.viewport_size or {'width': self.config.viewport.width, 'height': self.config.viewport.height}
		dpr = await page.evaluate('() => window.devicePixelRatio || 1')
		return BrowserContextInfo(
			current_url=page.url,
			page_title=await page.title(),
			viewport=Viewport(width=size['width'], height=size['height']),
			dpr=float(dpr),
		)

	async def observe_dom_changes_for_action(
		self, action: Callable[[], Awaitable[T]], settle_delay_seconds: float = 0.1
	) -> tuple[T, ChangeDetectionResult]:
		"""Run `action` while a MutationObserver records what it does to the page.

		Once the action has run, change detection never raises: a replaced execution
		context is reported as navigation and any other read-back error as no changes.
		"""
		page = self._require_page()
		before_url = page.url

		try:
			await page.evaluate(INSTALL_OBSERVER_JS)
		except Exception as e:
			if _is_navigation_error(e):
				logger.debug(f'Could not install mutation observer, page is navigating: {e}')
			else:
				logger.warning(f'Could not install mutation observer: {e}')

		result = await action()
		await asyncio.sleep(settle_delay_seconds)

		after_url = page.url
		if after_url != before_url:
			logger.debug(f'Navigation detected during action: {before_url} -> {after_url}')
			return result, _navigation_change(before_url, after_url, url_changed=True)

		try:
			records = await page.evaluate(COLLECT_CHANGES_JS)
		except Exception as e:
			after_url = page.url
			if _is_navigation_error(e):
				logger.debug(f'Execution context replaced while reading mutations: {e}')
				return result, _navigation_change(before_url, after_url, url_changed=after_url != before_url)
			logger.warning(f'Could not read DOM mutations, reporting no changes: {e}')
			return result, ChangeDetectionResult(before_url=before_url, after_url=after_url)

		count, change_types = categorize_mutations(records or [])
		return result, ChangeDetectionResult(
			has_changes=count > 0,
			change_count=count,
			change_types=change_types,
			url_changed=False,
			before_url=before_url,
			after_url=after_url,
		)

	async def enable_manual_intervention_mode(self) -> None:
		if self.page is None:
			return
		await self.page.bring_to_front()
		await self.page.evaluate(MANUAL_MODE_JS)
		logger.info('🖐️ Manual intervention mode enabled')


def _is_navigation_error(error: Exception) -> bool:
	return any(marker in str(error) for marker in NAVIGATION_ERROR_MARKERS)


def _navigation_change(before_url: str, after_url: str, url_changed: bool) -> ChangeDetectionResult:
	return ChangeDetectionResult(
		has_changes=True,
		change_count=1,
		change_types=['navigation'],
		url_changed=url_changed,
		before_url=before_url,
		after_url=after_url,
	)
