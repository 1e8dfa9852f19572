"""Environment-driven configuration.

Values are read on attribute access so tests (and long-lived processes) can
change the environment without re-importing the package.
"""
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
	raw = os.getenv(name)
	if raw is None or raw == '':
		return default
	return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name: str, default: int) -> int:
	try:
		return int(os.getenv(name, str(default)))
	except ValueError:
		return default


def _env_float(name: str, default: float) -> float:
	try:
		return float(os.getenv(name, str(default)))
	except ValueError:
		return default


class Config:
	"""Lazy view over the process environment."""

	@property
	def BROWSER_PILOT_LOGGING_LEVEL(self) -> str:
		return os.getenv('BROWSER_PILOT_LOGGING_LEVEL', 'info').lower()

	@property
	def BROWSER_PILOT_SETUP_LOGGING(self) -> bool:
		return _env_bool('BROWSER_PILOT_SETUP_LOGGING', True)

	@property
	def OPENAI_API_KEY(self) -> str:
		return os.getenv('OPENAI_API_KEY', '')

	@property
	def OPENAI_BASE_URL(self) -> str | None:
		return os.getenv('OPENAI_BASE_URL') or None

	@property
	def LLM_MODEL(self) -> str:
		return os.getenv('LLM_MODEL', 'gpt-4o')

	@property
	def LLM_TEMPERATURE(self) -> float:
		return _env_float('LLM_TEMPERATURE', 0.7)

	@property
	def MAX_LLM_TOKENS(self) -> int:
		return _env_int('MAX_LLM_TOKENS', 2000)

	@property
	def VISION_MODEL(self) -> str:
		return os.getenv('VISION_MODEL', 'gpt-4o')

	@property
	def HEADLESS(self) -> bool:
		return _env_bool('HEADLESS', True)

	@property
	def VIEWPORT_WIDTH(self) -> int:
		return _env_int('VIEWPORT_WIDTH', 1280)

	@property
	def VIEWPORT_HEIGHT(self) -> int:
		return _env_int('VIEWPORT_HEIGHT', 720)


CONFIG = Config()


# Approximate context windows; unknown models get the conservative fallback.
MODEL_CONTEXT_LIMITS: dict[str, int] = {
	'gpt-4o': 128000,
	'gpt-4o-mini': 128000,
	'gpt-4-turbo': 128000,
	'gpt-4-turbo-preview': 128000,
	'gpt-4': 8192,
	'gpt-3.5-turbo': 16385,
	'claude-3-5-sonnet': 200000,
	'claude-3-opus': 200000,
	'claude-3-sonnet': 200000,
	'claude-3-haiku': 200000,
}
DEFAULT_CONTEXT_LIMIT = 8192


def calculate_dom_token_budget(model: str | None = None, reply_reserve: int = 1000) -> int:
	"""Token budget for the DOM snapshot handed to the decision model.

	Capped at 8k tokens (or 40% of the context window) since the snapshot is
	already minimized upstream; never below 3k.
	"""
	model = model or CONFIG.LLM_MODEL
	context_limit = MODEL_CONTEXT_LIMITS.get(model, DEFAULT_CONTEXT_LIMIT)
	max_dom_tokens = min(8000, int(context_limit * 0.4))
	# system prompt (~800) + user prompt overhead (~200) + reply
	system_overhead = 800 + 200 + reply_reserve
	return max(3000, min(max_dom_tokens, context_limit - system_overhead))
