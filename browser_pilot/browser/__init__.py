from typing import TYPE_CHECKING

from browser_pilot.browser.types import BrowserContextInfo, BrowserController, SelectorResult, Viewport

# Lazy import so that importing the protocol does not require playwright
if TYPE_CHECKING:
	from browser_pilot.browser.session import BrowserConfig, PlaywrightBrowser

_LAZY_IMPORTS = {
	'BrowserConfig': ('browser_pilot.browser.session', 'BrowserConfig'),
	'PlaywrightBrowser': ('browser_pilot.browser.session', 'PlaywrightBrowser'),
}


def __getattr__(name: str):
	if name in _LAZY_IMPORTS:
		module_path, attr_name = _LAZY_IMPORTS[name]
		from importlib import import_module

		module = import_module(module_path)
		attr = getattr(module, attr_name)
		globals()[name] = attr
		return attr
	raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = ['BrowserController', 'BrowserContextInfo', 'SelectorResult', 'Viewport', 'BrowserConfig', 'PlaywrightBrowser']
