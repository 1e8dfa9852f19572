from __future__ import annotations


class BrowserPilotError(Exception):
    """Base class for all errors raised by browser_pilot."""


class LLMException(BrowserPilotError):
    """A model call failed, timed out, or exhausted its retries."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DecisionError(BrowserPilotError):
    """The decision model returned no tool call, or one that fails its argument schema."""

    def __init__(self, message: str, tool_name: str | None = None):
        super().__init__(message)
        self.message = message
        self.tool_name = tool_name


class ActionExecutionError(BrowserPilotError):
    """Base for failures while performing an action against the browser."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SoftActionError(ActionExecutionError):
    """Every selector of a click/type action failed. The run records it and continues."""

    def __init__(self, message: str, coordinate_fallback: bool = False):
        super().__init__(message)
        self.coordinate_fallback = coordinate_fallback


class HardActionError(ActionExecutionError):
    """Any other execution failure. The run aborts with an error."""
