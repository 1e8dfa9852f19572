from browser_pilot.llm.base import BaseChatModel, ChatInvokeCompletion, ToolCall
from browser_pilot.llm.messages import (
	AssistantMessage,
	BaseMessage,
	ContentPartImageParam,
	ContentPartTextParam,
	ImageURL,
	SystemMessage,
	UserMessage,
)

__all__ = [
	'BaseChatModel',
	'ChatInvokeCompletion',
	'ToolCall',
	'BaseMessage',
	'SystemMessage',
	'UserMessage',
	'AssistantMessage',
	'ContentPartTextParam',
	'ContentPartImageParam',
	'ImageURL',
]
