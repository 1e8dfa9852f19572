from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from browser_pilot.llm.messages import BaseMessage


class ToolCall(BaseModel):
	"""One function call requested by the model. `arguments` is the raw JSON string."""

	id: str = ''
	name: str
	arguments: str = '{}'


class ChatInvokeUsage(BaseModel):
	prompt_tokens: int = 0
	completion_tokens: int = 0
	total_tokens: int = 0


class ChatInvokeCompletion(BaseModel):
	completion: str | None = None
	tool_calls: list[ToolCall] = Field(default_factory=list)
	usage: ChatInvokeUsage | None = None


@runtime_checkable
class BaseChatModel(Protocol):
	"""Decision-model client.

	`ainvoke` is the tool-calling chat call; `avision` is the single-image
	vision call used to annotate screenshots.
	"""

	model: str

	@property
	def provider(self) -> str: ...

	async def ainvoke(
		self,
		messages: list[BaseMessage],
		tools: list[dict[str, Any]] | None = None,
		tool_choice: str | None = 'auto',
		temperature: float | None = None,
		max_tokens: int | None = None,
		model: str | None = None,
	) -> ChatInvokeCompletion: ...

	async def avision(
		self,
		image: bytes,
		prompt: str,
		model: str | None = None,
		max_tokens: int | None = None,
	) -> str: ...
