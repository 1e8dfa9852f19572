import base64
import logging
from dataclasses import dataclass, field
from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError

from browser_pilot.config import CONFIG
from browser_pilot.exceptions import LLMException
from browser_pilot.llm.base import ChatInvokeCompletion, ChatInvokeUsage, ToolCall
from browser_pilot.llm.messages import (
	BaseMessage,
	ContentPartImageParam,
	ContentPartTextParam,
	ImageURL,
	UserMessage,
)
from browser_pilot.llm.openai.serializer import OpenAIMessageSerializer

logger = logging.getLogger(__name__)


@dataclass
class ChatOpenAI:
	"""OpenAI chat-completions client for tool-calling decisions and screenshot analysis."""

	model: str = field(default_factory=lambda: CONFIG.LLM_MODEL)
	api_key: str | None = None
	base_url: str | None = None
	temperature: float | None = None
	max_tokens: int | None = None
	vision_model: str = field(default_factory=lambda: CONFIG.VISION_MODEL)
	vision_detail: str = 'low'
	client_params: dict[str, Any] = field(default_factory=dict)

	_client: AsyncOpenAI | None = field(default=None, init=False, repr=False)

	@property
	def provider(self) -> str:
		return 'openai'

	def get_client(self) -> AsyncOpenAI:
		if self._client is None:
			self._client = AsyncOpenAI(
				api_key=self.api_key or CONFIG.OPENAI_API_KEY or None,
				base_url=self.base_url or CONFIG.OPENAI_BASE_URL,
				**self.client_params,
			)
		return self._client

	async def ainvoke(
		self,
		messages: list[BaseMessage],
		tools: list[dict[str, Any]] | None = None,
		tool_choice: str | None = 'auto',
		temperature: float | None = None,
		max_tokens: int | None = None,
		model: str | None = None,
	) -> ChatInvokeCompletion:
		kwargs: dict[str, Any] = {
			'model': model or self.model,
			'messages': OpenAIMessageSerializer.serialize_messages(messages),
		}
		temperature = temperature if temperature is not None else self.temperature
		if temperature is not None:
			kwargs['temperature'] = temperature
		max_tokens = max_tokens if max_tokens is not None else self.max_tokens
		if max_tokens is not None:
			kwargs['max_tokens'] = max_tokens
		if tools:
			kwargs['tools'] = tools
			if tool_choice:
				kwargs['tool_choice'] = tool_choice

		try:
			resp = await self.get_client().chat.completions.create(**kwargs)
		except RateLimitError as e:
			raise LLMException(f'Rate limited by OpenAI: {e}', status_code=429) from e
		except APIStatusError as e:
			raise LLMException(f'OpenAI API error: {e}', status_code=e.status_code) from e
		except APIConnectionError as e:
			raise LLMException(f'OpenAI connection error: {e}') from e

		msg = resp.choices[0].message if resp.choices else None
		if msg is None:
			return ChatInvokeCompletion(completion=None)

		tool_calls: list[ToolCall] = []
		for tc in getattr(msg, 'tool_calls', None) or []:
			fn = getattr(tc, 'function', None)
			if fn is None:
				continue
			tool_calls.append(
				ToolCall(
					id=getattr(tc, 'id', '') or '',
					name=getattr(fn, 'name', '') or '',
					arguments=getattr(fn, 'arguments', None) or '{}',
				)
			)

		usage = None
		if getattr(resp, 'usage', None) is not None:
			usage = ChatInvokeUsage(
				prompt_tokens=resp.usage.prompt_tokens or 0,
				completion_tokens=resp.usage.completion_tokens or 0,
				total_tokens=resp.usage.total_tokens or 0,
			)

		return ChatInvokeCompletion(completion=msg.content, tool_calls=tool_calls, usage=usage)

	async def avision(
		self,
		image: bytes,
		prompt: str,
		model: str | None = None,
		max_tokens: int | None = None,
	) -> str:
		data_url = f'data:image/png;base64,{base64.b64encode(image).decode("ascii")}'
		message = UserMessage(
			content=[
				ContentPartTextParam(text=prompt),
				ContentPartImageParam(image_url=ImageURL(url=data_url, detail=self.vision_detail)),
			]
		)
		completion = await self.ainvoke(
			[message],
			tools=None,
			model=model or self.vision_model,
			max_tokens=max_tokens,
		)
		return (completion.completion or '').strip()
