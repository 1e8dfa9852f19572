from typing import Any

from browser_pilot.llm.messages import (
	AssistantMessage,
	BaseMessage,
	ContentPartImageParam,
	ContentPartTextParam,
	SystemMessage,
	UserMessage,
)


class OpenAIMessageSerializer:
	"""Serializer for converting messages to the OpenAI chat-completions format."""

	@staticmethod
	def normalize(messages: list[BaseMessage | str | dict]) -> list[BaseMessage]:
		"""Accept plain strings and `{role, content}` dicts alongside message models."""
		normalized: list[BaseMessage] = []
		for m in messages:
			if isinstance(m, str):
				normalized.append(UserMessage(content=m))
				continue

			if isinstance(m, dict):
				role = m.get('role')
				content = m.get('content')
				text = str(content) if content is not None else ''
				if role in ('system', 'developer'):
					normalized.append(SystemMessage(content=text))
				elif role in ('assistant', 'model'):
					normalized.append(AssistantMessage(content=text))
				else:
					normalized.append(UserMessage(content=text))
				continue

			normalized.append(m)
		return normalized

	@staticmethod
	def _serialize_part(part: Any) -> dict[str, Any] | None:
		if isinstance(part, ContentPartTextParam):
			return {'type': 'text', 'text': part.text}
		if isinstance(part, ContentPartImageParam):
			return {
				'type': 'image_url',
				'image_url': {'url': part.image_url.url, 'detail': part.image_url.detail},
			}
		return None

	@staticmethod
	def serialize(message: BaseMessage) -> dict[str, Any]:
		if isinstance(message, AssistantMessage):
			return {'role': 'assistant', 'content': message.content or ''}

		role = 'system' if isinstance(message, SystemMessage) else 'user'
		if isinstance(message.content, str):
			return {'role': role, 'content': message.content}

		# System messages only carry text parts
		if role == 'system':
			return {'role': role, 'content': message.text}

		parts = [OpenAIMessageSerializer._serialize_part(part) for part in message.content]
		return {'role': role, 'content': [p for p in parts if p is not None]}

	@staticmethod
	def serialize_messages(messages: list[BaseMessage | str | dict]) -> list[dict[str, Any]]:
		return [OpenAIMessageSerializer.serialize(m) for m in OpenAIMessageSerializer.normalize(messages)]
