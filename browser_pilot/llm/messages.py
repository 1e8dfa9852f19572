from typing import Literal, Union

from pydantic import BaseModel


class ContentPartTextParam(BaseModel):
	text: str
	type: Literal['text'] = 'text'


class ImageURL(BaseModel):
	url: str
	detail: Literal['auto', 'low', 'high'] = 'auto'
	media_type: Literal['image/png', 'image/jpeg'] = 'image/png'


class ContentPartImageParam(BaseModel):
	image_url: ImageURL
	type: Literal['image_url'] = 'image_url'


ContentPart = Union[ContentPartTextParam, ContentPartImageParam]


class _MessageBase(BaseModel):
	cache: bool = False


class SystemMessage(_MessageBase):
	role: Literal['system'] = 'system'
	content: str | list[ContentPartTextParam]

	@property
	def text(self) -> str:
		if isinstance(self.content, str):
			return self.content
		return '\n'.join(part.text for part in self.content)


class UserMessage(_MessageBase):
	role: Literal['user'] = 'user'
	content: str | list[ContentPart]

	@property
	def text(self) -> str:
		if isinstance(self.content, str):
			return self.content
		return '\n'.join(part.text for part in self.content if isinstance(part, ContentPartTextParam))


class AssistantMessage(_MessageBase):
	role: Literal['assistant'] = 'assistant'
	content: str | None = None

	@property
	def text(self) -> str:
		return self.content or ''


BaseMessage = Union[UserMessage, SystemMessage, AssistantMessage]
