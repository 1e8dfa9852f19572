import importlib.resources
from dataclasses import dataclass, field
from typing import Optional, Sequence

from browser_pilot.agent.views import Step
from browser_pilot.llm.messages import SystemMessage, UserMessage

STEP_PREVIEW_CHARS = 60


class SystemPrompt:
	def __init__(
		self,
		override_system_message: str | None = None,
		extend_system_message: str | None = None,
	):
		if override_system_message:
			prompt = override_system_message
		else:
			prompt = self._load_prompt_template()

		if extend_system_message:
			prompt += f'\n{extend_system_message}'

		self.system_message = SystemMessage(content=prompt, cache=True)

	@staticmethod
	def _load_prompt_template() -> str:
		"""Load the prompt template from the markdown file."""
		try:
			# This works both in development and when installed as a package
			with importlib.resources.files('browser_pilot.agent').joinpath('system_prompt.md').open('r', encoding='utf-8') as f:
				return f.read()
		except Exception as e:
			raise RuntimeError(f'Failed to load system prompt template: {e}')

	def get_system_message(self) -> SystemMessage:
		return self.system_message


@dataclass
class StructuredPrompt:
	"""Everything the decision model sees for one step, before rendering."""

	instruction: str
	dom_content: str
	recent_steps: Sequence[Step] = field(default_factory=list)
	step_count: int = 0
	screenshot_analysis: Optional[str] = None
	action_history: Sequence[str] = field(default_factory=list)

	@property
	def dom_tokens(self) -> int:
		return -(-len(self.dom_content) // 4)

	def render(self) -> str:
		prompt = f'TASK: {self.instruction}\n\nCURRENT PAGE HTML:\n{self.dom_content}\n\n'

		if self.action_history:
			prompt += 'ACTION HISTORY:\n'
			prompt += ''.join(f'- {entry}\n' for entry in self.action_history)
			prompt += '\n'

		if self.recent_steps:
			prompt += 'RECENT STEPS:\n'
			offset = self.step_count - len(self.recent_steps)
			for index, step in enumerate(self.recent_steps):
				text = step.text
				if len(text) > STEP_PREVIEW_CHARS:
					text = text[:STEP_PREVIEW_CHARS] + '...'
				prompt += f'{offset + index + 1}. {step.type.upper()}: {text}\n'
			prompt += '\n'

		if self.screenshot_analysis:
			prompt += f'VISUAL GUIDANCE:\n{self.screenshot_analysis}\n\n'

		prompt += 'What is your next step? Use exactly one tool.'
		return prompt

	def to_message(self) -> UserMessage:
		return UserMessage(content=self.render())
