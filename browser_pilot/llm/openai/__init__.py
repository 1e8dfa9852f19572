from browser_pilot.llm.openai.chat import ChatOpenAI
from browser_pilot.llm.openai.serializer import OpenAIMessageSerializer

__all__ = ['ChatOpenAI', 'OpenAIMessageSerializer']
