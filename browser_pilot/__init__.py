from browser_pilot.config import CONFIG
from browser_pilot.logging_config import setup_logging

# Embedding applications that own logging can opt out with BROWSER_PILOT_SETUP_LOGGING=false
if CONFIG.BROWSER_PILOT_SETUP_LOGGING:
	logger = setup_logging()
else:
	import logging

	logger = logging.getLogger('browser_pilot')


# --- Lazy re-exports ---
# Keeps `import browser_pilot` cheap: playwright and openai are only imported
# when the corresponding name is first used.

_LAZY_EXPORTS = {
	# Orchestration core
	'OrchestrationLoop': ('browser_pilot.agent.orchestrator', 'OrchestrationLoop'),
	'OrchestratorSettings': ('browser_pilot.agent.settings', 'OrchestratorSettings'),
	'StepDecisionMaker': ('browser_pilot.agent.decision_maker', 'StepDecisionMaker'),
	'ActionExecutor': ('browser_pilot.agent.actuator', 'ActionExecutor'),
	'StateManager': ('browser_pilot.agent.state_manager', 'StateManager'),
	'InstructionClarifier': ('browser_pilot.agent.clarifier', 'InstructionClarifier'),
	# Data model
	'Instruction': ('browser_pilot.agent.views', 'Instruction'),
	'InstructionResponse': ('browser_pilot.agent.views', 'InstructionResponse'),
	'Action': ('browser_pilot.agent.views', 'Action'),
	# Collaborators
	'PlaywrightBrowser': ('browser_pilot.browser.session', 'PlaywrightBrowser'),
	'BrowserConfig': ('browser_pilot.browser.session', 'BrowserConfig'),
	'SessionService': ('browser_pilot.session', 'SessionService'),
	'ChatOpenAI': ('browser_pilot.llm.openai.chat', 'ChatOpenAI'),
}


def __getattr__(name: str):
	entry = _LAZY_EXPORTS.get(name)
	if not entry:
		raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
	module_path, attr_name = entry
	from importlib import import_module

	try:
		module = import_module(module_path)
	except ImportError as e:
		raise ImportError(f'Failed to import {name} from {module_path}: {e}') from e
	attr = getattr(module, attr_name)
	globals()[name] = attr
	return attr


__all__ = list(_LAZY_EXPORTS.keys())
