# Lazy: browser_pilot.browser.types imports agent.views, so importing the
# orchestrator eagerly here would be circular.

_LAZY_EXPORTS = {
    'OrchestrationLoop': ('browser_pilot.agent.orchestrator', 'OrchestrationLoop'),
    'generate_manual_intervention_suggestion': ('browser_pilot.agent.orchestrator', 'generate_manual_intervention_suggestion'),
    'OrchestratorSettings': ('browser_pilot.agent.settings', 'OrchestratorSettings'),
    'StepDecisionMaker': ('browser_pilot.agent.decision_maker', 'StepDecisionMaker'),
    'ActionExecutor': ('browser_pilot.agent.actuator', 'ActionExecutor'),
    'StateManager': ('browser_pilot.agent.state_manager', 'StateManager'),
    'RunStatus': ('browser_pilot.agent.state_manager', 'RunStatus'),
    'InstructionClarifier': ('browser_pilot.agent.clarifier', 'InstructionClarifier'),
}


def __getattr__(name: str):
    entry = _LAZY_EXPORTS.get(name)
    if not entry:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    from importlib import import_module

    module_path, attr_name = entry
    attr = getattr(import_module(module_path), attr_name)
    globals()[name] = attr
    return attr


__all__ = list(_LAZY_EXPORTS.keys())
