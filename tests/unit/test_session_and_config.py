from browser_pilot.agent.settings import OrchestratorSettings
from browser_pilot.config import DEFAULT_CONTEXT_LIMIT, calculate_dom_token_budget
from browser_pilot.session import SessionService, SessionState


def test_dom_budget_is_capped_for_large_context_models():
    assert calculate_dom_token_budget("gpt-4o", reply_reserve=2000) == 8000


def test_dom_budget_has_a_floor_for_small_context_models():
    # 8192 * 0.4 = 3276, below the 8192 - 3000 headroom
    assert calculate_dom_token_budget("gpt-4", reply_reserve=2000) == 3276
    assert calculate_dom_token_budget("gpt-4", reply_reserve=6000) == 3000


def test_unknown_model_uses_default_context_limit():
    assert calculate_dom_token_budget("mystery-model") == int(DEFAULT_CONTEXT_LIMIT * 0.4)


def test_settings_budget_override():
    assert OrchestratorSettings(dom_token_budget=1234).resolved_dom_token_budget() == 1234
    assert OrchestratorSettings(model="gpt-4o", max_tokens=2000).resolved_dom_token_budget() == 8000


def test_session_records_actions():
    session = SessionService()
    assert session.id.startswith("session-")

    session.add_action("Navigate to https://example.com: start")

    assert session.get_state().actions_history == ["Navigate to https://example.com: start"]
    assert session.is_active()


def test_session_state_copy_is_detached():
    session = SessionService(SessionState(id="session-fixed"))
    snapshot = session.get_state()
    snapshot.actions_history.append("tampered")

    assert session.get_state().actions_history == []
    assert session.get_state().id == "session-fixed"


def test_session_inactive_after_threshold():
    session = SessionService()
    session.state.last_activity -= 10_000
    assert not session.is_active(threshold_ms=5_000)
