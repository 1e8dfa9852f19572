import pytest

from browser_pilot.agent.clarifier import InstructionClarifier, parse_clarifier_reply


def test_parse_plain_json():
    result = parse_clarifier_reply('{"score": 8, "improved": "Open linkedin.com", "suggestions": []}', "go linkedin")
    assert result.score == 8
    assert result.improved == "Open linkedin.com"
    assert result.suggestions == []


def test_parse_strips_code_fences_and_caps_suggestions():
    raw = '```json\n{"score": 4, "improved": "x", "suggestions": ["a", "b", "c", "d"]}\n```'
    result = parse_clarifier_reply(raw, "orig")
    assert result.score == 4
    assert result.suggestions == ["a", "b", "c"]


@pytest.mark.parametrize(
    "raw,score",
    [
        ("not json at all", 5),
        (None, 5),
        ('{"score": 42}', 10),
        ('{"score": -3}', 1),
        ('{"score": "seven"}', 5),
        ("[1, 2]", 5),
    ],
)
def test_parse_is_lenient(raw, score):
    result = parse_clarifier_reply(raw, "original text")
    assert result.score == score
    assert result.improved == "original text"


@pytest.mark.asyncio
async def test_clarify_sends_recent_history_without_tools(settings, scripted_llm):
    llm = scripted_llm(text_reply='{"score": 9, "improved": "Click the Jobs tab"}')
    clarifier = InstructionClarifier(llm, settings)

    result = await clarifier.clarify("jobs", ["one", "two", "three", "four"])

    assert result.improved == "Click the Jobs tab"
    call = llm.calls[0]
    assert call["tools"] is None
    assert call["model"] == settings.clarifier_model
    user = call["messages"][1].text
    assert "TASK:\njobs" in user
    assert "two\nthree\nfour" in user
    assert "one" not in user
