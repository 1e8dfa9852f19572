import io
import logging

from browser_pilot.browser.session import categorize_mutations
from browser_pilot.llm.messages import (
    AssistantMessage,
    ContentPartImageParam,
    ContentPartTextParam,
    ImageURL,
    SystemMessage,
    UserMessage,
)
from browser_pilot.llm.openai.serializer import OpenAIMessageSerializer
from browser_pilot.logging_config import BrowserPilotFormatter


def test_serializer_handles_text_image_and_plain_inputs():
    messages = [
        SystemMessage(content="rules"),
        UserMessage(content=[
            ContentPartTextParam(text="where is the button?"),
            ContentPartImageParam(image_url=ImageURL(url="data:image/png;base64,AAA", detail="low")),
        ]),
        AssistantMessage(content="over there"),
        "plain string",
        {"role": "developer", "content": "dev rules"},
    ]

    serialized = OpenAIMessageSerializer.serialize_messages(messages)

    assert serialized[0] == {"role": "system", "content": "rules"}
    assert serialized[1]["role"] == "user"
    assert serialized[1]["content"][0] == {"type": "text", "text": "where is the button?"}
    assert serialized[1]["content"][1] == {
        "type": "image_url",
        "image_url": {"url": "data:image/png;base64,AAA", "detail": "low"},
    }
    assert serialized[2] == {"role": "assistant", "content": "over there"}
    assert serialized[3] == {"role": "user", "content": "plain string"}
    assert serialized[4] == {"role": "system", "content": "dev rules"}


def test_categorize_mutations():
    count, types = categorize_mutations([
        {"type": "childList", "added": 2, "removed": 0},
        {"type": "childList", "added": 0, "removed": 1},
        {"type": "attributes"},
        {"type": "characterData"},
    ])
    assert count == 4
    assert types == ["attributes_changed", "content_added", "content_removed", "text_changed"]


def test_formatter_adds_run_context():
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(BrowserPilotFormatter("%(levelname)s%(run_ctx)s %(message)s"))
    log = logging.getLogger("browser_pilot.tests.formatter")
    log.addHandler(handler)
    log.setLevel(logging.INFO)
    try:
        log.info("deciding", extra={"instruction_id": "abc", "step": 2})
        log.info("idle")
    finally:
        log.removeHandler(handler)

    lines = stream.getvalue().splitlines()
    assert lines == ["INFO [abc#2] deciding", "INFO idle"]
