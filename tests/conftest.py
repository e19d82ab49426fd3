from typing import Any, Callable

import pytest

from page_agent.models import (
    FinishUnit,
    Message,
    TextDeltaUnit,
    ToolCall,
    ToolCallUnit,
    ToolResult,
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeImage:
    def __init__(self, data_url: str = "data:image/png;base64,AAAA") -> None:
        self._data_url = data_url

    def to_data_url(self) -> str:
        return self._data_url


class FakePage:
    """In-memory page. run_script answers through a handler and records every script."""

    def __init__(
        self,
        url: str = "https://example.com/",
        title: str = "Example",
        text: str = "Hello page",
        handler: Callable[[str], Any] | None = None,
    ) -> None:
        self._url = url
        self._title = title
        self.text = text
        self.handler = handler or (lambda code: None)
        self.scripts: list[str] = []
        self.navigations: list[str] = []
        self.screenshots = 0

    @property
    def current_url(self) -> str:
        return self._url

    @property
    def current_title(self) -> str:
        return self._title

    async def run_script(self, code: str) -> Any:
        self.scripts.append(code)
        return self.handler(code)

    async def navigate(self, url: str) -> None:
        self.navigations.append(url)
        self._url = url

    async def screenshot(self) -> FakeImage:
        self.screenshots += 1
        return FakeImage()

    async def extract_plain_text(self) -> str:
        return self.text


class ScriptedBackend:
    """
    Model backend that replays canned rounds.

    Each round is a list of stream units, or an exception to raise when the
    round starts. The messages of every call are recorded.
    """

    def __init__(
        self,
        rounds: list[Any] | None = None,
        judgments: list[Any] | None = None,
        answers: list[Any] | None = None,
    ) -> None:
        self.rounds = list(rounds or [])
        self.judgments = list(judgments or [])
        self.answers = list(answers or [])
        self.calls: list[list[Message]] = []
        self.tools_seen: list[list[dict]] = []
        self.structured_calls = 0
        self.text_calls = 0

    async def stream_chat(self, messages, tools, step_limit_hint=None):
        self.calls.append(list(messages))
        self.tools_seen.append(list(tools))
        round_ = self.rounds.pop(0) if self.rounds else [TextDeltaUnit(text="(no script)"), FinishUnit()]
        if isinstance(round_, BaseException):
            raise round_
        for unit in round_:
            yield unit

    async def structured_query(self, messages, output_model):
        self.structured_calls += 1
        item = self.judgments.pop(0) if len(self.judgments) > 1 else self.judgments[0]
        if isinstance(item, BaseException):
            raise item
        return output_model.model_validate(item)

    async def text_query(self, messages):
        self.text_calls += 1
        item = self.answers.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class RecordingListener:
    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def on_text_delta(self, text: str) -> None:
        self.events.append(("text", text))

    def on_tool_call(self, call: ToolCall) -> None:
        self.events.append(("tool_call", call))

    def on_tool_result(self, result: ToolResult) -> None:
        self.events.append(("tool_result", result))

    def on_error(self, category: str, message: str, detail: str = "") -> None:
        self.events.append(("error", (category, message)))

    def on_turn_complete(self, text: str) -> None:
        self.events.append(("complete", text))

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.events]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def text_round(*chunks: str) -> list:
    return [*(TextDeltaUnit(text=c) for c in chunks), FinishUnit(reason="stop")]


def tool_round(name: str, arguments: dict, call_id: str = "call_1", text: str = "") -> list:
    units: list = [TextDeltaUnit(text=text)] if text else []
    units.append(ToolCallUnit(call=ToolCall(id=call_id, tool_name=name, arguments=arguments)))
    units.append(FinishUnit(reason="tool_calls"))
    return units


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()
