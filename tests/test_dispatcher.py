from __future__ import annotations

from typing import Any

import pytest

from respin.core.dispatcher import Dispatcher, extract_args, parse_arg_payload, parse_command_string
from respin.core.types import FenceBlock, GenericCommand, ShorthandString, ToolCall, ToolResult, UIOutput
from respin.tools.registry import ToolRegistry


class RecordingTools:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.registry = ToolRegistry()
        self.registry.register("image", self._image)
        self.registry.register("tts", self._tts)
        self.registry.register("ui", self._ui)

    async def _image(self, args: dict[str, Any]) -> ToolResult:
        self.calls.append(("image", args))
        return ToolResult(image_url=f"https://img.test/{args['prompt']}")

    async def _tts(self, args: dict[str, Any]) -> ToolResult:
        self.calls.append(("tts", args))
        return ToolResult(audio_url="data:audio/mpeg;base64,AA==")

    def _ui(self, args: dict[str, Any]) -> ToolResult:
        self.calls.append(("ui", args))
        return ToolResult()


@pytest.fixture
def tools() -> RecordingTools:
    return RecordingTools()


async def _dispatch(tools: RecordingTools, *instructions, leftover: str = "", max_depth: int = 64):
    return await Dispatcher(tools.registry, max_depth=max_depth).dispatch(list(instructions), leftover)


@pytest.mark.asyncio
async def test_tool_object_runs_its_tool(tools: RecordingTools) -> None:
    result = await _dispatch(tools, GenericCommand(value={"tool": "image", "prompt": "cat"}, position=0))

    assert tools.calls == [("image", {"prompt": "cat"})]
    assert result.handled is True
    assert [item.url for item in result.structured.images] == ["https://img.test/cat"]
    assert result.structured.images[0].prompt == "cat"
    assert result.text == ""


@pytest.mark.asyncio
async def test_tts_text_is_spoken_and_shown(tools: RecordingTools) -> None:
    result = await _dispatch(tools, GenericCommand(value={"tool": "tts", "text": "hi"}, position=0))

    assert tools.calls == [("tts", {"text": "hi"})]
    assert result.text == "hi"
    assert len(result.structured.audio) == 1
    assert result.structured.audio[0].text == "hi"


@pytest.mark.asyncio
async def test_image_description_is_shown_next_to_the_image(tools: RecordingTools) -> None:
    value = {"tool": "image", "description": "a quiet harbor"}

    result = await _dispatch(tools, GenericCommand(value=value, position=0))

    assert tools.calls == [("image", {"prompt": "a quiet harbor"})]
    assert result.text == "a quiet harbor"


@pytest.mark.asyncio
async def test_ui_command_with_text_clicks_once_and_shows_text(tools: RecordingTools) -> None:
    value = {"tool": "ui", "command": "click ping", "text": "Done"}

    result = await _dispatch(tools, GenericCommand(value=value, position=0))

    assert tools.calls == [("ui", {"command": {"action": "click", "target": "ping"}})]
    assert result.text == "Done"


@pytest.mark.asyncio
async def test_ui_command_string_runs_once(tools: RecordingTools) -> None:
    value = {"tool": "ui", "command": "click ping"}

    result = await _dispatch(tools, GenericCommand(value=value, position=0))

    assert tools.calls == [("ui", {"command": {"action": "click", "target": "ping"}})]
    assert result.structured.ui == [UIOutput(command={"action": "click", "target": "ping"})]


@pytest.mark.asyncio
async def test_function_call_with_string_arguments(tools: RecordingTools) -> None:
    call = {"type": "function", "function": {"name": "generate_image", "arguments": '{"prompt": "dog"}'}}

    result = await _dispatch(tools, ToolCall(call=call, position=-1))

    assert tools.calls == [("image", {"prompt": "dog"})]
    assert result.handled is True


@pytest.mark.asyncio
async def test_name_and_arguments_object(tools: RecordingTools) -> None:
    await _dispatch(tools, GenericCommand(value={"name": "speak", "arguments": {"text": "hello"}}, position=0))
    assert tools.calls == [("tts", {"text": "hello"})]


@pytest.mark.asyncio
async def test_shorthand_fields_and_text_keys(tools: RecordingTools) -> None:
    value = {"image": "a red fox", "text": "Here it is"}

    result = await _dispatch(tools, GenericCommand(value=value, position=0), leftover="Intro")

    assert tools.calls == [("image", {"prompt": "a red fox"})]
    assert result.text == "Intro\n\nHere it is"


@pytest.mark.asyncio
async def test_one_object_may_trigger_several_tools(tools: RecordingTools) -> None:
    value = {"tool": "image", "prompt": "sunset", "speak": "Look at this sunset"}

    await _dispatch(tools, GenericCommand(value=value, position=0))

    assert tools.calls == [("image", {"prompt": "sunset"}), ("tts", {"text": "Look at this sunset"})]


@pytest.mark.asyncio
async def test_commands_array_entries_become_ui_calls(tools: RecordingTools) -> None:
    value = {"commands": [{"action": "openScreensaver"}, "click send", {"action": "bogus"}]}

    result = await _dispatch(tools, GenericCommand(value=value, position=0))

    assert [args["command"] for _, args in tools.calls] == [
        {"action": "openScreensaver"},
        {"action": "click", "target": "send"},
    ]
    assert len(result.structured.ui) == 2


@pytest.mark.asyncio
async def test_tool_calls_array_inside_text_json(tools: RecordingTools) -> None:
    value = {"tool_calls": [{"function": {"name": "tts", "arguments": {"text": "one"}}}, {"tool": "image", "prompt": "two"}]}

    await _dispatch(tools, GenericCommand(value=value, position=0))

    assert [name for name, _ in tools.calls] == ["tts", "image"]


@pytest.mark.asyncio
async def test_fence_blocks_route_by_kind(tools: RecordingTools) -> None:
    result = await _dispatch(
        tools,
        FenceBlock(kind="image", content="an apple", position=0),
        FenceBlock(kind="audio", content="say apple", position=10),
        FenceBlock(kind="ui", content='{"action": "click", "target": "console"}', position=20),
        FenceBlock(kind="voice", content="Hello there.", position=30),
        FenceBlock(kind="video", content="a cat video", position=40),
    )

    assert tools.calls == [
        ("image", {"prompt": "an apple"}),
        ("tts", {"text": "say apple"}),
        ("ui", {"command": {"action": "click", "target": "console"}}),
    ]
    assert result.structured.voice == ["Hello there."]
    assert result.handled is True


@pytest.mark.asyncio
async def test_ui_phrase_falls_back_to_grammar(tools: RecordingTools) -> None:
    await _dispatch(tools, FenceBlock(kind="ui", content="open the screensaver", position=0))
    await _dispatch(tools, ShorthandString(text="click the send button", position=0, tool="ui"))

    assert tools.calls == [
        ("ui", {"command": {"action": "openScreensaver"}}),
        ("ui", {"command": {"action": "click", "target": "the send button"}}),
    ]


@pytest.mark.asyncio
async def test_invalid_ui_command_is_not_recorded(tools: RecordingTools) -> None:
    result = await _dispatch(tools, GenericCommand(value={"tool": "ui", "command": {"action": "fly"}}, position=0))

    assert tools.calls == []
    assert result.structured.ui == []
    assert result.handled is False


@pytest.mark.asyncio
async def test_unknown_tools_are_ignored(tools: RecordingTools) -> None:
    result = await _dispatch(tools, GenericCommand(value={"tool": "weather", "city": "Oslo"}, position=0))

    assert tools.calls == []
    assert result.handled is False
    assert result.text == ""


@pytest.mark.asyncio
async def test_plain_values_become_text(tools: RecordingTools) -> None:
    result = await _dispatch(
        tools,
        GenericCommand(value=["first", 2, True], position=0),
        ShorthandString(text="loose string", position=-1),
    )

    assert result.text == "first\n\n2\n\ntrue\n\nloose string"
    assert result.handled is False


@pytest.mark.asyncio
async def test_voice_context_picks_text_field(tools: RecordingTools) -> None:
    value = {"voice": [{"say": "One."}, "Two."]}

    result = await _dispatch(tools, GenericCommand(value=value, position=0))

    assert result.structured.voice == ["One.", "Two."]


@pytest.mark.asyncio
async def test_deep_nesting_is_cut_off(tools: RecordingTools) -> None:
    deep: Any = "too deep"
    for _ in range(10):
        deep = [deep]
    shallow: Any = [["fine"]]

    result = await _dispatch(
        tools,
        GenericCommand(value=deep, position=0),
        GenericCommand(value=shallow, position=1),
        max_depth=5,
    )

    assert result.text == "fine"


@pytest.mark.asyncio
async def test_rule_lines_are_padded(tools: RecordingTools) -> None:
    result = await _dispatch(tools, leftover="Above\n---\nBelow")
    assert result.text == "Above\n\n---\n\nBelow"


def test_parse_arg_payload_shapes() -> None:
    assert parse_arg_payload('{"prompt": "x"}') == {"prompt": "x"}
    assert parse_arg_payload("a plain prompt") == {"prompt": "a plain prompt"}
    assert parse_arg_payload([1, 2]) == {"values": [1, 2]}
    assert parse_arg_payload(None) == {}


def test_extract_args_prefers_argument_container() -> None:
    assert extract_args({"tool": "image", "args": {"prompt": "x"}, "prompt": "y"}) == {"prompt": "x"}
    assert extract_args({"tool": "image", "prompt": "y", "width": 3, "caption": "c"}) == {"prompt": "y", "width": 3}
    assert extract_args({"tool": "tts", "text": "hi"}) == {"text": "hi"}


def test_parse_command_string() -> None:
    assert parse_command_string("click send button") == {"action": "click", "target": "send button"}
    assert parse_command_string("openScreensaver") == {"action": "openScreensaver"}
    assert parse_command_string('{"action": "click", "target": "x"}') == {"action": "click", "target": "x"}
    assert parse_command_string("  ") is None


@pytest.mark.asyncio
async def test_tools_run_through_registry_execute(tools: RecordingTools, monkeypatch) -> None:
    executed: list[str] = []
    execute = tools.registry.execute

    async def _execute(name: str, args: dict[str, Any]) -> ToolResult:
        executed.append(name)
        return await execute(name, args)

    monkeypatch.setattr(tools.registry, "execute", _execute)

    await _dispatch(
        tools,
        GenericCommand(value={"tool": "image", "prompt": "cat"}, position=0),
        FenceBlock(kind="audio", content="hello", position=5),
        GenericCommand(value={"tool": "video", "prompt": "x"}, position=9),
    )

    assert executed == ["image", "tts"]
