import time

from respin.core.extractor import extract_json_sections, extract_segments
from respin.core.types import FenceBlock, GenericCommand, ShorthandString, ToolCall


def test_embedded_json_is_lifted_out_of_prose() -> None:
    segments = extract_segments('Here you go {"tool": "image", "prompt": "cat"} enjoy')

    assert segments.instructions == [GenericCommand(value={"tool": "image", "prompt": "cat"}, position=12)]
    assert segments.leftover_text == "Here you go  enjoy"


def test_stray_brace_inside_quotes_does_not_swallow_later_json() -> None:
    text = 'He said "{ not json" then {"tool":"image","prompt":"x"}'

    segments = extract_segments(text)

    assert [item.value for item in segments.instructions] == [{"tool": "image", "prompt": "x"}]
    assert segments.leftover_text == 'He said "{ not json" then'


def test_brackets_inside_strings_do_not_close_the_object() -> None:
    sections = extract_json_sections('x {"text": "a } b", "n": [1, 2]} y')
    assert len(sections) == 1
    assert sections[0].value == {"text": "a } b", "n": [1, 2]}


def test_repairable_json_is_accepted_and_prose_braces_are_kept() -> None:
    segments = extract_segments("use {tool:'tts', text:'hi'} or {just words}")

    assert [item.value for item in segments.instructions] == [{"tool": "tts", "text": "hi"}]
    assert segments.leftover_text == "use  or {just words}"


def test_handled_fences_become_fence_blocks() -> None:
    text = "Hello\n```image\nan apple\n```\nbye"

    segments = extract_segments(text)

    assert segments.instructions == [FenceBlock(kind="image", content="an apple", position=6)]
    assert segments.leftover_text == "Hello\n\nbye"


def test_empty_handled_fence_is_removed_without_instruction() -> None:
    segments = extract_segments("before\n```voice\n\n```\nafter")
    assert segments.instructions == []
    assert segments.leftover_text == "before\n\nafter"


def test_other_fences_are_left_alone() -> None:
    text = "Code:\n```javascript\nconst a = {b: 1};\n```"

    segments = extract_segments(text)

    assert segments.instructions == []
    assert segments.leftover_text == text


def test_json_fence_is_transparent_and_dropped_when_emptied() -> None:
    segments = extract_segments('Sure:\n```json\n{"tool": "image", "prompt": "dog"}\n```')

    assert [item.value for item in segments.instructions] == [{"tool": "image", "prompt": "dog"}]
    assert segments.leftover_text == "Sure:"


def test_instructions_follow_text_order() -> None:
    text = '```audio\nhi\n```\n{"tool": "image", "prompt": "cat"}\n```ui\nclick send\n```'

    segments = extract_segments(text)

    kinds = [type(item).__name__ for item in segments.instructions]
    assert kinds == ["FenceBlock", "GenericCommand", "FenceBlock"]
    assert [item.position for item in segments.instructions] == sorted(
        item.position for item in segments.instructions
    )


def test_tool_calls_run_first_in_array_order() -> None:
    first = {"function": {"name": "image", "arguments": '{"prompt": "a"}'}}
    second = {"function": {"name": "tts", "arguments": '{"text": "b"}'}}
    message = {"content": "", "tool_calls": [first, second, "click send"]}

    segments = extract_segments('{"tool": "ui", "command": "click send"}', message)

    assert segments.instructions[:3] == [
        ToolCall(call=first, position=-1),
        ToolCall(call=second, position=-2),
        ShorthandString(text="click send", position=-3),
    ]
    assert isinstance(segments.instructions[3], GenericCommand)
    assert segments.instructions[0].name == "image"
    assert segments.instructions[1].arguments == '{"text": "b"}'


def test_excess_blank_lines_collapse() -> None:
    segments = extract_segments('one\n\n\n\n{"a": 1}\n\n\n\ntwo')
    assert segments.leftover_text == "one\n\ntwo"


def test_non_string_input_is_empty() -> None:
    segments = extract_segments(None)
    assert segments.instructions == []
    assert segments.leftover_text == ""


def test_generic_command_exposes_tool_and_args() -> None:
    command = GenericCommand(value={"type": "image", "prompt": "cat", "width": 3}, position=0)
    assert command.tool == "image"
    assert command.args == {"prompt": "cat", "width": 3}
    assert GenericCommand(value=[1], position=0).args == {}


def test_unclosed_brackets_are_scanned_quickly() -> None:
    text = "[" * 20000

    started = time.perf_counter()
    segments = extract_segments(text)
    elapsed = time.perf_counter() - started

    assert segments.instructions == []
    assert segments.leftover_text == text
    assert elapsed < 1.0


def test_deeply_nested_brackets_with_one_closer_stay_bounded() -> None:
    text = "[" * 20000 + "]"

    started = time.perf_counter()
    sections = extract_json_sections(text)
    elapsed = time.perf_counter() - started

    assert [section.value for section in sections] == [[]]
    assert elapsed < 3.0


def test_nested_json_within_limits_is_still_found() -> None:
    nested = '{"a": ' * 20 + "1" + "}" * 20

    sections = extract_json_sections(f"x {nested} y")

    assert len(sections) == 1
    assert sections[0].start == 2
