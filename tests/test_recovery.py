import pytest

from hrmatch.helpers.recovery import (
    complete_brackets,
    parse_structured_output,
    recover_structured_output,
    slice_braces,
    strip_code_fences,
    trim_to_last_complete,
)
from hrmatch.utils.exceptions import MalformedOutputError


class TestRepairStages:
    """One case per repair stage"""

    def test_direct(self):
        result = parse_structured_output('  {"a": 1, "b": [1, 2]}  ')
        assert result.ok
        assert result.stage == "direct"
        assert result.value == {"a": 1, "b": [1, 2]}

    def test_direct_top_level_array(self):
        result = parse_structured_output("[1, 2, 3]")
        assert result.stage == "direct"
        assert result.value == [1, 2, 3]

    def test_fence_strip(self):
        result = parse_structured_output('```json\n{"title": "Engineer"}\n```')
        assert result.stage == "fence_strip"
        assert result.value == {"title": "Engineer"}

    def test_brace_slice(self):
        result = parse_structured_output('Here is the result: {"a": 1} hope this helps')
        assert result.stage == "brace_slice"
        assert result.value == {"a": 1}

    def test_bracket_completion(self):
        result = parse_structured_output('{"skills": ["python", "sql"')
        assert result.stage == "bracket_completion"
        assert result.value == {"skills": ["python", "sql"]}

    def test_tail_trim(self):
        result = parse_structured_output('{"title": "Engineer", "skills": ["python", "sq')
        assert result.stage == "tail_trim"
        assert result.value == {"title": "Engineer", "skills": ["python"]}


class TestRecoverStructuredOutput:

    def test_prose_fenced_and_truncated(self):
        text = 'Sure, here you go:\n```json\n{"a":1,"b":[1,2'
        assert recover_structured_output(text) == {"a": 1, "b": [1, 2]}

    def test_no_json_raises(self):
        with pytest.raises(MalformedOutputError) as exc_info:
            recover_structured_output("no json here at all")
        assert exc_info.value.raw_text == "no json here at all"
        assert exc_info.value.details["raw_text_length"] == len("no json here at all")

    def test_empty_output_raises(self):
        with pytest.raises(MalformedOutputError):
            recover_structured_output("   ")

    def test_scalar_is_not_structured(self):
        result = parse_structured_output("42")
        assert not result.ok
        assert result.error

    def test_brackets_inside_strings_are_ignored(self):
        text = '{"quote": "say \\"hi\\" {", "n": [1'
        assert recover_structured_output(text) == {"quote": 'say "hi" {', "n": [1]}

    def test_backticks_inside_fenced_string_values_survive(self):
        text = '```json\n{"summary": "Wrote ```python snippets``` for docs"}\n```'
        result = parse_structured_output(text)
        assert result.stage == "fence_strip"
        assert result.value == {"summary": "Wrote ```python snippets``` for docs"}

    def test_backticks_inside_unfenced_string_values_survive(self):
        assert recover_structured_output('Here:\n{"code": "```bash ls```"}') == {"code": "```bash ls```"}

    def test_nested_truncation_is_rejected(self):
        result = parse_structured_output('{"a": [{"b": 1')
        assert not result.ok

    def test_never_raises_on_garbage(self):
        for text in ["}", "{{{{", '"unterminated', "```", "[}"]:
            result = parse_structured_output(text)
            assert isinstance(result.ok, bool)


class TestHelpers:

    def test_strip_code_fences(self):
        assert strip_code_fences("```json\n{}\n```") == "{}"
        assert strip_code_fences("```\n[1]\n```") == "[1]"
        assert strip_code_fences('{"a": "```x```"}') == '{"a": "```x```"}'

    def test_slice_braces(self):
        assert slice_braces("abc {x} def") == "{x}"
        assert slice_braces("abc {x") == "{x"
        assert slice_braces("nothing") is None

    def test_complete_brackets_appends_brackets_before_braces(self):
        assert complete_brackets('{"a": [1') == '{"a": [1]}'
        assert complete_brackets('{"a": 1}') == '{"a": 1}'

    def test_trim_to_last_complete_without_values(self):
        assert trim_to_last_complete('{"a": ') is None
