"""Tests for {{path}} template resolution."""

from agentflow.graph.template import MISSING, get_path, resolve, resolve_deep, stringify

CONTEXT = {
    "input": {"message": "hello", "count": 3, "tags": ["a", "b"]},
    "classify": {"output": {"category": "billing", "score": 0.9}},
    "flag": True,
    "nothing": None,
}


class TestGetPath:
    def test_nested_dicts(self):
        assert get_path(CONTEXT, "classify.output.category") == "billing"

    def test_list_index(self):
        assert get_path(CONTEXT, "input.tags.1") == "b"

    def test_missing_segment(self):
        assert get_path(CONTEXT, "classify.output.missing") is MISSING
        assert get_path(CONTEXT, "input.tags.5") is MISSING
        assert get_path(CONTEXT, "input.message.length") is MISSING

    def test_none_value_is_not_missing(self):
        assert get_path(CONTEXT, "nothing") is None

    def test_whitespace_around_segments(self):
        assert get_path(CONTEXT, " input . message ") == "hello"

    def test_missing_is_falsy_singleton(self):
        assert not MISSING
        assert repr(MISSING) == "MISSING"


class TestResolve:
    def test_resolves_string(self):
        assert resolve("{{a.b}}", {"a": {"b": "x"}}) == "x"

    def test_unresolved_token_left_verbatim(self):
        assert resolve("{{a.c}}", {"a": {"b": "x"}}) == "{{a.c}}"

    def test_mixed_text(self):
        assert resolve("Say {{input.message}} {{input.count}} times", CONTEXT) == (
            "Say hello 3 times"
        )

    def test_token_with_spaces(self):
        assert resolve("{{ input.message }}", CONTEXT) == "hello"

    def test_structured_values_render_as_json(self):
        assert resolve("{{input.tags}}", CONTEXT) == '["a", "b"]'
        assert resolve("{{classify.output}}", CONTEXT) == '{"category": "billing", "score": 0.9}'
        assert resolve("{{flag}}", CONTEXT) == "true"
        assert resolve("{{nothing}}", CONTEXT) == "null"

    def test_no_tokens(self):
        assert resolve("plain text", CONTEXT) == "plain text"


def test_stringify_numbers():
    assert stringify(42) == "42"
    assert stringify(0.5) == "0.5"


def test_resolve_deep_walks_structures():
    template = {
        "text": "{{input.message}}",
        "items": ["{{classify.output.category}}", 7, None],
        "nested": {"flag": "{{flag}}", "keep": False},
    }

    assert resolve_deep(template, CONTEXT) == {
        "text": "hello",
        "items": ["billing", 7, None],
        "nested": {"flag": "true", "keep": False},
    }


def test_resolve_deep_leaves_non_strings_untouched():
    assert resolve_deep(5, CONTEXT) == 5
    assert resolve_deep(None, CONTEXT) is None
