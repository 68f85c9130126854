from agentic_refine.core.parsing import (
    extract_json_object,
    find_balanced_object,
    parse_direct,
    strip_code_fence,
    strip_reasoning,
)


def test_plain_json():
    assert extract_json_object('{"satisfied": true}') == {"satisfied": True}


def test_fenced_json():
    text = 'Here you go:\n```json\n{"satisfied": false, "issues": ["x"]}\n```\nThanks'
    assert extract_json_object(text) == {"satisfied": False, "issues": ["x"]}


def test_json_inside_prose_with_braces_in_strings():
    text = 'Verdict follows {"issues": ["a } b"], "satisfied": false} done.'
    assert extract_json_object(text) == {"issues": ["a } b"], "satisfied": False}


def test_reasoning_span_is_ignored():
    text = '<think>maybe {"satisfied": true}</think>{"satisfied": false}'
    assert extract_json_object(text) == {"satisfied": False}


def test_trailing_comma_is_repaired():
    assert extract_json_object('{"issues": ["a", "b",],}') == {"issues": ["a", "b"]}


def test_no_match_returns_none():
    assert extract_json_object("no json at all") is None
    assert extract_json_object("") is None
    assert extract_json_object("[1, 2, 3]") is None


def test_custom_strategy_order():
    assert extract_json_object("{}", strategies=[lambda _: None]) is None
    assert extract_json_object("x", strategies=[lambda _: None, lambda _: {"k": 1}]) == {"k": 1}


def test_helpers():
    assert strip_code_fence("```\nbody") == "body"
    assert strip_reasoning("<think>open ended") == ""
    assert find_balanced_object("x {a {b}} y") == "{a {b}}"
    assert parse_direct("not json") is None
