import pytest

from game.errors import LenientJsonError
from game.lenient_json import parse_lenient_json, strip_markdown_json


def test_parses_object_wrapped_in_prose_and_fences():
    text = 'Sure! Here is the victim:\n```json\n{"name": "Elena", "age": 41}\n```\nGood luck.'
    assert parse_lenient_json(text) == {"name": "Elena", "age": 41}


def test_brackets_inside_strings_do_not_end_the_object():
    text = 'noise {"clue": "a note reading } and ] inside", "n": [1, 2]} trailing {junk}'
    assert parse_lenient_json(text) == {"clue": "a note reading } and ] inside", "n": [1, 2]}


def test_array_expected_skips_leading_object_text():
    text = 'The answer is [{"id": "L1"}, {"id": "L2"}] as requested.'
    assert parse_lenient_json(text, expect="array") == [{"id": "L1"}, {"id": "L2"}]


def test_empty_array_is_valid():
    assert parse_lenient_json("No clues were revealed: []", expect="array") == []


def test_wrong_kind_raises():
    with pytest.raises(LenientJsonError):
        parse_lenient_json('["just", "a", "list"]', expect="object")


def test_garbage_raises_with_excerpt():
    with pytest.raises(LenientJsonError) as excinfo:
        parse_lenient_json("the model refused to answer")
    assert "refused" in excinfo.value.excerpt


def test_strip_markdown_accepts_message_objects():
    class Message:
        content = "```json\n{}\n```"

    assert strip_markdown_json(Message()) == "{}"


def test_unknown_expectation_is_rejected():
    with pytest.raises(ValueError):
        parse_lenient_json("{}", expect="tuple")
