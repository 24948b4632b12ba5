from ai.response_parser import parse_llm_json, strip_code_fences


def test_plain_object():
    assert parse_llm_json('{"tables": []}') == {"tables": []}


def test_fenced_object_with_prose():
    raw = 'Here you go:\n```json\n{"tables": [{"headers": ["a"]}]}\n```\nHope it helps.'
    assert parse_llm_json(raw) == {"tables": [{"headers": ["a"]}]}


def test_object_holding_arrays_is_not_sliced():
    raw = 'Result {"rows": [[1, 2]], "warnings": ["x"]} done'
    assert parse_llm_json(raw) == {"rows": [[1, 2]], "warnings": ["x"]}


def test_top_level_array():
    assert parse_llm_json('[{"a": 1}, {"b": 2}]') == [{"a": 1}, {"b": 2}]


def test_garbage_returns_none():
    assert parse_llm_json("I could not find any tables.") is None
    assert parse_llm_json('{"broken": ') is None
    assert parse_llm_json("") is None
    assert parse_llm_json(None) is None


def test_strip_code_fences():
    assert strip_code_fences("```json\n{}\n```") == "{}"
    assert strip_code_fences("```\n[1]\n```") == "[1]"
    assert strip_code_fences("{}") == "{}"


def test_backticks_inside_values_survive():
    raw = '```json\n{"rows": [["Use ```code``` blocks"]]}\n```'
    assert parse_llm_json(raw) == {"rows": [["Use ```code``` blocks"]]}
    assert parse_llm_json('{"note": "ends with ```"}') == {"note": "ends with ```"}


def test_strip_code_fences_only_touches_the_ends():
    assert strip_code_fences('{"a": "```"}') == '{"a": "```"}'
