from __future__ import annotations

import json

from conftest import record_dict, records_json
from precise_vocab.extractor import PLACEHOLDER_PRONUNCIATION, ResponseExtractor, repair_json


def test_array_inside_prose():
    text = "Here is your vocabulary:\n" + records_json("alpha", "beta") + "\nEnjoy!"

    records = ResponseExtractor().extract(text)

    assert [r["word"] for r in records] == ["alpha", "beta"]


def test_markdown_fenced_array():
    text = "```json\n" + json.dumps([record_dict("alpha"), record_dict("beta"), record_dict("gamma")], indent=2) + "\n```"

    records = ResponseExtractor().extract(text)

    assert len(records) == 3


def test_trailing_commas_and_bare_keys_are_repaired():
    text = '[{word: "alpha", "definition": "first, letter: a", "example": "x",},]'

    records = ResponseExtractor().extract(text)

    assert records == [{"word": "alpha", "definition": "first, letter: a", "example": "x"}]


def test_raw_newline_inside_string_is_escaped():
    text = '[{"word": "alpha", "definition": "line one\nline two"}]'

    records = ResponseExtractor().extract(text)

    assert records[0]["definition"] == "line one\nline two"


def test_single_object_is_wrapped():
    text = "Result: " + json.dumps(record_dict("alpha"))

    records = ResponseExtractor().extract(text)

    assert len(records) == 1
    assert records[0]["word"] == "alpha"


def test_single_object_without_headword_is_ignored():
    assert ResponseExtractor().extract('{"status": "ok"}') == []


def test_truncated_array_keeps_complete_objects():
    complete = ", ".join(json.dumps(record_dict(w)) for w in ("alpha", "beta"))
    text = "[" + complete + ', {"word": "gam'

    records = ResponseExtractor().extract(text)

    assert [r["word"] for r in records] == ["alpha", "beta"]


def test_field_scan_pads_missing_fields():
    text = 'word list -> "word": "alpha", "definition": "first letter"; "word": "beta"'

    records = ResponseExtractor().extract(text)

    assert [r["word"] for r in records] == ["alpha", "beta"]
    assert records[0]["definition"] == "first letter"
    assert records[1]["definition"] == "Definition for beta"
    assert records[1]["pronunciation"] == PLACEHOLDER_PRONUNCIATION


def test_garbage_yields_nothing():
    extractor = ResponseExtractor()

    assert extractor.extract("I'm sorry, I can't help with that.") == []
    assert extractor.extract("") == []
    assert extractor.extract(None) == []
    assert extractor.extract("[1, 2, 3]") == []


def test_repair_json_leaves_string_contents_alone():
    repaired = repair_json('{"a": "keep, this: as is,}", b: [1, 2,],}')

    assert json.loads(repaired) == {"a": "keep, this: as is,}", "b": [1, 2]}
