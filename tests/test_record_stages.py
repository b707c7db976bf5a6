import json
import sys

import pytest

from flowmend.errors import InnerContentInvalid
from flowmend.record.envelope import unwrap
from flowmend.record.normalizer import id_from_filename, node_warnings, normalize_fields
from flowmend.record.parser import parse_or_repair, truncate_to_last_brace
from flowmend.record.shapes import Envelope, FlatRecord, Malformed, classify, is_enveloped


# ---- parse / repair ----

def test_parse_valid_json_is_not_repaired():
    out = parse_or_repair('{"id": "1", "nodes": []}')
    assert out.ok and not out.repaired
    assert out.value == {"id": "1", "nodes": []}


def test_trailing_garbage_is_truncated():
    out = parse_or_repair('{"id":"1","nodes":[]} GARBAGE_SUFFIX')
    assert out.ok and out.repaired
    assert out.value == {"id": "1", "nodes": []}
    assert out.dropped == len(" GARBAGE_SUFFIX")


def test_leading_bom_is_stripped():
    out = parse_or_repair('\ufeff{"id": "1", "nodes": []}')
    assert out.ok and out.repaired
    assert out.value["id"] == "1"


@pytest.mark.parametrize("text", [
    '{"id": "1", "nodes": [',          # truncated mid-object, no closing brace
    '{"id": "1, "nodes": []}',          # broken quoting
    '{"a": {"b": 1}',                   # unbalanced braces, last } closes the inner object
])
def test_structurally_broken_json_stays_unrepaired(text):
    out = parse_or_repair(text)
    assert not out.ok
    assert out.value is None
    # the original parse error is kept, not the retry's
    with pytest.raises(json.JSONDecodeError) as exc:
        json.loads(text)
    assert out.error == str(exc.value)


def test_repair_can_be_disabled():
    out = parse_or_repair('{"id":"1","nodes":[]} trailing', allow_repair=False)
    assert not out.ok and not out.repaired


def test_empty_text_is_flagged_empty():
    out = parse_or_repair("   \n")
    assert not out.ok and out.empty


def test_truncate_without_brace_returns_cleaned_text():
    assert truncate_to_last_brace("  [1, 2  ") == "[1, 2"


def test_deeply_nested_input_is_a_parse_failure():
    out = parse_or_repair("[" * 100000)
    assert not out.ok
    assert out.error


@pytest.mark.skipif(not hasattr(sys, "set_int_max_str_digits"), reason="no integer digit limit before 3.11")
def test_oversized_integer_is_a_parse_failure():
    out = parse_or_repair('{"id": ' + "9" * 5000 + ', "nodes": []}')
    assert not out.ok
    assert out.error


# ---- shapes / envelope ----

def test_classify_shapes():
    assert isinstance(classify({"id": "1", "nodes": []}), FlatRecord)
    assert isinstance(classify({"workflow": {"nodes": []}}), Envelope)
    assert isinstance(classify([1, 2]), Malformed)
    assert isinstance(classify(None), Malformed)


def test_record_with_own_nodes_is_not_an_envelope():
    rec = {"id": "1", "nodes": [], "workflow": {"note": "metadata"}}
    assert not is_enveloped(rec)


def test_unwrap_returns_inner_record_unchanged():
    inner = {"id": "7", "nodes": [{"name": "a", "type": "t", "position": [0, 0]}]}
    shape = classify({"workflow": inner})
    flat = unwrap(shape)
    assert flat.data == {"id": "7", "nodes": [{"name": "a", "type": "t", "position": [0, 0]}]}
    assert list(flat.data) == ["id", "nodes"]


def test_unwrap_rejects_inner_without_nodes():
    shape = classify({"workflow": {"id": "7"}})
    with pytest.raises(InnerContentInvalid):
        unwrap(shape)


# ---- normalizer ----

@pytest.mark.parametrize("filename,expected", [
    ("42_example.json", "42"),
    ("10001_Download_TikTok.json", "10001"),
    ("My Workflow!!.json", "My_Workflow__"),
    ("OpenAI-powered tweet generator.json", "OpenAI_powered_tweet"),
    ("42example.json", "42example"),
])
def test_id_from_filename(filename, expected):
    got = id_from_filename(filename)
    assert got == expected
    assert len(got) <= 20


def test_normalize_fills_id_and_nodes_without_mutating_input():
    rec = {"name": "x"}
    out, changes = normalize_fields(rec, "42_example.json")
    assert out == {"name": "x", "id": "42", "nodes": []}
    assert changes == ["filled_id", "filled_nodes"]
    assert rec == {"name": "x"}


@pytest.mark.parametrize("nodes", ["not a list", {"a": 1}, None, 3])
def test_non_list_nodes_default_to_empty(nodes):
    out, changes = normalize_fields({"id": "1", "nodes": nodes}, "a.json")
    assert out["nodes"] == []
    assert changes == ["filled_nodes"]


def test_complete_record_reports_no_changes():
    rec = {"id": "1", "nodes": [{"name": "a"}]}
    out, changes = normalize_fields(rec, "a.json")
    assert out == rec
    assert changes == []


def test_node_warnings_name_missing_fields():
    warns = node_warnings({"nodes": [{"name": "a", "type": "t", "position": [0, 0]}, {"name": "b"}, "junk"]})
    assert len(warns) == 2
    assert "node b missing type, position" in warns[0]
    assert "#2 is not an object" in warns[1]
