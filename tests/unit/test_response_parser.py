"""
Unit tests for model response parsing
"""
import pytest

from medparse.exceptions import ParseFailure
from medparse.services.response_parser import (
    parse_direct,
    parse_fenced_block,
    parse_json_object,
    parse_page_extraction,
    parse_repaired_span,
    repair_json_text,
)


def test_plain_json_parses_directly():
    assert parse_json_object('{"a":1}') == {"a": 1}
    assert parse_direct('{"a":1}').ok


def test_fenced_block_is_recovered():
    text = 'Here is the data:\n```json\n{"a":1}\n```\nLet me know.'
    assert not parse_direct(text).ok
    assert parse_fenced_block(text).data == {"a": 1}
    assert parse_json_object(text) == {"a": 1}


def test_fence_without_language_tag():
    assert parse_json_object('```\n{"b": [1, 2]}\n```') == {"b": [1, 2]}


def test_trailing_commas_are_repaired():
    text = 'prefix {"a":1,} suffix'
    assert parse_repaired_span(text).data == {"a": 1}
    assert parse_json_object(text) == {"a": 1}


def test_repair_collapses_whitespace_and_array_commas():
    assert repair_json_text('{"a": [1, 2,\n\t],\n}') == '{"a": [1, 2]}'


def test_unrecoverable_text_raises_with_every_attempt():
    with pytest.raises(ParseFailure) as excinfo:
        parse_json_object("I cannot read this page.")
    strategies = [attempt.strategy for attempt in excinfo.value.attempts]
    assert strategies == ["direct", "fenced_block", "repaired_span"]
    assert all(attempt.error for attempt in excinfo.value.attempts)


def test_only_objects_count():
    with pytest.raises(ParseFailure):
        parse_json_object("[1, 2, 3]")


def test_custom_strategy_order():
    # direct parsing is skipped, so bare JSON is found through the span strategy
    assert parse_json_object('{"a": 1}', strategies=(parse_fenced_block, parse_repaired_span)) == {"a": 1}


def test_page_extraction_from_fenced_output():
    text = '```json\n{"patientInfo": {"fullName": "John Doe"}, "clinicalData": {"medications": ["Paracetamol"]}}\n```'
    page = parse_page_extraction(text)
    assert page.patient_info.full_name == "John Doe"
    assert page.clinical_data.medications[0].name == "Paracetamol"
    assert page.billing_info.procedure_costs == []


def test_schema_mismatch_is_a_parse_failure():
    with pytest.raises(ParseFailure):
        parse_page_extraction('{"clinicalData": {"vitalSigns": "not an object"}}')
