"""Tests for utility helpers."""

from accombook.utils.helpers import generate_token, parse_perks, sanitize_input


def test_sanitize_strips_tags_and_whitespace():
    assert sanitize_input("  <b>Cosy</b>\n  flat  ") == "Cosy flat"


def test_sanitize_truncates():
    assert sanitize_input("abcdef", 3) == "abc"


def test_sanitize_none():
    assert sanitize_input(None) == ""


def test_parse_perks():
    assert parse_perks('["wifi", "pool"]') == ["wifi", "pool"]


def test_parse_perks_drops_non_strings():
    assert parse_perks('["wifi", 3, null, "pool"]') == ["wifi", "pool"]


def test_parse_perks_invalid_json():
    assert parse_perks("wifi, pool") == []
    assert parse_perks('{"wifi": true}') == []
    assert parse_perks(None) == []


def test_generate_token_is_random():
    assert generate_token() != generate_token()
