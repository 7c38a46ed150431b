"""Tests for lenient upstream body parsing and error wrapping."""
from upstream.errors import UpstreamApiError, truncate
from upstream.responses import parse_response


def test_parse_json_object():
    assert parse_response('{"profile": {"auth_token": "t"}}') == {"profile": {"auth_token": "t"}}


def test_parse_form_encoded():
    body = "oauth_token=abc&oauth_token_secret=def&oauth_callback_confirmed=true"
    assert parse_response(body) == {
        "oauth_token": "abc",
        "oauth_token_secret": "def",
        "oauth_callback_confirmed": "true",
    }


def test_parse_plain_text_wraps_raw():
    assert parse_response("Internal failure") == {"raw": "Internal failure"}


def test_parse_empty_body_wraps_raw():
    assert parse_response("") == {"raw": ""}


def test_parse_raw_is_truncated():
    parsed = parse_response("x" * 2000)
    assert len(parsed["raw"]) == 500


def test_parse_json_non_object_wraps_raw():
    assert parse_response("[1, 2]") == {"raw": "[1, 2]"}


def test_truncate():
    assert truncate("short") == "short"
    assert truncate("y" * 300) == "y" * 200 + "..."


def test_upstream_error_carries_status_and_body():
    err = UpstreamApiError("boom", 403, {"error": {"code": 8, "message": "Invalid signature"}})
    assert err.status == 403
    assert err.user_message == "Access denied or OAuth signature invalid"
    assert err.error_message == "Invalid signature"
    assert err.mentions("invalid SIGNATURE")


def test_upstream_error_unknown_status_message():
    assert UpstreamApiError("x", 418).user_message == "Unexpected error (HTTP 418)"
