from __future__ import annotations

import pytest

from exceptions.validation import (
    InvalidMethodOrderError,
    InvalidStatusCodeSpecError,
    InvalidURLError,
)
from utils.validators import MethodOrderParser, StatusCodeSpecParser, URLValidator


def test_url_validator_accepts_http_and_https() -> None:
    assert URLValidator.is_valid_url("https://example.com/health") is True
    assert URLValidator.is_valid_url("http://example.com") is True
    assert URLValidator.validate("  https://example.com/ping  ") == "https://example.com/ping"


@pytest.mark.parametrize("url", ["", "example.com", "ftp://example.com/file", "https://"])
def test_url_validator_rejects_bad_urls(url: str) -> None:
    assert URLValidator.is_valid_url(url) is False
    with pytest.raises(InvalidURLError):
        URLValidator.validate(url)


def test_url_validator_reports_reason() -> None:
    with pytest.raises(InvalidURLError) as excinfo:
        URLValidator.validate("ftp://example.com")
    assert excinfo.value.details["reason"] == "no_scheme"


def test_status_spec_parses_codes_and_ranges() -> None:
    codes, ranges = StatusCodeSpecParser.parse("200-299, 401,403")

    assert codes == frozenset({401, 403})
    assert ranges == ((200, 299),)


@pytest.mark.parametrize("spec", ["", " , ", "abc", "299-200", "700", "200-", "99"])
def test_status_spec_rejects_bad_tokens(spec: str) -> None:
    with pytest.raises(InvalidStatusCodeSpecError):
        StatusCodeSpecParser.parse(spec)


def test_parse_codes_forbids_ranges() -> None:
    assert StatusCodeSpecParser.parse_codes("405,501") == frozenset({405, 501})
    with pytest.raises(InvalidStatusCodeSpecError):
        StatusCodeSpecParser.parse_codes("405,500-510")


def test_method_order_is_normalized_and_deduplicated() -> None:
    assert MethodOrderParser.parse("head, get,HEAD") == ("HEAD", "GET")
    assert MethodOrderParser.parse("GET") == ("GET",)


@pytest.mark.parametrize("order", ["", " , ", "HEAD,FETCH"])
def test_method_order_rejects_empty_or_unknown(order: str) -> None:
    with pytest.raises(InvalidMethodOrderError):
        MethodOrderParser.parse(order)
