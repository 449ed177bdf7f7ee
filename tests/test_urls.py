"""Tests for URL normalization."""

import pytest

from pipeline.urls import extract_domain, normalize_url


@pytest.mark.parametrize(
    "raw",
    [
        "https://www.example.com/a?utm_source=x",
        "http://example.com/a",
        "HTTP://EXAMPLE.COM/a/",
        "https://m.example.com/a#comments",
        "https://amp.example.com:443/a?fbclid=abc&utm_medium=social",
        "//www.example.com/a",
        "example.com/a",
    ],
)
def test_equivalent_urls_share_a_key(raw):
    assert normalize_url(raw) == "example.com/a"


def test_keeps_meaningful_query_params():
    assert normalize_url("https://site.com/story?id=42&utm_campaign=z") == "site.com/story?id=42"
    assert normalize_url("https://site.com/story?page=2&id=42") == "site.com/story?page=2&id=42"


def test_drops_all_known_tracking_params():
    url = "https://site.com/x?utm_source=a&utm_content=b&fbclid=c&gclid=d&ref=e&source=f&_ga=g&_gid=h"
    assert normalize_url(url) == "site.com/x"


def test_default_ports_stripped_other_ports_kept():
    assert normalize_url("http://site.com:80/x") == "site.com/x"
    assert normalize_url("http://site.com:8080/x") == "site.com:8080/x"


def test_prefix_is_not_stripped_from_bare_domain():
    # "m.com" would become "com" otherwise
    assert normalize_url("https://m.com/story") == "m.com/story"
    assert normalize_url("https://www.m.example.com/x") == "example.com/x"


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_empty_input_returns_none(raw):
    assert normalize_url(raw) is None


@pytest.mark.parametrize(
    "raw",
    [
        "https://www.example.com/a/b/?utm_source=x&id=3#top",
        "http://m.news.site.co.uk:443/2025/10/story//",
        "example.com",
        "https://site.com/path?ref=home;page=2",
        "http://https://a.com/x",
    ],
)
def test_normalization_is_idempotent(raw):
    once = normalize_url(raw)
    assert normalize_url(once) == once


def test_repeated_scheme_prefixes_are_stripped():
    assert normalize_url("http://https://a.com/x") == "a.com/x"
    assert normalize_url("https://http://www.a.com/x/") == "a.com/x"


def test_semicolon_separated_query():
    assert normalize_url("https://site.com/path?ref=home;page=2") == "site.com/path?page=2"


def test_extract_domain():
    assert extract_domain("https://www.bbc.co.uk/news/uk-123?utm_source=x") == "bbc.co.uk"
    assert extract_domain("") is None
