import pytest

from shared.utils.urls import (StartCommand, extract_first_url,
                               is_link_message, is_valid_account_id,
                               is_valid_url, parse_start_command)


@pytest.mark.parametrize(
    "value",
    ["https://example.com", "http://example.com/a?b=c#d", "HTTPS://Example.com:8443/path"],
)
def test_valid_urls(value):
    assert is_valid_url(value)


@pytest.mark.parametrize(
    "value",
    [
        None,
        42,
        "",
        "example.com",
        "ftp://example.com/file",
        "javascript:alert(1)",
        "https://",
        "https://exa mple.com",
        "http://example.com:notaport/",
    ],
)
def test_invalid_urls(value):
    assert not is_valid_url(value)


def test_first_url_is_leftmost():
    text = "fuente:x https://example.com/a text https://example.com/b"
    assert extract_first_url(text) == "https://example.com/a"


def test_trailing_punctuation_is_stripped():
    assert extract_first_url("read this: https://example.com/post.") == "https://example.com/post"
    assert extract_first_url("(see https://example.com/x)") == "https://example.com/x"
    assert extract_first_url('"https://example.com/q?a=1"!') == "https://example.com/q?a=1"


def test_balanced_brackets_are_kept():
    url = "https://en.wikipedia.org/wiki/Python_(programming_language)"
    assert extract_first_url(f"see {url}") == url


def test_no_url():
    assert extract_first_url("nothing to see here") is None
    assert extract_first_url("") is None
    assert extract_first_url(None) is None


def test_link_message():
    assert is_link_message("https://example.com")
    assert not is_link_message("look https://example.com")


def test_account_ids():
    assert is_valid_account_id("3f2b-11aa-BEEF")
    assert not is_valid_account_id("")
    assert not is_valid_account_id("abc_def")
    assert not is_valid_account_id(None)


def test_parse_start_command():
    assert parse_start_command("/start") == StartCommand(account_id=None)
    assert parse_start_command("/start abc-123") == StartCommand(account_id="abc-123")
    assert parse_start_command("/start@linkshelf_bot abc") == StartCommand(account_id="abc")
    assert parse_start_command("/start bad_id!") == StartCommand(account_id="bad_id!")
    assert parse_start_command("hello") is None
    assert parse_start_command(None) is None
