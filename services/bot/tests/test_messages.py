import pytest

from services.bot.app import messages
from shared.schemas.metadata import MetadataRecord
from shared.utils.errors import (NetworkError, StoreConfigurationError,
                                 StoreConflictError, TransportError,
                                 UnexpectedError, ValidationError)

URL = "https://example.com/post"


def test_minimal_confirmation():
    text = messages.compose_confirmation(MetadataRecord.empty(), URL)
    assert text == "✅ Article saved!\n🔗 URL: https://example.com/post"


def test_full_confirmation_in_fixed_order():
    record = MetadataRecord(
        title="Title",
        description="Desc",
        language="en-GB",
        authors=["Ann", "Bob"],
        topics=["python", "regex"],
    )

    lines = messages.compose_confirmation(record, URL).split("\n")

    assert lines == [
        "✅ Article saved!",
        "🔗 URL: https://example.com/post",
        "📝 Title: Title",
        "📄 Description: Desc",
        "🌍 Language: English",
        "👥 Author(s): Ann, Bob",
        "🏷️ Topics: python, regex",
    ]


def test_long_description_is_truncated():
    record = MetadataRecord(description="x" * 250)
    text = messages.compose_confirmation(record, URL)
    assert "📄 Description: " + "x" * 200 + "..." in text


def test_description_at_limit_is_untouched():
    record = MetadataRecord(description="x" * 200)
    assert messages.compose_confirmation(record, URL).endswith("x" * 200)


def test_unknown_language_shown_raw_and_missing_language_omitted():
    assert "🌍 Language: fr" in messages.compose_confirmation(MetadataRecord(language="fr"), URL)
    assert "Language" not in messages.compose_confirmation(MetadataRecord(title="T"), URL)


@pytest.mark.parametrize(
    "retry_after_ms, seconds",
    [(55_000, 55), (54_001, 55), (1, 1)],
)
def test_rate_limited_message_rounds_up(retry_after_ms, seconds):
    assert f"Wait {seconds} seconds" in messages.rate_limited_message(retry_after_ms)


def test_error_messages_by_category():
    assert "too long" in messages.error_message(NetworkError("t", reason="timeout"))
    assert "Couldn't find the page" in messages.error_message(NetworkError("d", reason="dns"))
    assert "http://" in messages.error_message(ValidationError("u", field="url"))
    assert "Invalid user ID" in messages.error_message(ValidationError("u", field="user_id"))
    assert "already exists" in messages.error_message(StoreConflictError("c", code="23505"))
    assert "permission" in messages.error_message(StoreConfigurationError("p", code="42501"))
    assert "configuration" in messages.error_message(StoreConfigurationError("t", code="42P01"))
    assert "permission" in messages.error_message(TransportError("f", code=403))
    assert "Too many requests" in messages.error_message(TransportError("r", code=429))
    assert "Error sending" in messages.error_message(TransportError("x", code=500))
    assert "Unexpected error" in messages.error_message(UnexpectedError("boom"))
