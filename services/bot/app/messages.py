"""User-facing texts sent by the bot."""

import math

from services.bot.app.template_engine import render
from shared.extraction.html_metadata import translate_language
from shared.schemas.metadata import MetadataRecord
from shared.utils.errors import AppError, ErrorKind, NetworkError, TransportError, ValidationError

DESCRIPTION_LIMIT = 200

GREETING = "👋 Hi! To link your account, use the button in the web app."
NOT_LINKED = "❌ You need to link your account first using the button in the web app."
SEND_A_LINK = "Send me a link to save it."
ALREADY_LINKED = "✅ Your Telegram account is already linked. You can start sharing articles to save them!"
NEWLY_LINKED = "✅ Your Telegram account has been linked!"
RELINKED = "✅ Your Telegram account has been re-linked! Previous links were removed."


def _truncate(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def compose_confirmation(record: MetadataRecord, url: str) -> str:
    """Summary sent after an article is saved."""
    return render(
        "confirmation.txt.j2",
        url=url,
        title=record.title,
        description=_truncate(record.description) if record.description else None,
        language_name=translate_language(record.language),
        authors=record.authors,
        topics=record.topics,
    )


def rate_limited_message(retry_after_ms: float) -> str:
    seconds = math.ceil(retry_after_ms / 1000)
    return f"⏳ You've reached the article limit. Wait {seconds} seconds before sending another link."


_NETWORK_MESSAGES = {
    "timeout": "⏰ The page took too long to respond. Try again later.",
    "dns": "❌ Couldn't find the page. Check that the URL is correct.",
    "connection_refused": "❌ Couldn't connect to the server. Try again later.",
    "http_status": "❌ Couldn't access the URL. Check that the link is valid and available.",
    "non_text": "❌ That link doesn't point to a web page.",
    "fetch": "❌ Couldn't access the URL. Check that the link is valid and available.",
}

_VALIDATION_MESSAGES = {
    "url": "❌ That URL isn't valid. Make sure it starts with http:// or https://",
    "user_id": "❌ Invalid user ID. Use the button in the web app to link your account.",
}

_TRANSPORT_MESSAGES = {
    403: "❌ I don't have permission to send messages in this chat.",
    400: "❌ The message format was rejected. Try again.",
    429: "⏰ Too many requests. Wait a moment before trying again.",
}

_KIND_MESSAGES = {
    ErrorKind.NETWORK: "❌ Connection error. Try again in a few moments.",
    ErrorKind.VALIDATION: "❌ Validation error. Check your data and try again.",
    ErrorKind.STORE_CONFLICT: "⚠️ A record with this data already exists. Try with different information.",
    ErrorKind.STORE_REFERENCE: "❌ Database reference error. Contact the administrator.",
    ErrorKind.STORE_CONFIGURATION: "❌ Database configuration error. Contact the administrator.",
    ErrorKind.STORE_GENERIC: "❌ Error accessing the database. Try again in a few moments.",
    ErrorKind.TRANSPORT_REJECTION: "❌ Error sending the message. Try again.",
    ErrorKind.UNEXPECTED: "❌ Unexpected error. Our team has been notified. Try again later.",
}


def error_message(error: AppError) -> str:
    """Pick the reply for ``error`` by its category."""
    if isinstance(error, NetworkError) and error.reason in _NETWORK_MESSAGES:
        return _NETWORK_MESSAGES[error.reason]
    if isinstance(error, ValidationError) and error.field in _VALIDATION_MESSAGES:
        return _VALIDATION_MESSAGES[error.field]
    if isinstance(error, TransportError) and error.code in _TRANSPORT_MESSAGES:
        return _TRANSPORT_MESSAGES[error.code]
    if error.kind is ErrorKind.STORE_CONFIGURATION and error.code == "42501":
        return "❌ Database permission error. Contact the administrator."
    return _KIND_MESSAGES[error.kind]
