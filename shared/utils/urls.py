import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

ALLOWED_SCHEMES = ("http", "https")

# A URL token runs until whitespace, angle brackets, quotes or a backtick.
_URL_TOKEN = re.compile(r"https?://[^\s<>\"'`]+", re.IGNORECASE)
_TRAILING_PUNCTUATION = ".,;:!?)]}"
_BRACKET_PAIRS = {")": "(", "]": "[", "}": "{"}

_ACCOUNT_ID = re.compile(r"^[A-Za-z0-9-]+$")
_START_COMMAND = re.compile(r"^/start(?:@\w+)?(?:\s+(\S+))?\s*$")


@dataclass(frozen=True)
class StartCommand:
    account_id: Optional[str]


def is_valid_url(value) -> bool:
    """True iff ``value`` is an absolute http(s) URL with a host."""
    if not isinstance(value, str) or not value or any(ch.isspace() for ch in value):
        return False
    try:
        parts = urlsplit(value)
        # .port raises ValueError on a malformed port
        parts.port
    except ValueError:
        return False
    return parts.scheme.lower() in ALLOWED_SCHEMES and bool(parts.hostname)


def _strip_trailing(token: str) -> str:
    while token and token[-1] in _TRAILING_PUNCTUATION:
        last = token[-1]
        opener = _BRACKET_PAIRS.get(last)
        if opener and token.count(opener) >= token.count(last):
            break
        token = token[:-1]
    return token


def extract_first_url(text) -> Optional[str]:
    """Return the leftmost http(s) URL found in free text, or None."""
    if not isinstance(text, str) or not text:
        return None
    for match in _URL_TOKEN.finditer(text):
        token = _strip_trailing(match.group(0))
        scheme_end = token.find("://") + 3
        if len(token) > scheme_end:
            return token
    return None


def is_link_message(text) -> bool:
    if not isinstance(text, str) or not text:
        return False
    return text.startswith("http://") or text.startswith("https://")


def is_valid_account_id(value) -> bool:
    """Account identifiers are alphanumeric and may contain hyphens."""
    return isinstance(value, str) and bool(_ACCOUNT_ID.match(value))


def parse_start_command(text) -> Optional[StartCommand]:
    """Parse ``/start [account_id]``; the argument is returned unvalidated."""
    if not isinstance(text, str):
        return None
    match = _START_COMMAND.match(text.strip())
    if not match:
        return None
    return StartCommand(account_id=match.group(1))
