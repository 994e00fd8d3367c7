"""
Regex-based metadata extraction from raw HTML.

Each field is read with a single first-match pattern over the raw markup
rather than a DOM parser. Malformed markup therefore yields ``None`` for the
affected field instead of a best-effort guess; callers rely on that.
"""

import re
from typing import List, Optional
from urllib.parse import urljoin

from shared.app_logging.logger import get_logger
from shared.schemas.metadata import MetadataRecord

logger = get_logger(__name__)

MIN_IMAGE_SIZE = 200

# Substrings that disqualify an <img> when found in its tag or its URL
EXCLUDED_IMAGE_PATTERNS = (
    "icon",
    "logo",
    "avatar",
    "profile",
    "thumb",
    "small",
    "favicon",
    "sprite",
    "button",
    "banner",
    "ad",
    "ads",
)
TRACKING_IMAGE_PATTERNS = ("tracking", "analytics", "pixel")

LANGUAGE_NAMES = (
    ("en", "English"),
    ("es", "Spanish"),
)

_HTML_ENTITIES = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&#8216;": "'",
    "&#8217;": "'",
    "&#8220;": '"',
    "&#8221;": '"',
    "&#8211;": "–",
    "&#8212;": "—",
    "&nbsp;": " ",
    "&copy;": "©",
    "&reg;": "®",
    "&trade;": "™",
}
_ENTITY_RE = re.compile("|".join(re.escape(entity) for entity in _HTML_ENTITIES))

# Attribute runs stop at the next angle bracket so an unclosed tag never
# scans into the rest of the document.
_TITLE_RE = re.compile(r"<title[^<>]*>([^<]+)</title>", re.IGNORECASE)
_LANG_RE = re.compile(r"<html[^<>]*lang=[\"']([^\"']+)[\"']", re.IGNORECASE)
_IMG_TAG_RE = re.compile(r"<img[^<>]*src=[\"']([^\"']+)[\"'][^<>]*>", re.IGNORECASE)
_WIDTH_RE = re.compile(r"width=[\"'](\d+)[\"']", re.IGNORECASE)
_HEIGHT_RE = re.compile(r"height=[\"'](\d+)[\"']", re.IGNORECASE)


def _meta_pattern(attribute: str, value: str) -> "re.Pattern[str]":
    return re.compile(
        rf"<meta[^<>]*{attribute}=[\"']{re.escape(value)}[\"'][^<>]*content=[\"']([^\"']+)[\"']",
        re.IGNORECASE,
    )


_META_AUTHOR_RE = _meta_pattern("name", "author")
_META_KEYWORDS_RE = _meta_pattern("name", "keywords")
_META_DESCRIPTION_RE = _meta_pattern("name", "description")
_OG_DESCRIPTION_RE = _meta_pattern("property", "og:description")
_OG_IMAGE_RE = _meta_pattern("property", "og:image")
_TWITTER_IMAGE_RE = _meta_pattern("name", "twitter:image")
_META_IMAGE_RE = _meta_pattern("name", "image")


def decode_html_entities(text: Optional[str]) -> Optional[str]:
    """Decode the common named and numeric entities in one pass."""
    if not text:
        return text
    return _ENTITY_RE.sub(lambda match: _HTML_ENTITIES[match.group(0)], text)


def resolve_url(url: Optional[str], base_url: Optional[str]) -> Optional[str]:
    """Resolve ``url`` against ``base_url``; on failure return ``url`` unchanged."""
    if not url:
        return None
    if url.lower().startswith(("http://", "https://")):
        return url
    if not base_url:
        return url
    try:
        return urljoin(base_url, url)
    except ValueError as e:
        logger.warning(f"Could not resolve image URL {url!r} against {base_url!r}: {e}")
        return url


def should_include_image(img_tag: str, img_url: str) -> bool:
    """Reject small, decorative and tracking images."""
    width = _WIDTH_RE.search(img_tag)
    height = _HEIGHT_RE.search(img_tag)
    if width and height:
        if int(width.group(1)) < MIN_IMAGE_SIZE or int(height.group(1)) < MIN_IMAGE_SIZE:
            return False

    tag_lower = img_tag.lower()
    url_lower = img_url.lower()
    for pattern in EXCLUDED_IMAGE_PATTERNS:
        if pattern in url_lower or pattern in tag_lower:
            return False

    return not any(pattern in url_lower for pattern in TRACKING_IMAGE_PATTERNS)


def extract_featured_image(html: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
    """Pick the featured image: og:image, twitter:image, meta image, then the first usable <img>."""
    if not html:
        return None

    for pattern in (_OG_IMAGE_RE, _TWITTER_IMAGE_RE, _META_IMAGE_RE):
        match = pattern.search(html)
        if match:
            return resolve_url(match.group(1), base_url)

    for match in _IMG_TAG_RE.finditer(html):
        img_tag, img_url = match.group(0), match.group(1)
        if should_include_image(img_tag, img_url):
            return resolve_url(img_url, base_url)

    return None


def _first_decoded(pattern: "re.Pattern[str]", html: str) -> Optional[str]:
    match = pattern.search(html)
    if not match:
        return None
    value = decode_html_entities(match.group(1).strip()).strip()
    return value or None


def _split_keywords(raw: str) -> List[str]:
    topics = []
    for segment in raw.split(","):
        topic = decode_html_entities(segment.strip()).strip()
        if topic:
            topics.append(topic)
    return topics


def extract_metadata(html: Optional[str], base_url: Optional[str] = None) -> MetadataRecord:
    """Extract a ``MetadataRecord`` from raw markup.

    Never raises for bad input: ``None``, empty, whitespace-only or tag-free
    text produces the empty record.

    The author meta tag yields at most one author and is not split on
    commas, so "Doe, Jane" stays a single entry.
    """
    if not html or not html.strip() or "<" not in html:
        return MetadataRecord.empty()

    language_match = _LANG_RE.search(html)
    author = _first_decoded(_META_AUTHOR_RE, html)
    keywords_match = _META_KEYWORDS_RE.search(html)

    return MetadataRecord(
        title=_first_decoded(_TITLE_RE, html),
        description=_first_decoded(_META_DESCRIPTION_RE, html) or _first_decoded(_OG_DESCRIPTION_RE, html),
        language=language_match.group(1) if language_match else None,
        authors=[author] if author else [],
        topics=_split_keywords(keywords_match.group(1)) if keywords_match else [],
        featured_image=extract_featured_image(html, base_url),
    )


def translate_language(language: Optional[str]) -> Optional[str]:
    """Human-readable language name; unknown tags are returned as-is."""
    if not language:
        return None
    lowered = language.lower()
    for prefix, name in LANGUAGE_NAMES:
        if lowered.startswith(prefix):
            return name
    return language
