"""Fetch a page and extract its metadata."""

from typing import Callable, Optional

import httpx
from prometheus_client import Counter

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings
from shared.extraction.html_metadata import extract_metadata
from shared.schemas.metadata import MetadataRecord
from shared.utils.errors import NetworkError, log_app_error, network_error_from_httpx

logger = get_logger(__name__)

METADATA_FETCH_FAILURES = Counter(
    "linkshelf_metadata_fetch_failures_total",
    "Metadata fetches that degraded to an empty record",
    ["reason"],
)

TEXT_CONTENT_TYPES = ("application/xhtml+xml", "application/xml")

ErrorCallback = Callable[[NetworkError], None]


def _is_text_response(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type")
    if not content_type:
        return True
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type.startswith("text/") or media_type in TEXT_CONTENT_TYPES


class MetadataFetcher:
    """Retrieve a URL and hand its body to the HTML extractor.

    Retrieval failures never escape ``fetch_and_extract``: they are logged,
    reported through ``on_error`` and turned into the empty record.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.service.http_timeout
        self.user_agent = user_agent or settings.service.user_agent
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={
                "User-Agent": self.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
            transport=self._transport,
        )

    async def fetch_html(self, url: str) -> httpx.Response:
        """Fetch ``url``; raises ``NetworkError`` on any retrieval failure."""
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise network_error_from_httpx(e, url, context="metadata-fetch") from e

        if not _is_text_response(response):
            raise NetworkError(
                f"Non-text body ({response.headers.get('content-type')}) at {url}",
                reason="non_text",
                context="metadata-fetch",
            )
        return response

    async def fetch_and_extract(self, url: str, on_error: Optional[ErrorCallback] = None) -> MetadataRecord:
        """Fetch ``url`` and extract its metadata, degrading to the empty record."""
        try:
            response = await self.fetch_html(url)
        except NetworkError as e:
            METADATA_FETCH_FAILURES.labels(reason=e.reason).inc()
            log_app_error(logger, e, url=url)
            if on_error is not None:
                on_error(e)
            return MetadataRecord.empty()

        record = extract_metadata(response.text, base_url=str(response.url))
        logger.info(f"Extracted metadata from {url}: title={record.title!r}")
        return record
