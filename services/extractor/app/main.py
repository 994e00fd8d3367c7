from typing import Optional

from fastapi import Depends, FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from shared.app_logging.logger import CorrelationContext, setup_logging
from shared.config.settings import get_settings
from shared.extraction.fetcher import MetadataFetcher
from shared.utils.health import create_extractor_health_checker
from shared.utils.urls import extract_first_url, is_valid_url

# Setup logging
logger = setup_logging("extractor")

EXTRACTION_REQUESTS = Counter(
    "linkshelf_extraction_requests_total",
    "Metadata extraction requests by response status",
    ["status"],
)

# Get configuration
settings = get_settings()

# Create health checker
health_checker = create_extractor_health_checker()

app = FastAPI(title="Linkshelf Extractor", description="Extracts article metadata from a URL.")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.service.cors_origin_list,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=False,
)


def get_fetcher() -> MetadataFetcher:
    return MetadataFetcher()


def _failure(status_code: int, error: str, message: str) -> JSONResponse:
    EXTRACTION_REQUESTS.labels(status=str(status_code)).inc()
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message},
    )


@app.get("/extract-metadata")
async def extract_metadata_endpoint(url: Optional[str] = None, fetcher: MetadataFetcher = Depends(get_fetcher)):
    """Fetch ``url`` and return its metadata record."""
    with CorrelationContext():
        if not url:
            return _failure(
                status.HTTP_400_BAD_REQUEST,
                "URL is required",
                "Provide a URL as the 'url' query parameter",
            )

        # Accept free text and use the first link inside it
        url = extract_first_url(url) or url

        if not is_valid_url(url):
            return _failure(status.HTTP_400_BAD_REQUEST, "Invalid URL", "The provided URL is not valid")

        try:
            record = await fetcher.fetch_and_extract(url)
        except Exception as e:
            logger.exception("Unexpected error extracting metadata from %s: %s", url, e)
            return _failure(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Internal server error",
                "An error occurred while processing the URL",
            )

        if not record.title and not record.description:
            return _failure(
                status.HTTP_404_NOT_FOUND,
                "No metadata extracted",
                "No metadata was found at the provided URL",
            )

        EXTRACTION_REQUESTS.labels(status="200").inc()
        logger.info(f"Served metadata for {url}")
        return {"success": True, "data": record.model_dump(), "url": url}


@app.get("/extractor/health")
def health():
    """Comprehensive health check endpoint."""
    return health_checker.run_all_checks()


@app.get("/extractor/health/live")
def liveness_check():
    """Liveness check endpoint."""
    return {"status": "alive", "service": "extractor"}


@app.get("/extractor/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
