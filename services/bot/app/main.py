import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from services.bot.app.handlers import BotContext
from services.bot.app.rate_limiter import create_rate_limiter
from services.bot.app.transport import TelegramTransport
from shared.app_logging.logger import setup_logging
from shared.config.settings import get_settings
from shared.database.session import init_db
from shared.database.store import SQLAlchemyStore
from shared.extraction.fetcher import MetadataFetcher
from shared.utils.health import create_bot_health_checker

# Setup logging
logger = setup_logging("bot")

# Get configuration
settings = get_settings()

# Create health checker
health_checker = create_bot_health_checker()


@asynccontextmanager
async def lifespan(app: FastAPI):
    from services.bot.app.worker import cleanup_rate_limits, poll_updates

    token = settings.telegram.token
    if not token:
        logger.critical("TELEGRAM_TOKEN is not set; the bot cannot start")
        raise RuntimeError("TELEGRAM_TOKEN is required")

    init_db()
    transport = TelegramTransport(token)
    rate_limiter = create_rate_limiter(settings)
    ctx = BotContext(
        store=SQLAlchemyStore(),
        transport=transport,
        fetcher=MetadataFetcher(),
        rate_limiter=rate_limiter,
    )
    app.state.bot = ctx

    tasks = [
        asyncio.create_task(poll_updates(ctx, transport)),
        asyncio.create_task(cleanup_rate_limits(rate_limiter)),
    ]
    logger.info("Launched Telegram poller and rate limiter cleanup")
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        await transport.close()
        logger.info("Bot worker shut down cleanly")

        # Cleanup Redis connections
        from shared.utils.redis_client import close_all_redis_clients

        close_all_redis_clients()
        logger.info("Redis connections closed")


app = FastAPI(lifespan=lifespan)


@app.get("/bot/health")
def health():
    """Comprehensive health check endpoint."""
    return health_checker.run_all_checks()


@app.get("/bot/health/live")
def liveness_check():
    """Liveness check endpoint."""
    return {"status": "alive", "service": "bot"}


@app.get("/bot/health/ready")
def readiness_check():
    """Readiness check endpoint."""
    return health_checker.readiness()


@app.get("/bot/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8001)
