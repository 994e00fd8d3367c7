#   services/bot/app/worker.py

import asyncio
from typing import Optional, Set

from services.bot.app.handlers import BotContext, dispatch
from services.bot.app.schema import InboundMessage
from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings

logger = get_logger("bot.worker")
settings = get_settings()


async def poll_updates(ctx: BotContext, transport, poll_timeout: Optional[int] = None):
    """Long-poll the Bot API and dispatch each message as its own task."""
    poll_timeout = poll_timeout if poll_timeout is not None else settings.telegram.poll_timeout
    offset: Optional[int] = None
    pending: Set[asyncio.Task] = set()

    logger.info("Starting Telegram update poller...")

    try:
        while True:
            try:
                updates = await transport.get_updates(offset=offset, timeout=poll_timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error polling Telegram updates: {e}")
                await asyncio.sleep(5)
                continue

            for update in updates:
                offset = update["update_id"] + 1
                message = InboundMessage.from_update(update)
                if message is None:
                    logger.debug("Skipping update %s without a chat message", update["update_id"])
                    continue
                task = asyncio.create_task(dispatch(ctx, message))
                pending.add(task)
                task.add_done_callback(pending.discard)
    finally:
        for task in pending:
            task.cancel()


async def cleanup_rate_limits(rate_limiter, interval: Optional[float] = None):
    """Periodically forget identities whose window has emptied."""
    interval = interval if interval is not None else settings.service.rate_limit_cleanup_interval
    while True:
        await asyncio.sleep(interval)
        try:
            removed = rate_limiter.cleanup()
            if removed:
                logger.info(f"🧹 Rate limiter cleanup removed {removed} idle identities")
        except Exception as e:
            logger.error(f"Rate limiter cleanup failed: {e}")
