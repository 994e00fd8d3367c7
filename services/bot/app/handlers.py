"""
Inbound chat message handling.

Every step that can fail is turned into an ``AppError``, logged, and answered
with a message chosen by its kind. Nothing raised here reaches the poll loop.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from prometheus_client import Counter

from services.bot.app import messages
from services.bot.app.crud import (LinkOutcome, find_account_by_chat,
                                   find_or_link_account,
                                   upsert_article_and_relation)
from services.bot.app.schema import InboundMessage
from services.bot.app.transport import ChatTransport
from shared.app_logging.logger import CorrelationContext, get_logger
from shared.database.store import Store
from shared.extraction.fetcher import MetadataFetcher
from shared.utils.errors import (AppError, NetworkError, TransportError,
                                 ValidationError, classify_exception,
                                 log_app_error)
from shared.utils.urls import (StartCommand, extract_first_url,
                               is_valid_account_id, is_valid_url,
                               parse_start_command)

logger = get_logger("bot.handlers")

RATE_LIMITED = Counter("linkshelf_rate_limited_total", "Link submissions denied by the rate limiter")

_LINK_REPLIES = {
    LinkOutcome.ALREADY_LINKED: messages.ALREADY_LINKED,
    LinkOutcome.RELINKED: messages.RELINKED,
    LinkOutcome.NEWLY_LINKED: messages.NEWLY_LINKED,
}


@dataclass
class BotContext:
    """Collaborators shared by every handler."""

    store: Store
    transport: ChatTransport
    fetcher: MetadataFetcher
    rate_limiter: Any


async def reply(ctx: BotContext, chat_id: int, text: str) -> bool:
    """Send ``text``; a delivery failure is logged and reported as ``False``."""
    try:
        await ctx.transport.send_text(chat_id, text)
        return True
    except Exception as e:
        log_app_error(logger, classify_exception(e, context="send-message"), chat_id=chat_id)
        return False


async def reply_with_image(ctx: BotContext, chat_id: int, text: str, image_url: Optional[str]) -> bool:
    """Send ``text`` as the caption of ``image_url``, falling back to plain text."""
    if image_url:
        try:
            await ctx.transport.send_image(chat_id, image_url, text)
            return True
        except Exception as e:
            logger.warning(f"Image reply to chat {chat_id} failed ({e}); sending text instead")
    return await reply(ctx, chat_id, text)


async def notify_error(ctx: BotContext, chat_id: int, error: AppError, log: bool = True, **context) -> None:
    """Log ``error`` and tell the user what went wrong."""
    if log:
        log_app_error(logger, error, chat_id=chat_id, **context)
    await reply(ctx, chat_id, messages.error_message(error))


async def handle_start(ctx: BotContext, message: InboundMessage, command: StartCommand) -> None:
    chat_id = message.chat_id
    if not command.account_id:
        await reply(ctx, chat_id, messages.GREETING)
        return

    if not is_valid_account_id(command.account_id):
        error = ValidationError(
            f"Invalid user_id: {command.account_id!r}",
            field="user_id",
            context="user-linking",
        )
        await notify_error(ctx, chat_id, error)
        return

    logger.info(f"Linking chat {chat_id} (@{message.username}) to account {command.account_id}")
    result = find_or_link_account(ctx.store, chat_id, command.account_id, message.username)
    if result.outcome is LinkOutcome.FAILED:
        # find_or_link_account has already logged the failure
        await notify_error(ctx, chat_id, result.error, log=False)
        return
    await reply(ctx, chat_id, _LINK_REPLIES[result.outcome])


async def handle_link_message(ctx: BotContext, message: InboundMessage) -> None:
    """Save the first link in ``message`` for the account linked to its chat."""
    chat_id = message.chat_id
    logger.debug(f"Looking up linked account for chat {chat_id}")

    try:
        account_id = find_account_by_chat(ctx.store, chat_id)
    except Exception as e:
        await notify_error(ctx, chat_id, classify_exception(e, context="message-processing"))
        return

    if not account_id:
        await reply(ctx, chat_id, messages.NOT_LINKED)
        return

    url = extract_first_url(message.text)
    if not url:
        await reply(ctx, chat_id, messages.SEND_A_LINK)
        return

    decision = ctx.rate_limiter.check(account_id)
    if not decision.allowed:
        RATE_LIMITED.inc()
        logger.info(f"Rate limited account {account_id}, retry in {decision.retry_after_ms:.0f} ms")
        await reply(ctx, chat_id, messages.rate_limited_message(decision.retry_after_ms))
        return

    if not is_valid_url(url):
        error = ValidationError(f"Invalid URL: {url!r}", field="url", context="url-validation")
        await notify_error(ctx, chat_id, error)
        return

    fetch_errors: List[NetworkError] = []
    record = await ctx.fetcher.fetch_and_extract(url, on_error=fetch_errors.append)

    result = upsert_article_and_relation(ctx.store, record.to_article_data(url), account_id)
    if not result.success:
        await notify_error(ctx, chat_id, result.error, log=False)
        return

    await reply_with_image(ctx, chat_id, messages.compose_confirmation(record, url), record.featured_image)

    if fetch_errors:
        # the fetcher logged it; the article was still saved with what we had
        await reply(ctx, chat_id, messages.error_message(fetch_errors[0]))


async def dispatch(ctx: BotContext, message: InboundMessage) -> None:
    """Route one inbound message to its handler under a fresh correlation ID."""
    with CorrelationContext():
        try:
            command = parse_start_command(message.text)
            if command is not None:
                await handle_start(ctx, message, command)
            elif message.text.startswith("/start"):
                logger.debug(f"Ignoring malformed /start from chat {message.chat_id}")
            else:
                await handle_link_message(ctx, message)
        except TransportError as e:
            log_app_error(logger, e, chat_id=message.chat_id)
        except Exception as e:
            await notify_error(ctx, message.chat_id, classify_exception(e, context="message-processing"))
