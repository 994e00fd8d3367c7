from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional

from prometheus_client import Counter

from shared.app_logging.logger import get_logger
from shared.database.models.article import utcnow
from shared.database.store import Row, Store
from shared.utils.errors import AppError, StoreError, ValidationError, classify_exception, log_app_error
from shared.utils.urls import is_valid_account_id, is_valid_url

logger = get_logger("bot.crud")

ARTICLES_SAVED = Counter("linkshelf_articles_saved_total", "Articles saved or refreshed", ["result"])
CHATS_LINKED = Counter("linkshelf_chat_links_total", "Chat link attempts by outcome", ["outcome"])

ARTICLE_FIELDS = ("title", "language", "authors", "topics", "featured_image")


@dataclass
class UpsertResult:
    article: Optional[Row] = None
    relation: Optional[Row] = None
    error: Optional[AppError] = None

    @property
    def success(self) -> bool:
        return self.error is None


class LinkOutcome(Enum):
    ALREADY_LINKED = "already_linked"
    RELINKED = "relinked"
    NEWLY_LINKED = "newly_linked"
    FAILED = "failed"


@dataclass
class LinkResult:
    outcome: LinkOutcome
    link: Optional[Row] = None
    error: Optional[AppError] = None


def upsert_article_and_relation(store: Store, article_data: Mapping[str, Any], user_id: str) -> UpsertResult:
    """Create or refresh the article for ``article_data['url']`` and attach it to ``user_id``.

    The article is matched on the exact URL string. An existing row keeps its
    id and created_at while every metadata field is overwritten with the
    latest values. The (user, article) relation is created unread, or only
    has updated_at bumped if it already exists. All writes share one
    transaction.
    """
    url = article_data.get("url")
    if not is_valid_url(url):
        return UpsertResult(error=ValidationError(f"Invalid URL: {url!r}", field="url", context="article-upsert"))

    fields = {key: article_data.get(key) for key in ARTICLE_FIELDS}
    now = utcnow()

    try:
        with store.transaction():
            existing = store.find_one("articles", {"url": url})
            if existing is not None:
                article = store.update("articles", {"id": existing["id"]}, {**fields, "updated_at": now})
                logger.info(f"Refreshed article {article['id']} for {url}")
                result = "updated"
            else:
                article = store.insert("articles", {"url": url, **fields, "created_at": now, "updated_at": now})
                logger.info(f"Inserted article {article['id']} for {url}")
                result = "inserted"

            relation = store.upsert(
                "user_articles",
                {"user_id": user_id, "article_id": article["id"], "updated_at": now},
                conflict_keys=("user_id", "article_id"),
            )
    except Exception as e:
        error = classify_exception(e, context="article-upsert")
        log_app_error(logger, error, url=url, user_id=user_id)
        return UpsertResult(error=error)

    ARTICLES_SAVED.labels(result=result).inc()
    return UpsertResult(article=article, relation=relation)


def find_account_by_chat(store: Store, chat_id: int) -> Optional[str]:
    """Account linked to ``chat_id``; raises ``StoreError`` if the lookup fails."""
    link = store.find_one("chat_links", {"chat_id": chat_id})
    return link["account_id"] if link else None


def is_chat_linked(store: Store, chat_id: int) -> bool:
    return store.find_one("chat_links", {"chat_id": chat_id}) is not None


def find_previous_links(store: Store, account_id: str) -> List[Row]:
    return store.find_many("chat_links", {"account_id": account_id})


def remove_links_for_account(store: Store, account_id: str) -> int:
    return store.delete("chat_links", {"account_id": account_id})


def find_or_link_account(
    store: Store,
    chat_id: int,
    account_id: str,
    chat_username: Optional[str] = None,
) -> LinkResult:
    """Bind ``chat_id`` to ``account_id``, keeping one chat per account.

    A chat that is already linked is left untouched. Otherwise every earlier
    link of the account is purged before the new one is inserted; a failed
    purge is logged and the insert still goes ahead.
    """
    if not is_valid_account_id(account_id):
        error = ValidationError(f"Invalid user_id: {account_id!r}", field="user_id", context="user-linking")
        CHATS_LINKED.labels(outcome=LinkOutcome.FAILED.value).inc()
        return LinkResult(LinkOutcome.FAILED, error=error)

    try:
        existing = store.find_one("chat_links", {"chat_id": chat_id})
        if existing is not None:
            CHATS_LINKED.labels(outcome=LinkOutcome.ALREADY_LINKED.value).inc()
            return LinkResult(LinkOutcome.ALREADY_LINKED, link=existing)

        previous = find_previous_links(store, account_id)
        if previous:
            try:
                removed = remove_links_for_account(store, account_id)
                logger.info(f"Purged {removed} previous link(s) of account {account_id}")
            except StoreError as e:
                log_app_error(logger, e.with_context("link-cleanup"), account_id=account_id)

        link = store.insert(
            "chat_links",
            {
                "account_id": account_id,
                "chat_id": chat_id,
                "chat_username": chat_username,
                "linked_at": utcnow(),
            },
        )
    except Exception as e:
        error = classify_exception(e, context="user-linking")
        log_app_error(logger, error, chat_id=chat_id, account_id=account_id)
        CHATS_LINKED.labels(outcome=LinkOutcome.FAILED.value).inc()
        return LinkResult(LinkOutcome.FAILED, error=error)

    outcome = LinkOutcome.RELINKED if previous else LinkOutcome.NEWLY_LINKED
    CHATS_LINKED.labels(outcome=outcome.value).inc()
    logger.info(f"Chat {chat_id} linked to account {account_id} ({outcome.value})")
    return LinkResult(outcome, link=link)
