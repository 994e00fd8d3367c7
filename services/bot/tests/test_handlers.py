import pytest

from services.bot.app import messages
from services.bot.app.crud import find_or_link_account
from services.bot.app.handlers import BotContext, dispatch
from services.bot.app.rate_limiter import RateLimiter
from services.bot.app.schema import InboundMessage
from shared.schemas.metadata import MetadataRecord
from shared.utils.errors import NetworkError, TransportError

CHAT_ID = 4242


class FakeTransport:
    def __init__(self, fail_images=False, fail_text=False):
        self.sent = []
        self.fail_images = fail_images
        self.fail_text = fail_text

    async def send_text(self, chat_id, text):
        if self.fail_text:
            raise TransportError("Forbidden: bot was blocked by the user", code=403)
        self.sent.append(("text", chat_id, text))

    async def send_image(self, chat_id, image_url, caption):
        if self.fail_images:
            raise TransportError("Bad Request: wrong file identifier", code=400)
        self.sent.append(("image", chat_id, image_url, caption))

    @property
    def texts(self):
        return [item[-1] for item in self.sent]


class FakeFetcher:
    def __init__(self, record=None, error=None):
        self.record = record or MetadataRecord(title="A title", language="en")
        self.error = error
        self.urls = []

    async def fetch_and_extract(self, url, on_error=None):
        self.urls.append(url)
        if self.error is not None:
            if on_error:
                on_error(self.error)
            return MetadataRecord.empty()
        return self.record


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def ctx(store, transport, fetcher):
    return BotContext(store=store, transport=transport, fetcher=fetcher, rate_limiter=RateLimiter(limit=2))


@pytest.fixture
def linked(store):
    find_or_link_account(store, CHAT_ID, "acc-1", "alice")


def msg(text, chat_id=CHAT_ID):
    return InboundMessage(chat_id=chat_id, text=text, username="alice")


@pytest.mark.asyncio
async def test_start_without_account_greets(ctx, transport):
    await dispatch(ctx, msg("/start"))
    assert transport.texts == [messages.GREETING]


@pytest.mark.asyncio
async def test_start_links_account(ctx, transport, store):
    await dispatch(ctx, msg("/start acc-1"))
    await dispatch(ctx, msg("/start acc-1"))

    assert transport.texts == [messages.NEWLY_LINKED, messages.ALREADY_LINKED]
    assert store.find_one("chat_links", {"chat_id": CHAT_ID})["account_id"] == "acc-1"


@pytest.mark.asyncio
async def test_start_relinks_account(ctx, transport, store):
    await dispatch(ctx, msg("/start acc-1", chat_id=1))
    await dispatch(ctx, msg("/start acc-1", chat_id=2))

    assert transport.texts[-1] == messages.RELINKED
    assert store.find_one("chat_links", {"chat_id": 1}) is None


@pytest.mark.asyncio
async def test_start_with_invalid_account(ctx, transport, store):
    await dispatch(ctx, msg("/start not_valid!"))

    assert "Invalid user ID" in transport.texts[0]
    assert store.find_many("chat_links", {}) == []


@pytest.mark.asyncio
async def test_unlinked_chat_is_told_to_link(ctx, transport, fetcher):
    await dispatch(ctx, msg("https://example.com/a"))

    assert transport.texts == [messages.NOT_LINKED]
    assert fetcher.urls == []


@pytest.mark.asyncio
async def test_message_without_link(ctx, transport, linked):
    await dispatch(ctx, msg("hello there"))
    assert transport.texts == [messages.SEND_A_LINK]


@pytest.mark.asyncio
async def test_link_is_saved_and_confirmed(ctx, transport, fetcher, store, linked):
    await dispatch(ctx, msg("look at this https://example.com/a, it's good"))

    assert fetcher.urls == ["https://example.com/a"]
    article = store.find_one("articles", {"url": "https://example.com/a"})
    assert article["title"] == "A title"
    assert store.find_one("user_articles", {"user_id": "acc-1", "article_id": article["id"]}) is not None
    assert transport.sent == [
        ("text", CHAT_ID, messages.compose_confirmation(fetcher.record, "https://example.com/a")),
    ]


@pytest.mark.asyncio
async def test_featured_image_sent_as_caption(ctx, transport, fetcher, linked):
    fetcher.record = MetadataRecord(title="Pic", featured_image="https://example.com/cover.jpg")

    await dispatch(ctx, msg("https://example.com/a"))

    kind, _, image_url, caption = transport.sent[0]
    assert (kind, image_url) == ("image", "https://example.com/cover.jpg")
    assert "📝 Title: Pic" in caption


@pytest.mark.asyncio
async def test_image_failure_falls_back_to_text(store, fetcher, linked):
    transport = FakeTransport(fail_images=True)
    fetcher.record = MetadataRecord(title="Pic", featured_image="https://example.com/cover.jpg")
    ctx = BotContext(store=store, transport=transport, fetcher=fetcher, rate_limiter=RateLimiter())

    await dispatch(ctx, msg("https://example.com/a"))

    assert transport.sent[0][0] == "text"
    assert "📝 Title: Pic" in transport.sent[0][2]


@pytest.mark.asyncio
async def test_fetch_failure_still_saves_and_reports(ctx, transport, fetcher, store, linked):
    fetcher.error = NetworkError("Timed out", reason="timeout", context="metadata-fetch")

    await dispatch(ctx, msg("https://example.com/slow"))

    assert store.find_one("articles", {"url": "https://example.com/slow"}) is not None
    assert transport.texts == [
        messages.compose_confirmation(MetadataRecord.empty(), "https://example.com/slow"),
        messages.error_message(fetcher.error),
    ]


@pytest.mark.asyncio
async def test_rate_limited_submission(ctx, transport, fetcher, linked):
    for i in range(3):
        await dispatch(ctx, msg(f"https://example.com/{i}"))

    assert len(fetcher.urls) == 2
    assert "You've reached the article limit" in transport.texts[-1]


@pytest.mark.asyncio
async def test_store_failure_sends_category_message(ctx, transport, store, monkeypatch, linked):
    from shared.utils.errors import StoreError

    def broken_find_one(*args, **kwargs):
        raise StoreError("connection lost")

    monkeypatch.setattr(store, "find_one", broken_find_one)
    await dispatch(ctx, msg("https://example.com/a"))

    assert transport.texts == [messages.error_message(StoreError("x"))]


@pytest.mark.asyncio
async def test_blocked_chat_never_raises(store, fetcher):
    ctx = BotContext(
        store=store,
        transport=FakeTransport(fail_text=True),
        fetcher=fetcher,
        rate_limiter=RateLimiter(),
    )
    await dispatch(ctx, msg("/start"))
    await dispatch(ctx, msg("https://example.com/a"))


@pytest.mark.asyncio
async def test_unexpected_handler_error_is_reported(ctx, transport, linked, monkeypatch):
    def explode(identity):
        raise KeyError("boom")

    monkeypatch.setattr(ctx.rate_limiter, "check", explode)
    await dispatch(ctx, msg("https://example.com/a"))

    assert "Unexpected error" in transport.texts[-1]


def test_inbound_message_from_update():
    update = {
        "update_id": 7,
        "message": {"chat": {"id": 99}, "from": {"username": "bob"}, "text": "hi"},
    }
    message = InboundMessage.from_update(update)

    assert (message.chat_id, message.text, message.username, message.update_id) == (99, "hi", "bob", 7)
    assert InboundMessage.from_update({"update_id": 8, "callback_query": {}}) is None
