"""
Telegram Bot API client.
Handlers only see the ``ChatTransport`` protocol so they can be driven by fakes.
"""

from typing import Any, Dict, List, Optional, Protocol

import httpx

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings
from shared.utils.errors import TransportError, classify_exception

logger = get_logger("bot.transport")


class ChatTransport(Protocol):
    async def send_text(self, chat_id: int, text: str) -> None: ...

    async def send_image(self, chat_id: int, image_url: str, caption: str) -> None: ...


class TelegramTransport:
    """Minimal Bot API client over httpx."""

    def __init__(
        self,
        token: str,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self._base = f"{api_base or settings.telegram.api_base}/bot{token}"
        self._timeout = timeout if timeout is not None else settings.service.http_timeout
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=transport)

    async def _call(self, method: str, payload: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        try:
            response = await self._client.post(
                f"{self._base}/{method}",
                json=payload or {},
                timeout=timeout or self._timeout,
            )
        except httpx.HTTPError as e:
            raise classify_exception(e, context=f"telegram-{method}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("ok", False):
            code = body.get("error_code", response.status_code)
            description = body.get("description", response.reason_phrase)
            raise TransportError(
                f"Telegram {method} failed: {description}",
                code=code,
                context=f"telegram-{method}",
            )
        return body.get("result")

    async def send_text(self, chat_id: int, text: str) -> None:
        await self._call("sendMessage", {"chat_id": chat_id, "text": text})

    async def send_image(self, chat_id: int, image_url: str, caption: str) -> None:
        await self._call("sendPhoto", {"chat_id": chat_id, "photo": image_url, "caption": caption})

    async def get_updates(self, offset: Optional[int] = None, timeout: int = 30) -> List[Dict[str, Any]]:
        """Long-poll for new updates starting at ``offset``."""
        payload: Dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message"]}
        if offset is not None:
            payload["offset"] = offset
        return await self._call("getUpdates", payload, timeout=timeout + self._timeout) or []

    async def get_me(self) -> Dict[str, Any]:
        return await self._call("getMe")

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Telegram client closed")
