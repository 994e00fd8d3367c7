from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field


class InboundMessage(BaseModel):
    chat_id: int = Field(..., description="Telegram chat the message came from")
    text: str = Field("", description="Message text, empty for non-text messages")
    username: Optional[str] = Field(None, description="Sender's Telegram username")
    update_id: Optional[int] = Field(None, description="Bot API update offset")

    @classmethod
    def from_update(cls, update: Mapping[str, Any]) -> Optional["InboundMessage"]:
        """Build a message from a Bot API update; ``None`` if it carries no chat message."""
        message = update.get("message") or update.get("edited_message")
        if not message or "chat" not in message:
            return None
        sender = message.get("from") or {}
        return cls(
            chat_id=message["chat"]["id"],
            text=message.get("text") or message.get("caption") or "",
            username=sender.get("username"),
            update_id=update.get("update_id"),
        )
