import uuid

from sqlalchemy import BigInteger, Column, DateTime, String, Uuid

from ..base import Base
from .article import utcnow


class ChatLink(Base):
    """Binds a chat session to an account."""

    __tablename__ = 'chat_links'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(String, nullable=False, index=True)
    chat_id = Column(BigInteger, unique=True, nullable=False, index=True)
    chat_username = Column(String, nullable=True)
    linked_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
