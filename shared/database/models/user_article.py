from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid

from ..base import Base
from .article import utcnow


class UserArticle(Base):
    """An account's saved copy of an article."""

    __tablename__ = 'user_articles'

    user_id = Column(String, primary_key=True)
    article_id = Column(Uuid, ForeignKey('articles.id', ondelete='CASCADE'), primary_key=True)
    added_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    is_read = Column(Boolean, nullable=False, default=False)
