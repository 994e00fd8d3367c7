import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Text, Uuid
from sqlalchemy.dialects.postgresql import ARRAY

from ..base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Native text arrays on PostgreSQL, JSON lists elsewhere
TextList = ARRAY(Text).with_variant(JSON(), "sqlite")


class Article(Base):
    __tablename__ = 'articles'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    url = Column(Text, unique=True, nullable=False, index=True)
    title = Column(Text, nullable=True)
    language = Column(Text, nullable=True)
    authors = Column(TextList, nullable=True)
    topics = Column(TextList, nullable=True)
    featured_image = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
