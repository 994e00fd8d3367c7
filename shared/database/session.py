from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .base import Base
from .models.article import Article
from .models.chat_link import ChatLink
from .models.user_article import UserArticle
from shared.config.settings import get_database_url
from shared.app_logging.logger import get_logger

logger = get_logger("database")

SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)

# Collection names used by the store, mapped to their ORM models
COLLECTIONS = {
    "articles": Article,
    "user_articles": UserArticle,
    "chat_links": ChatLink,
}


@lru_cache()
def get_engine() -> Engine:
    """Create the engine for the configured database once per process."""
    url = get_database_url()
    logger.info(f"▶︎ Connecting to database: {url.split('@')[1] if '@' in url else url}")

    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def get_session_factory() -> sessionmaker:
    """SessionLocal bound to the configured engine."""
    if SessionLocal.kw.get("bind") is None:
        SessionLocal.configure(bind=get_engine())
    return SessionLocal


def init_db(engine: Engine = None):
    """Initialize database tables."""
    try:
        Base.metadata.create_all(bind=engine or get_engine())
        logger.info("✅ Database initialized successfully")
    except Exception as e:
        logger.error(f"❌ Failed to initialize database: {e}")
        raise

