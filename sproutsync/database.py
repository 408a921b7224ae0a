"""SproutSync — Database Engine.

Holds the sync state and run history tables. Falls back to a local SQLite
file when no DATABASE_URL is configured.
"""

from typing import Optional, Tuple

from sqlalchemy import text
from sqlmodel import SQLModel, create_engine

from sproutsync.config import settings
from sproutsync.core.logging import get_logger

logger = get_logger("database")

db_url = settings.effective_database_url


def _mask_url(url: str) -> str:
    """Hide the password in a DB URL for logging."""
    if "@" not in url:
        return url
    credentials, host = url.split("@", 1)
    scheme, _, userinfo = credentials.partition("//")
    if ":" not in userinfo:
        return url
    user = userinfo.split(":", 1)[0]
    return f"{scheme}//{user}:****@{host}"


def build_engine(url: str):
    """Engine with SQLite thread settings or a pre-pinged Postgres pool."""
    if url.startswith("sqlite"):
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=300,
    )


backend = "sqlite" if db_url.startswith("sqlite") else "postgresql"
logger.info(f"📦 Database backend: {backend} ({_mask_url(db_url)})")
engine = build_engine(db_url)


def check_connection(bind=None) -> Tuple[bool, Optional[str]]:
    """Run SELECT 1; returns (ok, error message)."""
    try:
        with (bind or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"❌ Database connection check failed: {e}")
        return False, str(e)
    return True, None


def init_db(bind=None) -> None:
    """Create the sync state and run history tables."""
    # Registers the table models on SQLModel.metadata
    from sproutsync.models import sync_models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    logger.info("✅ Database tables ready")
