# ===============================================================
# db.py — Central async SQLAlchemy setup
# ===============================================================
import logging
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
)
from sqlalchemy import text

# Import Base and models cleanly so metadata is fully populated
from base import Base
import models  # noqa: F401
from config import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)


# -------------------------------------------------
# Database URL setup
# -------------------------------------------------
def normalize_database_url(url: str) -> str:
    """Ensure the asyncpg driver is used for PostgreSQL URLs."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://") and "+asyncpg" not in url:
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


# -------------------------------------------------
# Engine & Async Session Factory
# -------------------------------------------------
engine = create_async_engine(
    normalize_database_url(DATABASE_URL),
    echo=SQL_ECHO,
    pool_pre_ping=True,     # checks if connection is alive
    pool_recycle=1800,      # recycle connections every 30 mins
)

# This is the async session factory the whole app should import
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


# -------------------------------------------------
# FastAPI Dependencies
# -------------------------------------------------
async def get_session() -> AsyncSession:
    """FastAPI database session dependency."""
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def get_async_session():
    """Use in background tasks or outside FastAPI context."""
    async with AsyncSessionLocal() as session:
        yield session


# -------------------------------------------------
# Database Initialization (development only)
# -------------------------------------------------
async def init_db():
    """Create tables manually; production uses migrations/init_quiz_schema_v1.py."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Database initialized (development use only)")


# -------------------------------------------------
# Health Check Utility
# -------------------------------------------------
async def check_connection() -> bool:
    """Quick check if DB is reachable."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False
