from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
import logging

from journalbook.settings.config import settings

logger = logging.getLogger(__name__)

raw_url = settings.DATABASE_URL
if raw_url.startswith("postgresql+psycopg"):
    # if someone provided a sync URL by mistake, upgrade it to async
    DATABASE_URL = raw_url.replace("postgresql+psycopg2", "postgresql+asyncpg").replace("postgresql+psycopg", "postgresql+asyncpg")
elif raw_url.startswith("postgresql://") or raw_url.startswith("postgres://"):
    DATABASE_URL = "postgresql+asyncpg://" + raw_url.split("://", 1)[1]
else:
    DATABASE_URL = raw_url


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    kw = {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,
    }
    if settings.DB_SSL:
        kw["connect_args"] = {"ssl": "require"}
    return kw


engine = create_async_engine(DATABASE_URL, echo=False, future=True, **_engine_kwargs(DATABASE_URL))
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
Base = declarative_base()

async def get_db():
    async with async_session_maker() as session:
        yield session

def get_session_maker() -> async_sessionmaker:
    """Factory for work that needs sessions outliving a single request."""
    return async_session_maker

async def init_db():
    if settings.DB_CREATE_ALL:
        from journalbook import models  # noqa: F401  registers tables on Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

async def ping_db(session: AsyncSession) -> bool:
    try:
        await session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("Database ping failed", exc_info=True)
        return False
