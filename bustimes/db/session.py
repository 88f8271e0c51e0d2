from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bustimes.config import settings


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.endswith("://"))


def create_engine(url: str) -> AsyncEngine:
    if _is_memory_sqlite(url):
        # Every session must see the same in-memory database
        return create_async_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(url, pool_pre_ping=True)


engine = create_engine(settings.database_url)
async_session = async_sessionmaker(engine, expire_on_commit=False)
