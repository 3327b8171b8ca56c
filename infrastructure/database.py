"""
异步数据库引擎与会话工厂
"""
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from core.config import settings
from infrastructure.models import Base


_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def async_database_url(database_url: str) -> str:
    """把同步驱动的 URL 换成异步驱动；已指定驱动的原样返回"""
    url = make_url(database_url)
    if "+" in url.drivername:
        return database_url
    try:
        return url.set(drivername=_ASYNC_DRIVERS[url.drivername]).render_as_string(hide_password=False)
    except KeyError:
        raise ValueError(f"Unsupported database driver: {url.drivername}") from None


engine = create_async_engine(
    async_database_url(settings.database.url),
    echo=False,
    pool_pre_ping=not settings.database.url.startswith("sqlite"),
)

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_tables() -> None:
    """仅开发环境使用，生产走 alembic 迁移"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
