"""
数据库引擎与会话工厂

仓储每次端口调用自行开启会话与事务，这里只提供共享的 engine 和 sessionmaker。
"""
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.config import DatabaseSettings, settings
from infrastructure.models import Base


# 同步驱动名 -> 异步驱动名
_ASYNC_DRIVERS = {
    "mysql": "mysql+aiomysql",
    "sqlite": "sqlite+aiosqlite",
}


def to_async_url(database_url: str) -> str:
    """未显式指定驱动时换成对应的异步驱动"""
    url = make_url(database_url)
    if "+" in url.drivername:
        return database_url
    try:
        driver = _ASYNC_DRIVERS[url.drivername]
    except KeyError:
        raise ValueError(f"不支持的数据库驱动: {url.drivername}，请在 DATABASE__URL 中指定异步驱动") from None
    return url.set(drivername=driver).render_as_string(hide_password=False)


def _engine_options(async_url: str, cfg: DatabaseSettings) -> dict[str, Any]:
    url = make_url(async_url)
    if url.get_backend_name() != "sqlite":
        return {"pool_size": cfg.pool_size, "max_overflow": cfg.max_overflow, "pool_pre_ping": True}
    if url.database in (None, "", ":memory:"):
        # 内存库只存在于单个连接上，所有会话必须共享它
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {}


def build_engine(cfg: DatabaseSettings) -> AsyncEngine:
    async_url = to_async_url(cfg.url)
    return create_async_engine(async_url, echo=cfg.echo, **_engine_options(async_url, cfg))


engine = build_engine(settings.database)

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_tables() -> None:
    """按 ORM 元数据建表（开发环境与测试使用）"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
