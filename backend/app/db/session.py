"""
Freight database wiring.

One async engine per process. Mutating freight operations commit their
conditional write and their side writes separately, so sessions never
autoflush and keep loaded rows readable after commit; rows that must be
current are re-read with `freight_store.get_freight(..., fresh=True)`.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from backend.app.core.config import settings


Base = declarative_base()


def build_engine(url: str = settings.database_url) -> AsyncEngine:
    """Engine for `url`; pool sizing only applies to server databases."""
    options = {"echo": settings.db_echo}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
    return create_async_engine(url, **options)


engine = build_engine()

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create missing freight tables (models must be imported first)."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """Request-scoped session dependency."""
    async with AsyncSessionLocal() as session:
        yield session
