# guincho/core/database.py
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from guincho.core.config import get_database_url


def build_engine(db_url: str) -> AsyncEngine:
    # Configure engine based on database type
    if "sqlite" in db_url:
        return create_async_engine(
            db_url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_async_engine(
        db_url,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


engine = build_engine(get_database_url())

SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

class Base(DeclarativeBase):
    pass

async def get_db():
    async with SessionLocal() as session:
        yield session

async def init_models(bind: AsyncEngine = engine) -> None:
    import guincho.models  # noqa: F401  registers tables on Base.metadata

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
