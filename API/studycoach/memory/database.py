from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from studycoach.core.settings import settings
from studycoach.models.base import Base
from studycoach.models import entities  # noqa: F401  (registers tables on Base.metadata)

engine = create_async_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncSession:
    async with SessionLocal() as session:
        yield session


async def initialize_database() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
