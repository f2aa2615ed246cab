from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker
from sqlmodel import SQLModel
from charmcircle.core.config import settings

engine = create_async_engine(str(settings.DATABASE_URL))
AsyncSessionLocal = async_sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Create the circle tables if they do not exist yet.
    """
    # Registers the tables on SQLModel.metadata
    from charmcircle.models.circle import Circle, CircleTransition  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
