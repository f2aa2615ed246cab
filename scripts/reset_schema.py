import asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel
from charmcircle.core.config import settings
from charmcircle.db.session import init_db

async def drop_all():
    engine = create_async_engine(str(settings.DATABASE_URL))
    # init_db registers the tables on the metadata before anything is dropped
    await init_db(engine)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await init_db(engine)
    await engine.dispose()
    print("Schema reset.")

if __name__ == "__main__":
    asyncio.run(drop_all())
