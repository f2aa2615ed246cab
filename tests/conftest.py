
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from charmcircle.core.config import settings
from charmcircle.core.exception_handlers import circle_error_handler, http_exception_handler, validation_exception_handler
from charmcircle.api.v1.api import api_router
from charmcircle.db.session import get_db, init_db
from charmcircle.core.rate_limit import limiter
from charmcircle.rosca.errors import CircleError

# Disable rate limiting globally for tests
limiter.enabled = False

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

@pytest.fixture
async def engine():
    # StaticPool keeps the single in-memory connection alive for the whole test
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool, connect_args={"check_same_thread": False})
    await init_db(engine)
    yield engine
    await engine.dispose()

@pytest.fixture
async def session(engine):
    TestingSessionLocal = async_sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    async with TestingSessionLocal() as session:
        yield session

@pytest.fixture
async def client(session):
    # Create a fresh app for each test to avoid middleware/loop issues
    new_app = FastAPI()
    new_app.include_router(api_router, prefix=settings.API_V1_STR)
    new_app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    new_app.add_exception_handler(RequestValidationError, validation_exception_handler)
    new_app.add_exception_handler(CircleError, circle_error_handler)

    async def override_get_db():
        yield session

    new_app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=new_app), base_url="http://test") as c:
        yield c
