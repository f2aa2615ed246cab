import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from charmcircle.api.v1.api import api_router
from charmcircle.core.config import settings
from charmcircle.core.exception_handlers import circle_error_handler, http_exception_handler, validation_exception_handler
from charmcircle.core.rate_limit import limiter
from charmcircle.db.session import init_db
from charmcircle.rosca.errors import CircleError
from charmcircle.schemas.response import HTTPErrorResponse, ValidationErrorResponse

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on startup
    await init_db()

    logger.info("Application running at http://localhost:8000")
    logger.info("Swagger UI: http://localhost:8000/docs")
    yield

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
    responses={
        400: {"model": ValidationErrorResponse, "description": "Validation Error"},
        404: {"model": HTTPErrorResponse, "description": "Not Found"},
        409: {"model": HTTPErrorResponse, "description": "Conflict"},
    }
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(CircleError, circle_error_handler)

# Set all CORS enabled origins
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)
