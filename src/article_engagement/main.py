import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from article_engagement.api import articles, auth
from article_engagement.config import settings
from article_engagement.db.queries import get_article_count
from article_engagement.db.session import get_async_session
from article_engagement.errors import EngagementError, StoreFailure
from article_engagement.models.schemas import HealthResponse

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

logger = logging.getLogger(__name__)

app = FastAPI(title="Article Engagement", version="0.1.0", description="View and like tracking for published articles")


def _get_cors_origins() -> list[str]:
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_origin_regex=r"^http://localhost:\d+$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(articles.router)
app.include_router(auth.router)


@app.exception_handler(EngagementError)
async def engagement_error_handler(request: Request, exc: EngagementError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "code": exc.code})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Unhandled store error on %s %s", request.method, request.url.path, exc_info=exc)
    failure = StoreFailure()
    return JSONResponse(status_code=failure.status_code, content={"error": failure.message, "code": failure.code})


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health(session: AsyncSession = Depends(get_async_session)):
    return HealthResponse(status="ok", article_count=await get_article_count(session))
