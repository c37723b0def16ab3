from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from bizcomment.background import background_tasks
from bizcomment.cache import cache
from bizcomment.config import settings
from bizcomment.database import async_session
from bizcomment.events import RedisStreamProducer
from bizcomment.logging_config import setup_logging
from bizcomment.middleware import TimingMiddleware
from bizcomment.routers import comments, metrics
from bizcomment.services.audience import AudienceResolver, http_owner_lookups
from bizcomment.services.comment_repository import CommentRepository
from bizcomment.services.comment_service import CommentService


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging(settings)
    await cache.connect()  # non-fatal: a dead Redis only disables the shortcut
    http_client = httpx.AsyncClient(timeout=settings.OWNER_LOOKUP_TIMEOUT)
    app.state.comment_service = CommentService(
        repo=CommentRepository(async_session, cache, background_tasks),
        audience=AudienceResolver(http_owner_lookups(http_client, settings), async_session),
        producer=RedisStreamProducer(cache.client, settings.FEED_EVENT_STREAM),
        tasks=background_tasks,
    )
    yield
    # Shutdown
    await background_tasks.drain()
    await http_client.aclose()
    await cache.disconnect()


app = FastAPI(
    title="Business Object Comments",
    description="Threaded comments on answers and evaluations with cached per-object counts",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)

# Routers
app.include_router(comments.router)
app.include_router(metrics.router)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
