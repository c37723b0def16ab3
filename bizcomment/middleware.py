import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Per-request context variable
# ---------------------------------------------------------------------------

query_count_var: ContextVar[int] = ContextVar("query_count", default=0)


def increment_query_count() -> None:
    query_count_var.set(query_count_var.get() + 1)


def install_query_counter(engine) -> None:
    """
    Register a ``before_cursor_execute`` listener on *engine* so every SQL
    statement issued while serving a request bumps ``query_count_var``.

    Statements issued from fan-out tasks are counted too: ``asyncio`` tasks
    copy the context of the request at creation time, and each task
    increments its own copy, so the request-level number only reflects
    statements executed on the request's own task.
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _count_query(conn, cursor, statement, parameters, context, executemany):
        increment_query_count()


# ---------------------------------------------------------------------------
# Middleware (pure ASGI, keeps ContextVar mutations visible to the wrapper)
# ---------------------------------------------------------------------------

class TimingMiddleware:
    """
    Pure ASGI middleware that stamps diagnostic headers on every HTTP
    response and writes one access log line per request:

    - ``X-Response-Time-Ms``: wall-clock time until the response started.
    - ``X-Query-Count``: SQL statements executed on the request task.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        query_count_var.set(0)
        start = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                headers = list(message.get("headers", []))
                headers.append((b"x-response-time-ms", str(duration_ms).encode()))
                headers.append((b"x-query-count", str(query_count_var.get()).encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            logger.info(
                "%s %s status=%s duration_ms=%.2f queries=%d",
                scope.get("method"),
                scope.get("path"),
                status_code,
                (time.perf_counter() - start) * 1000,
                query_count_var.get(),
            )
