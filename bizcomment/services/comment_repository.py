"""
Comment repository — composes the comment store and the count cache.

Design notes
------------
- Count reads are cache-aside.  A miss is answered from the database at
  once and the cache is refilled by a detached task with its own short
  deadline.  A Redis *error* (as opposed to a miss) is logged and the
  database answers directly: an outage bypasses the cache, it is never
  retried.
- Writes go to the database first; the cache is then nudged with
  ``incr_if_present`` / ``decr_if_present``.  A failed nudge is logged and
  left to the TTL to repair.
- List pages fan out one reply-preview query per top-level comment.  Each
  lookup runs on its own session and turns its own failure into an empty
  preview list, so one bad lookup never fails the page.
"""
import asyncio
import logging

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bizcomment.background import BackgroundTasks, background_tasks
from bizcomment.cache import CommentCountCache, cache
from bizcomment.config import settings
from bizcomment.models import Comment
from bizcomment.schemas import Biz, CommentResponse
from bizcomment.services import comment_store

logger = logging.getLogger(__name__)


def to_response(comment: Comment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        commentator_id=comment.commentator_id,
        biz=Biz(comment.biz),
        biz_id=comment.biz_id,
        content=comment.content,
        parent_id=comment.parent_id,
        root_id=comment.root_id,
        reply_to_uid=comment.reply_to_uid,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


class CommentRepository:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        count_cache: CommentCountCache = cache,
        tasks: BackgroundTasks = background_tasks,
        count_strategy: str | None = None,
        preview_limit: int | None = None,
    ) -> None:
        bind = session_factory.kw.get("bind")
        if bind is not None:
            comment_store.check_dialect(bind.dialect.name)
        self._sessions = session_factory
        self._cache = count_cache
        self._tasks = tasks
        strategy = count_strategy or settings.COMMENT_COUNT_STRATEGY
        if strategy == "counter":
            self._count_from_db = comment_store.count_by_object
        elif strategy == "rows":
            self._count_from_db = comment_store.count_rows_by_object
        else:
            raise ValueError(f"unknown comment count strategy: {strategy!r}")
        self._preview_limit = preview_limit if preview_limit is not None else settings.REPLY_PREVIEW_LIMIT

    # ------------------------------------------------------------------
    # Counts
    # ------------------------------------------------------------------

    async def get_count(self, biz: Biz, biz_id: int) -> int:
        try:
            cached = await self._cache.get_count(biz, biz_id)
        except redis.RedisError as exc:
            # Downgrade: skip the cache entirely for this read.
            logger.error(
                "comment count cache read failed, reading database: biz=%s biz_id=%s error=%s",
                biz.name, biz_id, exc,
            )
            return await self._count(biz, biz_id)
        if cached is not None:
            return cached

        count = await self._count(biz, biz_id)
        self._tasks.submit(
            lambda: self._backfill_count(biz, biz_id, count),
            timeout=settings.CACHE_BACKFILL_TIMEOUT,
            name=f"backfill-count-{int(biz)}-{biz_id}",
        )
        return count

    async def _count(self, biz: Biz, biz_id: int) -> int:
        async with self._sessions() as db:
            return await self._count_from_db(db, biz, biz_id)

    async def _backfill_count(self, biz: Biz, biz_id: int, count: int) -> None:
        try:
            await self._cache.set_count(biz, biz_id, count)
        except redis.RedisError as exc:
            logger.error(
                "comment count cache backfill failed: biz=%s biz_id=%s count=%d error=%s",
                biz.name, biz_id, count, exc,
            )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_comment(self, comment: Comment) -> CommentResponse:
        async with self._sessions() as db:
            await comment_store.insert_comment(db, comment)
            created = to_response(comment)

        try:
            await self._cache.incr_if_present(comment.biz, comment.biz_id)
        except redis.RedisError as exc:
            logger.error(
                "comment count cache increment failed: biz=%s biz_id=%s comment_id=%s error=%s",
                created.biz.name, created.biz_id, created.id, exc,
            )
        return created

    async def delete_comment(self, comment_id: int, uid: int) -> None:
        async with self._sessions() as db:
            deleted = await comment_store.delete_comment(db, comment_id, uid)
            biz, biz_id = Biz(deleted.biz), deleted.biz_id

        try:
            await self._cache.decr_if_present(biz, biz_id)
        except redis.RedisError as exc:
            logger.error(
                "comment count cache decrement failed: biz=%s biz_id=%s comment_id=%s error=%s",
                biz.name, biz_id, comment_id, exc,
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_by_id(self, comment_id: int) -> CommentResponse:
        async with self._sessions() as db:
            return to_response(await comment_store.find_by_id(db, comment_id))

    async def list_top_level(
        self,
        biz: Biz,
        biz_id: int,
        cur_comment_id: int,
        limit: int,
        degraded: bool = False,
    ) -> list[CommentResponse]:
        """
        Return one page of top-level comments, each with up to
        ``preview_limit`` of its newest direct replies attached.

        In degraded mode the preview fan-out is skipped and every comment
        comes back with an empty ``children`` list.
        """
        async with self._sessions() as db:
            rows = await comment_store.find_top_level(db, biz, biz_id, cur_comment_id, limit)
            page = [to_response(row) for row in rows]

        if degraded or not page:
            return page

        previews = await asyncio.gather(*(self._reply_preview(c.id) for c in page))
        by_id = {c.id: c for c in page}
        for parent_id, replies in zip((c.id for c in page), previews):
            by_id[parent_id].children = replies
        return page

    async def _reply_preview(self, parent_id: int) -> list[CommentResponse]:
        try:
            async with self._sessions() as db:
                rows = await comment_store.find_replies_by_parent(db, parent_id, 0, self._preview_limit)
                return [to_response(row) for row in rows]
        except Exception:
            logger.exception("reply preview lookup failed, returning none: parent_id=%s", parent_id)
            return []

    async def list_replies(self, root_id: int, cur_comment_id: int, limit: int) -> list[CommentResponse]:
        async with self._sessions() as db:
            rows = await comment_store.find_replies_by_root(db, root_id, cur_comment_id, limit)
            return [to_response(row) for row in rows]

    async def totals(self) -> tuple[int, int]:
        async with self._sessions() as db:
            return await comment_store.totals(db)
