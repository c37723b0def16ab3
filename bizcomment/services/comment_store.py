"""
Comment store — durable persistence for comments and their per-object
counter rows.

Design notes
------------
- Mutations own their transaction (``async with db.begin()``), so the
  session handed in must be idle.  The comment row and the
  ``biz_comment_counts`` row are written in the same transaction: no
  reader ever sees one without the other.
- The counter upsert uses the dialect's native
  ``INSERT ... ON CONFLICT (biz, biz_id) DO UPDATE`` (``ON DUPLICATE KEY
  UPDATE`` on MySQL) so the first comment on an object cannot race
  another first comment into a duplicate row.
- Top-level comments are paged newest-first with an exclusive id cursor;
  reply streams are paged oldest-first with an exclusive id cursor.  Both
  rely on ids growing monotonically, not on timestamps being distinct.
- Reads return ORM instances; callers convert at their boundary.
"""
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from bizcomment.errors import CommentNotFound, PermissionDenied, UnsupportedDialect
from bizcomment.models import BizCommentCount, Comment
from bizcomment.schemas import MAX_COMMENT_ID

SUPPORTED_DIALECTS = ("postgresql", "sqlite", "mysql")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def check_dialect(dialect_name: str) -> None:
    """Raise ``UnsupportedDialect`` unless the counter upsert can run there."""
    if dialect_name not in SUPPORTED_DIALECTS:
        raise UnsupportedDialect(dialect_name)


def _count_upsert(dialect_name: str, biz: int, biz_id: int, now: datetime):
    """Build the insert-or-increment statement for the counter row."""
    check_dialect(dialect_name)
    values = dict(biz=biz, biz_id=biz_id, count=1, created_at=now, updated_at=now)
    if dialect_name == "mysql":
        stmt = mysql_insert(BizCommentCount).values(**values)
        return stmt.on_duplicate_key_update(count=BizCommentCount.count + 1, updated_at=now)

    insert = pg_insert if dialect_name == "postgresql" else sqlite_insert
    stmt = insert(BizCommentCount).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=["biz", "biz_id"],
        set_={"count": BizCommentCount.count + 1, "updated_at": now},
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def insert_comment(db: AsyncSession, comment: Comment) -> int:
    """
    Persist *comment* and bump the counter of its (biz, biz_id) by one.

    Returns the id assigned by the database.  Both writes commit together
    or the whole transaction rolls back and the error propagates.
    """
    now = _now()
    comment.created_at = now
    comment.updated_at = now

    dialect_name = db.get_bind().dialect.name
    async with db.begin():
        db.add(comment)
        await db.flush()
        await db.execute(_count_upsert(dialect_name, comment.biz, comment.biz_id, now))
    return comment.id


async def delete_comment(db: AsyncSession, comment_id: int, uid: int) -> Comment:
    """
    Delete *comment_id* on behalf of *uid* and decrement its object counter.

    Raises ``CommentNotFound`` when the comment is absent (including when
    a concurrent delete won the race) and ``PermissionDenied`` when *uid*
    did not write it; neither case mutates anything.  Returns the deleted
    row so the caller knows which counter it belonged to.
    """
    async with db.begin():
        comment = await db.get(Comment, comment_id)
        if comment is None:
            raise CommentNotFound(comment_id)
        if comment.commentator_id != uid:
            raise PermissionDenied(f"user {uid} may not delete comment {comment_id}")

        result = await db.execute(
            delete(Comment)
            .where(Comment.id == comment_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CommentNotFound(comment_id)

        await db.execute(
            update(BizCommentCount)
            .where(
                BizCommentCount.biz == comment.biz,
                BizCommentCount.biz_id == comment.biz_id,
            )
            .values(count=BizCommentCount.count - 1, updated_at=_now())
        )
    return comment


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def find_by_id(db: AsyncSession, comment_id: int) -> Comment:
    q = select(Comment).where(Comment.id == comment_id)
    comment = (await db.execute(q)).scalar_one_or_none()
    if comment is None:
        raise CommentNotFound(comment_id)
    return comment


async def find_top_level(
    db: AsyncSession,
    biz: int,
    biz_id: int,
    before_id: int = MAX_COMMENT_ID,
    limit: int = 10,
) -> list[Comment]:
    """Top-level comments of one object with ``id < before_id``, most recently updated first."""
    q = (
        select(Comment)
        .where(
            Comment.biz == biz,
            Comment.biz_id == biz_id,
            Comment.parent_id.is_(None),
            Comment.id < before_id,
        )
        .order_by(Comment.updated_at.desc(), Comment.id.desc())
        .limit(limit)
    )
    return list((await db.execute(q)).scalars().all())


async def find_replies_by_parent(
    db: AsyncSession,
    parent_id: int,
    offset: int = 0,
    limit: int = 3,
) -> list[Comment]:
    """Direct children of *parent_id*, newest first."""
    q = (
        select(Comment)
        .where(Comment.parent_id == parent_id)
        .order_by(Comment.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list((await db.execute(q)).scalars().all())


async def find_replies_by_root(
    db: AsyncSession,
    root_id: int,
    after_id: int = 0,
    limit: int = 10,
) -> list[Comment]:
    """Every descendant of *root_id* with ``id > after_id``, oldest first."""
    q = (
        select(Comment)
        .where(Comment.root_id == root_id, Comment.id > after_id)
        .order_by(Comment.id.asc())
        .limit(limit)
    )
    return list((await db.execute(q)).scalars().all())


async def count_by_object(db: AsyncSession, biz: int, biz_id: int) -> int:
    """Materialized comment count; 0 when the object never had a comment."""
    q = select(BizCommentCount.count).where(
        BizCommentCount.biz == biz,
        BizCommentCount.biz_id == biz_id,
    )
    count = (await db.execute(q)).scalar_one_or_none()
    return count or 0


async def count_rows_by_object(db: AsyncSession, biz: int, biz_id: int) -> int:
    """Live row count; the alternative to ``count_by_object``."""
    q = (
        select(func.count())
        .select_from(Comment)
        .where(Comment.biz == biz, Comment.biz_id == biz_id)
    )
    return (await db.execute(q)).scalar_one()


async def totals(db: AsyncSession) -> tuple[int, int]:
    """Return (stored comments, objects with a counter row)."""
    comments = (await db.execute(select(func.count()).select_from(Comment))).scalar_one()
    objects = (await db.execute(select(func.count()).select_from(BizCommentCount))).scalar_one()
    return comments, objects
