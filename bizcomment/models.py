from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from bizcomment.database import Base

# SQLite only auto-increments INTEGER PRIMARY KEY columns.
IdType = BigInteger().with_variant(Integer, "sqlite")


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    __table_args__ = (
        # Top-level feed for a business object
        Index("ix_comments_biz_biz_id", "biz", "biz_id"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    commentator_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    biz: Mapped[int] = mapped_column(Integer, nullable=False)
    biz_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    # Null for top-level comments. Plain indexed columns rather than foreign
    # keys: deleting a comment must never remove other rows behind the
    # counter's back.
    parent_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    root_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)

    reply_to_uid: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# BizCommentCount
# ---------------------------------------------------------------------------
class BizCommentCount(Base):
    """Materialized number of comments attached to one (biz, biz_id)."""

    __tablename__ = "biz_comment_counts"

    __table_args__ = (
        UniqueConstraint("biz", "biz_id", name="uq_biz_comment_counts_biz_biz_id"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    biz: Mapped[int] = mapped_column(Integer, nullable=False)
    biz_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
