"""comments and per-object comment counts

Create the comment store:
- comments (flat rows; parent_id / root_id describe the thread shape)
- biz_comment_counts (one materialized counter per (biz, biz_id))

Revision ID: 0001_comments_and_counts
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_comments_and_counts"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "comments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("commentator_id", sa.BigInteger(), nullable=False),
        sa.Column("biz", sa.Integer(), nullable=False),
        sa.Column("biz_id", sa.BigInteger(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        # No foreign keys: deleting a comment never cascades to its replies.
        sa.Column("parent_id", sa.BigInteger(), nullable=True),
        sa.Column("root_id", sa.BigInteger(), nullable=True),
        sa.Column("reply_to_uid", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_comments_biz_biz_id", "comments", ["biz", "biz_id"])
    op.create_index("ix_comments_commentator_id", "comments", ["commentator_id"])
    op.create_index("ix_comments_parent_id", "comments", ["parent_id"])
    op.create_index("ix_comments_root_id", "comments", ["root_id"])

    op.create_table(
        "biz_comment_counts",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("biz", sa.Integer(), nullable=False),
        sa.Column("biz_id", sa.BigInteger(), nullable=False),
        sa.Column("count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("biz", "biz_id", name="uq_biz_comment_counts_biz_biz_id"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("biz_comment_counts")
    op.drop_index("ix_comments_root_id", table_name="comments")
    op.drop_index("ix_comments_parent_id", table_name="comments")
    op.drop_index("ix_comments_commentator_id", table_name="comments")
    op.drop_index("ix_comments_biz_biz_id", table_name="comments")
    op.drop_table("comments")
