from datetime import datetime
from enum import IntEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

# Ids and user ids live in BIGINT columns.
MIN_ID = -(2**63)
MAX_COMMENT_ID = 2**63 - 1

Int64 = Annotated[int, Field(ge=MIN_ID, le=MAX_COMMENT_ID)]


class Biz(IntEnum):
    """Kind of business object a comment is attached to."""

    UNKNOWN = 0
    EVALUATION = 1
    ANSWER = 2

    @property
    def label(self) -> str:
        """Name used on the wire by the other services, e.g. ``Answer``."""
        return self.name.capitalize()


# --- Comment ---

class CommentBase(BaseModel):
    commentator_id: Int64
    biz: Biz
    biz_id: Int64
    content: str = Field(min_length=1)


class CommentCreate(CommentBase):
    parent_id: int | None = Field(None, gt=0, le=MAX_COMMENT_ID)
    # Accepted for wire compatibility; the stored root is always derived
    # from the parent.
    root_id: Int64 | None = None


class CommentResponse(CommentBase):
    id: int
    parent_id: int | None = None
    root_id: int | None = None
    reply_to_uid: int
    created_at: datetime
    updated_at: datetime
    children: list["CommentResponse"] = []
    model_config = ConfigDict(from_attributes=True)


class CommentCountResponse(BaseModel):
    biz: Biz
    biz_id: int
    count: int


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_comments: int
    counted_objects: int
    cache_info: dict = {}


# Required for the self-reference in CommentResponse.children
CommentResponse.model_rebuild()
